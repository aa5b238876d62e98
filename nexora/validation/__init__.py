"""Transaction validation package."""

from nexora.validation.validator import TransactionValidator

__all__ = ["TransactionValidator"]
