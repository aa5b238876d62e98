"""Audit logging package."""

from nexora.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
