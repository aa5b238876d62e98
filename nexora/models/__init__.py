"""
Data Models Package

This package contains all Pydantic models used in NexoraCrew Finance.
All data flowing through the system must conform to these schemas.
"""

from nexora.models.finance import (
    Account,
    AccountRegistration,
    AttachmentInfo,
    AuthFailure,
    AuthResult,
    BankAccount,
    BankAccountDraft,
    BreakdownEntry,
    CardType,
    Dashboard,
    DashboardStats,
    InvestmentFilter,
    InvestmentType,
    MonthlyPoint,
    PaymentMethod,
    StoredAccount,
    Transaction,
    TransactionDraft,
    TransactionFilter,
    TransactionType,
    TransactionUpdate,
    TypeFilter,
    ValidationIssue,
    ValidationResult,
)
from nexora.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Account",
    "AccountRegistration",
    "AttachmentInfo",
    "AuthFailure",
    "AuthResult",
    "BankAccount",
    "BankAccountDraft",
    "BreakdownEntry",
    "CardType",
    "Dashboard",
    "DashboardStats",
    "InvestmentFilter",
    "InvestmentType",
    "MonthlyPoint",
    "PaymentMethod",
    "StoredAccount",
    "Transaction",
    "TransactionDraft",
    "TransactionFilter",
    "TransactionType",
    "TransactionUpdate",
    "TypeFilter",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
