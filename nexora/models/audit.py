"""
Audit Models for NexoraCrew Finance

Every user action that changes the ledger, and every sign-in, is logged.
This provides:
1. Traceability of who changed what, in a ledger any team member can edit
2. Debugging information when the API misbehaves
3. A record of bulk operations that may have only partly applied

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Authentication
    ACCOUNT_REGISTERED = "account_registered"
    REGISTRATION_FAILED = "registration_failed"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGGED_OUT = "logged_out"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTIONS_BULK_DELETED = "transactions_bulk_deleted"
    TRANSACTIONS_BULK_CATEGORIZED = "transactions_bulk_categorized"
    VALIDATION_FAILED = "validation_failed"

    # Bank accounts
    BANK_ACCOUNT_SAVED = "bank_account_saved"
    BANK_ACCOUNT_DELETED = "bank_account_deleted"

    # Reads
    DASHBOARD_REFRESHED = "dashboard_refreshed"
    TRANSACTIONS_EXPORTED = "transactions_exported"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Who did it
    actor_id: Optional[str] = Field(
        default=None,
        description="Account id of the user who triggered the event"
    )

    # What it is about
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'bank_account', 'account')"
    )
    entity_ids: list[str] = Field(
        default_factory=list,
        description="IDs of the entities this event relates to"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "actor_id": self.actor_id,
            "entity_type": self.entity_type,
            "entity_ids": self.entity_ids,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.login_succeeded(account_id, email)
        event = AuditEventBuilder.transactions_bulk_deleted(actor_id, ids)
    """

    @staticmethod
    def account_registered(account_id: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_REGISTERED,
            actor_id=account_id,
            entity_type="account",
            entity_ids=[account_id],
            description=f"Account registered: {email}",
            details={"email": email},
        )

    @staticmethod
    def registration_failed(email: str, reason: str, error: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REGISTRATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            description=f"Registration failed for {email}",
            details={"email": email, "reason": reason},
            error_message=error,
        )

    @staticmethod
    def login_succeeded(account_id: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            actor_id=account_id,
            entity_type="account",
            entity_ids=[account_id],
            description=f"Signed in: {email}",
        )

    @staticmethod
    def login_failed(email: str, reason: str, error: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            description=f"Sign-in failed for {email}",
            details={"email": email, "reason": reason},
            error_message=error,
        )

    @staticmethod
    def logged_out(account_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGGED_OUT,
            actor_id=account_id,
            entity_type="account",
            description="Signed out",
        )

    @staticmethod
    def transaction_saved(
        actor_id: Optional[str],
        transaction_id: str,
        created: bool,
        amount: str,
        category: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.TRANSACTION_CREATED
                if created
                else AuditEventType.TRANSACTION_UPDATED
            ),
            actor_id=actor_id,
            entity_type="transaction",
            entity_ids=[transaction_id],
            description=f"Transaction {'created' if created else 'updated'}: {category} - ₹{amount}",
            details={"amount": amount, "category": category},
        )

    @staticmethod
    def transaction_deleted(actor_id: Optional[str], transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            actor_id=actor_id,
            entity_type="transaction",
            entity_ids=[transaction_id],
            description="Transaction deleted",
        )

    @staticmethod
    def transactions_bulk_deleted(actor_id: Optional[str], ids: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_BULK_DELETED,
            actor_id=actor_id,
            entity_type="transaction",
            entity_ids=list(ids),
            description=f"Deleted {len(ids)} transactions",
        )

    @staticmethod
    def transactions_bulk_categorized(
        actor_id: Optional[str],
        ids: list[str],
        category: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_BULK_CATEGORIZED,
            actor_id=actor_id,
            entity_type="transaction",
            entity_ids=list(ids),
            description=f"Moved {len(ids)} transactions to category {category}",
            details={"category": category},
        )

    @staticmethod
    def validation_failed(actor_id: Optional[str], issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            entity_type="transaction",
            description=f"Transaction rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def bank_account_saved(bank_id: Optional[str], bank_name: str, created: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BANK_ACCOUNT_SAVED,
            entity_type="bank_account",
            entity_ids=[bank_id] if bank_id else [],
            description=f"Bank card {'added' if created else 'updated'}: {bank_name}",
        )

    @staticmethod
    def bank_account_deleted(bank_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BANK_ACCOUNT_DELETED,
            entity_type="bank_account",
            entity_ids=[bank_id],
            description="Bank card deleted",
        )

    @staticmethod
    def dashboard_refreshed(actor_id: Optional[str], transaction_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DASHBOARD_REFRESHED,
            severity=AuditSeverity.DEBUG,
            actor_id=actor_id,
            description=f"Dashboard recomputed from {transaction_count} transactions",
            details={"transaction_count": transaction_count},
        )

    @staticmethod
    def transactions_exported(actor_id: Optional[str], row_count: int, destination: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_EXPORTED,
            actor_id=actor_id,
            entity_type="transaction",
            description=f"Exported {row_count} transactions",
            details={"row_count": row_count, "destination": destination},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
