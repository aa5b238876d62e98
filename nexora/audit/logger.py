"""
Audit Logger

DESIGN DECISION: Every ledger change and every sign-in is logged.
This provides:
1. Complete traceability in a ledger everyone on the team can edit
2. Debugging capability when the API misbehaves
3. A record of bulk operations that may have only partly applied

The audit logger:
- Is async so it can sit in the same flows as the gateway calls
- Gracefully handles failures (doesn't crash the app if logging fails)
"""

from collections import deque
from typing import Optional

import structlog

from nexora.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Writes every event to the structured local log at a level that
    matches its severity.
    """

    def __init__(self, actor_id: Optional[str] = None):
        """
        Initialize audit logger.

        Args:
            actor_id: Default account id stamped on events that don't
                      carry one.
        """
        self._actor_id = actor_id
        self._logger = structlog.get_logger("nexora.audit")
        self.recent_events: deque[AuditEvent] = deque(maxlen=500)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written.
        """
        if event.actor_id is None and self._actor_id is not None:
            event.actor_id = self._actor_id

        try:
            log_dict = event.to_log_dict()

            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Audit logging must not break the main flow
            self._logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

        self.recent_events.append(event)
        return True

    async def log_account_registered(self, account_id: str, email: str) -> None:
        await self.log(AuditEventBuilder.account_registered(account_id, email))

    async def log_registration_failed(self, email: str, reason: str, error: str) -> None:
        await self.log(AuditEventBuilder.registration_failed(email, reason, error))

    async def log_login_succeeded(self, account_id: str, email: str) -> None:
        await self.log(AuditEventBuilder.login_succeeded(account_id, email))

    async def log_login_failed(self, email: str, reason: str, error: str) -> None:
        await self.log(AuditEventBuilder.login_failed(email, reason, error))

    async def log_logged_out(self, account_id: Optional[str]) -> None:
        await self.log(AuditEventBuilder.logged_out(account_id))

    async def log_transaction_saved(
        self,
        actor_id: Optional[str],
        transaction_id: str,
        created: bool,
        amount: str,
        category: str,
    ) -> None:
        """Log a transaction create or update."""
        event = AuditEventBuilder.transaction_saved(
            actor_id=actor_id,
            transaction_id=transaction_id,
            created=created,
            amount=amount,
            category=category,
        )
        await self.log(event)

    async def log_transaction_deleted(self, actor_id: Optional[str], transaction_id: str) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(actor_id, transaction_id))

    async def log_bulk_deleted(self, actor_id: Optional[str], ids: list[str]) -> None:
        await self.log(AuditEventBuilder.transactions_bulk_deleted(actor_id, ids))

    async def log_bulk_categorized(
        self,
        actor_id: Optional[str],
        ids: list[str],
        category: str,
    ) -> None:
        await self.log(AuditEventBuilder.transactions_bulk_categorized(actor_id, ids, category))

    async def log_validation_failed(self, actor_id: Optional[str], issues: list[dict]) -> None:
        await self.log(AuditEventBuilder.validation_failed(actor_id, issues))

    async def log_bank_account_saved(
        self,
        bank_id: Optional[str],
        bank_name: str,
        created: bool,
    ) -> None:
        await self.log(AuditEventBuilder.bank_account_saved(bank_id, bank_name, created))

    async def log_bank_account_deleted(self, bank_id: str) -> None:
        await self.log(AuditEventBuilder.bank_account_deleted(bank_id))

    async def log_dashboard_refreshed(self, actor_id: Optional[str], transaction_count: int) -> None:
        await self.log(AuditEventBuilder.dashboard_refreshed(actor_id, transaction_count))

    async def log_transactions_exported(
        self,
        actor_id: Optional[str],
        row_count: int,
        destination: str,
    ) -> None:
        await self.log(AuditEventBuilder.transactions_exported(actor_id, row_count, destination))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
        )
        await self.log(event)
