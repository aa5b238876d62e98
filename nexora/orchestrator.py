"""
Main Orchestrator for NexoraCrew Finance

This module ties together all the components and defines the
end-to-end flows for:
1. Accounts (register / login / logout, team roster, bank cards)
2. Dashboard (pull transactions -> aggregate -> re-pull on change)
3. Transactions (validate -> save, delete, bulk edits, filter, export)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written without passing validation first
- The signed-in account is stamped on every transaction it saves
- Every change is audited

The gateway behind these flows is chosen once, in create_app_components().
The flows never ask which backend they are talking to.
"""

import datetime as dt
import inspect
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

import structlog
from pydantic import BaseModel

from nexora.audit import AuditLogger
from nexora.config import Settings, get_settings
from nexora.dashboard import compute_dashboard
from nexora.models.finance import (
    Account,
    AuthResult,
    BankAccount,
    BankAccountDraft,
    Dashboard,
    Transaction,
    TransactionDraft,
    TransactionFilter,
    TransactionUpdate,
    ValidationResult,
)
from nexora.queries import (
    default_export_filename,
    export_transactions_csv,
    filter_transactions,
)
from nexora.services.notifier import ChangeNotifier, Subscription, create_notifier
from nexora.services.storage import (
    FinanceGateway,
    KeyValueStore,
    StorageError,
    TransportError,
    create_gateway,
)
from nexora.validation import TransactionValidator

DashboardCallback = Callable[[Dashboard], Union[None, Awaitable[None]]]

logger = structlog.get_logger(__name__)


def _local_now() -> dt.datetime:
    # Transaction dates are local calendar dates, so "today" must be too
    return dt.datetime.now().astimezone()


class AccountFlow:
    """
    Orchestrates sign-in and the account-level pages.

    Authentication failures come back inside AuthResult; they are audited
    here and never raised.
    """

    def __init__(
        self,
        gateway: FinanceGateway,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._gateway = gateway
        self._audit_logger = audit_logger

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        position: Optional[str] = None,
    ) -> AuthResult:
        result = await self._gateway.register_account(name, email, password, position)

        if self._audit_logger:
            if result.ok:
                await self._audit_logger.log_account_registered(result.account.id, result.account.email)
            else:
                await self._audit_logger.log_registration_failed(email, result.reason.value, result.error)

        return result

    async def login(self, email: str, password: str) -> AuthResult:
        result = await self._gateway.login(email, password)

        if self._audit_logger:
            if result.ok:
                await self._audit_logger.log_login_succeeded(result.account.id, result.account.email)
            else:
                await self._audit_logger.log_login_failed(email, result.reason.value, result.error)

        return result

    async def logout(self) -> None:
        account = await self._gateway.current_session()
        await self._gateway.logout()

        if self._audit_logger:
            await self._audit_logger.log_logged_out(account.id if account else None)

    async def current_account(self) -> Optional[Account]:
        return await self._gateway.current_session()

    async def team_members(self) -> list[Account]:
        """The roster page; an unreachable API shows an empty roster."""
        try:
            return await self._gateway.list_accounts()
        except TransportError as e:
            logger.warning("list_accounts_failed", error=e.message, status_code=e.status_code)
            return []

    async def bank_accounts(self) -> list[BankAccount]:
        try:
            return await self._gateway.list_bank_accounts()
        except TransportError as e:
            logger.warning("list_bank_accounts_failed", error=e.message, status_code=e.status_code)
            return []

    async def save_bank_account(
        self,
        viewer: Optional[Account],
        data: Union[BankAccountDraft, dict[str, Any]],
        bank_id: Optional[str] = None,
    ) -> Optional[BankAccount]:
        """
        Create or update a card. New cards are attributed to the viewer.

        Returns:
            The saved card, or None if bank_id doesn't exist
        """
        if isinstance(data, BaseModel):
            data = data.model_dump(exclude_unset=True)
        else:
            data = dict(data)
        if viewer and not (data.get("user_id") or data.get("userId")):
            data["user_id"] = viewer.id

        bank = await self._gateway.upsert_bank_account(data, bank_id)

        if self._audit_logger and bank is not None:
            await self._audit_logger.log_bank_account_saved(
                bank_id=bank.id,
                bank_name=bank.bank_name,
                created=bank_id is None,
            )

        return bank

    async def delete_bank_account(self, bank_id: str) -> None:
        await self._gateway.delete_bank_account(bank_id)

        if self._audit_logger:
            await self._audit_logger.log_bank_account_deleted(bank_id)


class DashboardFlow:
    """
    Orchestrates the dashboard.

    Flow:
    1. Pull every transaction through the gateway
    2. Aggregate (pure, no I/O)
    3. On each change notification, repeat and hand the result to the caller
    """

    def __init__(
        self,
        gateway: FinanceGateway,
        notifier: ChangeNotifier,
        audit_logger: Optional[AuditLogger] = None,
        top_categories: int = 6,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ):
        self._gateway = gateway
        self._notifier = notifier
        self._audit_logger = audit_logger
        self._top_categories = top_categories
        self._now = clock or _local_now

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    async def refresh(
        self,
        viewer: Optional[Account] = None,
        as_of: Optional[dt.datetime] = None,
    ) -> Dashboard:
        transactions = await self._gateway.list_transactions(viewer)
        dashboard = compute_dashboard(
            transactions,
            as_of or self._now(),
            top_categories=self._top_categories,
        )

        if self._audit_logger:
            await self._audit_logger.log_dashboard_refreshed(
                viewer.id if viewer else None,
                len(transactions),
            )

        return dashboard

    def watch(self, viewer: Optional[Account], on_update: DashboardCallback) -> Subscription:
        """
        Re-pull and re-aggregate on every change signal.

        Returns the subscription; cancel it when the dashboard goes away.
        """

        async def _refresh_and_publish() -> None:
            dashboard = await self.refresh(viewer)
            result = on_update(dashboard)
            if inspect.isawaitable(result):
                await result

        return self._notifier.subscribe(_refresh_and_publish)


class TransactionFlow:
    """
    Orchestrates the transactions page.

    Flow for a save:
    1. Stamp the signed-in account on the payload
    2. Validate (schema, then attachment / date / bank card)
    3. Resolve the card's display name
    4. Create, or update when an id is given
    5. Audit
    """

    def __init__(
        self,
        gateway: FinanceGateway,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        export_prefix: Optional[str] = None,
    ):
        self._gateway = gateway
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger
        self._export_prefix = export_prefix

    async def _bank_accounts(self) -> Optional[list[BankAccount]]:
        try:
            return await self._gateway.list_bank_accounts()
        except TransportError as e:
            logger.warning("list_bank_accounts_failed", error=e.message, status_code=e.status_code)
            return None

    async def _report_failure(
        self,
        operation: str,
        error: Exception,
        target: Union[str, list[str], None],
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_error(
                error_type=type(error).__name__,
                error_message=str(error),
                details={"operation": operation, "target": target},
            )

    @staticmethod
    def _stamp(
        viewer: Account,
        payload: Union[TransactionDraft, dict[str, Any]],
    ) -> dict[str, Any]:
        if isinstance(payload, BaseModel):
            data = payload.model_dump(exclude={"id", "created_at"})
        else:
            data = {
                key: value for key, value in payload.items()
                if key not in ("userId", "userName", "bankName")
            }
        data["user_id"] = viewer.id
        data["user_name"] = viewer.name
        return data

    async def save(
        self,
        viewer: Account,
        payload: Union[TransactionDraft, dict[str, Any]],
        transaction_id: Optional[str] = None,
    ) -> tuple[Optional[Transaction], ValidationResult]:
        """
        Validate and persist a transaction entered by `viewer`.

        Returns:
            (saved_transaction, validation_result)
            saved_transaction is None when validation failed or when
            updating an id that no longer exists.
        """
        banks = await self._bank_accounts()
        result = self._validator.validate(self._stamp(viewer, payload), bank_accounts=banks)

        if not result.is_valid:
            if self._audit_logger:
                issues = [
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.issues
                ]
                await self._audit_logger.log_validation_failed(viewer.id, issues)
            return None, result

        draft = result.draft
        bank = next((b for b in banks or [] if b.id == draft.bank_account_id), None)
        draft = draft.model_copy(update={"bank_name": bank.bank_name if bank else None})

        try:
            if transaction_id is None:
                saved = await self._gateway.create_transaction(draft)
            else:
                changes = TransactionUpdate.model_validate(draft.model_dump())
                saved = await self._gateway.update_transaction(transaction_id, changes)
        except StorageError as e:
            await self._report_failure("save_transaction", e, transaction_id)
            raise

        if self._audit_logger and saved is not None:
            await self._audit_logger.log_transaction_saved(
                actor_id=viewer.id,
                transaction_id=saved.id,
                created=transaction_id is None,
                amount=str(saved.amount),
                category=saved.category,
            )

        return saved, result

    async def delete(self, viewer: Optional[Account], transaction_id: str) -> None:
        await self._gateway.delete_transaction(transaction_id)

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(viewer.id if viewer else None, transaction_id)

    async def bulk_delete(self, viewer: Optional[Account], transaction_ids: list[str]) -> None:
        try:
            await self._gateway.bulk_delete(transaction_ids)
        except StorageError as e:
            # Items before the failing one stay deleted
            await self._report_failure("bulk_delete", e, transaction_ids)
            raise

        if self._audit_logger:
            await self._audit_logger.log_bulk_deleted(viewer.id if viewer else None, transaction_ids)

    async def bulk_set_category(
        self,
        viewer: Optional[Account],
        transaction_ids: list[str],
        category: str,
    ) -> None:
        try:
            await self._gateway.bulk_set_category(transaction_ids, category)
        except StorageError as e:
            await self._report_failure("bulk_set_category", e, transaction_ids)
            raise

        if self._audit_logger:
            await self._audit_logger.log_bulk_categorized(
                viewer.id if viewer else None,
                transaction_ids,
                category.strip(),
            )

    async def list_transactions(
        self,
        viewer: Optional[Account] = None,
        criteria: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        """Newest first, narrowed by the page's filters."""
        transactions = await self._gateway.list_transactions(viewer)
        return filter_transactions(transactions, criteria)

    async def export(
        self,
        viewer: Optional[Account],
        destination: Union[str, Path],
        criteria: Optional[TransactionFilter] = None,
        today: Optional[dt.date] = None,
    ) -> tuple[Path, int]:
        """
        Export the filtered list as CSV.

        Args:
            destination: A file path, or a directory to write the
                         dated default file name into

        Returns:
            (written_path, row_count)
        """
        path = Path(destination).expanduser()
        if path.is_dir():
            if self._export_prefix:
                filename = default_export_filename(today, prefix=self._export_prefix)
            else:
                filename = default_export_filename(today)
            path = path / filename

        transactions = await self.list_transactions(viewer, criteria)
        count = export_transactions_csv(transactions, path)

        if self._audit_logger:
            await self._audit_logger.log_transactions_exported(
                viewer.id if viewer else None,
                count,
                str(path),
            )

        return path, count


def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
) -> tuple[FinanceGateway, AccountFlow, DashboardFlow, TransactionFlow]:
    """
    Factory function to create all application components.

    Args:
        settings: Defaults to get_settings()
        store: Key-value store for the session and demo data.
               Defaults to the JSON file from settings.

    Returns:
        (gateway, account_flow, dashboard_flow, transaction_flow)
    """
    settings = settings or get_settings()
    app_settings = settings.app

    gateway = create_gateway(settings, store)
    audit_logger = AuditLogger()

    account_flow = AccountFlow(gateway, audit_logger=audit_logger)

    dashboard_flow = DashboardFlow(
        gateway,
        create_notifier(settings, demo_mode=gateway.demo_mode),
        audit_logger=audit_logger,
        top_categories=app_settings.top_category_count,
    )

    transaction_flow = TransactionFlow(
        gateway,
        validator=TransactionValidator(app_settings),
        audit_logger=audit_logger,
        export_prefix=app_settings.export_filename_prefix,
    )

    logger.info("app_components_created", demo_mode=gateway.demo_mode)
    return gateway, account_flow, dashboard_flow, transaction_flow
