"""
Local (Demo Mode) Storage Implementation

DESIGN DECISION: When no API endpoint is configured the app still has to
work end to end, so the key-value store becomes the system of record.
Each entity kind is one JSON list under its own key:

    nexora_users         accounts (with their plaintext demo credentials)
    nexora_transactions  transactions
    nexora_banks         bank cards

Amounts are stored as exact decimal strings.

TRADEOFFS:
- Credentials are compared in plaintext. This is a demo, not a security model.
- Every write rewrites the whole list (fine for a small team's ledger)
- Writes operate on the raw stored dicts, so an entry we can't parse is
  skipped on read but never silently dropped from storage

The implementation follows the abstract interface, so callers can't tell
it apart from the remote backend.
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar
from uuid import uuid4

import structlog
from pydantic import BaseModel, ValidationError

from nexora.models.finance import (
    Account,
    AccountRegistration,
    AuthFailure,
    AuthResult,
    BankAccount,
    BankAccountDraft,
    StoredAccount,
    Transaction,
    TransactionDraft,
    TransactionUpdate,
)
from nexora.services.storage.interface import (
    BankAccountInput,
    DuplicateEmailError,
    FinanceGateway,
    InvalidCredentialsError,
    StorageError,
    TransactionChanges,
    TransactionInput,
    coerce_record,
)
from nexora.services.storage.key_value import KeyValueStore
from nexora.services.storage.session import SessionStore

USERS_KEY = "nexora_users"
TRANSACTIONS_KEY = "nexora_transactions"
BANKS_KEY = "nexora_banks"

RecordT = TypeVar("RecordT", bound=BaseModel)

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _first_error(error: ValidationError) -> str:
    first = error.errors(include_url=False)[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


class LocalFinanceGateway(FinanceGateway):
    """
    Demo mode gateway backed by a KeyValueStore.

    All operations complete synchronously but keep the async signatures
    of the contract.
    """

    def __init__(
        self,
        store: KeyValueStore,
        session: Optional[SessionStore] = None,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._session = session or SessionStore(store)
        self._new_id = id_factory or (lambda: str(uuid4()))
        self._now = clock or _utcnow

    @property
    def demo_mode(self) -> bool:
        return True

    @property
    def session(self) -> SessionStore:
        return self._session

    # -------------------------------------------------------------------------
    # Raw list helpers
    # -------------------------------------------------------------------------

    def _load_raw(self, key: str) -> list[dict[str, Any]]:
        raw = self._store.get(key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored list {key} is not valid JSON: {e}")
        if not isinstance(items, list):
            raise StorageError(f"Stored value {key} is not a list")
        return [item for item in items if isinstance(item, dict)]

    def _save_raw(self, key: str, items: list[dict[str, Any]]) -> None:
        self._store.set(key, json.dumps(items, ensure_ascii=False))

    def _load_records(self, key: str, model: type[RecordT]) -> list[RecordT]:
        records = []
        for item in self._load_raw(key):
            try:
                records.append(model.model_validate(item))
            except ValidationError as e:
                # Skip malformed entries
                logger.warning(
                    "local_record_skipped",
                    key=key,
                    record_id=item.get("id"),
                    error=_first_error(e),
                )
        return records

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    def _ensure_email_free(self, users: list[dict[str, Any]], email: str) -> None:
        if any(user.get("email") == email for user in users):
            raise DuplicateEmailError("Demo Mode: Email already taken.")

    def _authenticate(self, users: list[dict[str, Any]], email: str, password: str) -> StoredAccount:
        for user in users:
            if user.get("email") == email and user.get("password") == password:
                return StoredAccount.model_validate(user)
        raise InvalidCredentialsError("Demo Mode: Invalid credentials.")

    async def register_account(
        self,
        name: str,
        email: str,
        password: str,
        position: Optional[str] = None,
    ) -> AuthResult:
        try:
            registration = AccountRegistration(
                name=name,
                email=email,
                password=password,
                position=position,
            )
        except ValidationError as e:
            return AuthResult.failure(AuthFailure.VALIDATION, _first_error(e))

        users = self._load_raw(USERS_KEY)
        try:
            self._ensure_email_free(users, registration.email)
        except DuplicateEmailError as e:
            return AuthResult.failure(AuthFailure.DUPLICATE_EMAIL, str(e))

        stored = StoredAccount(
            id=self._new_id(),
            name=registration.name,
            email=registration.email,
            position=registration.position,
            password=registration.password,
            created_at=self._now(),
        )
        users.append(stored.to_record())
        self._save_raw(USERS_KEY, users)

        account = stored.to_account()
        self._session.save(account)
        logger.info("account_registered", account_id=account.id)
        return AuthResult.success(account)

    async def login(self, email: str, password: str) -> AuthResult:
        try:
            stored = self._authenticate(self._load_raw(USERS_KEY), email.strip(), password)
        except (InvalidCredentialsError, ValidationError):
            return AuthResult.failure(AuthFailure.INVALID_CREDENTIALS, "Demo Mode: Invalid credentials.")

        account = stored.to_account()
        self._session.save(account)
        return AuthResult.success(account)

    async def logout(self) -> None:
        self._session.clear()

    async def current_session(self) -> Optional[Account]:
        return self._session.current()

    async def list_accounts(self) -> list[Account]:
        return [stored.to_account() for stored in self._load_records(USERS_KEY, StoredAccount)]

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def list_transactions(self, viewer: Optional[Account] = None) -> list[Transaction]:
        transactions = self._load_records(TRANSACTIONS_KEY, Transaction)
        # Newest first; sorted() is stable so same-day entries keep insertion order
        return sorted(transactions, key=lambda t: t.date, reverse=True)

    async def create_transaction(self, draft: TransactionInput) -> Transaction:
        validated = coerce_record(TransactionDraft, draft)
        transaction = Transaction.from_draft(validated, self._new_id(), self._now())

        items = self._load_raw(TRANSACTIONS_KEY)
        items.append(transaction.to_record())
        self._save_raw(TRANSACTIONS_KEY, items)
        return transaction

    async def update_transaction(
        self,
        transaction_id: str,
        changes: TransactionChanges,
    ) -> Optional[Transaction]:
        update = coerce_record(TransactionUpdate, changes)
        items = self._load_raw(TRANSACTIONS_KEY)

        for idx, item in enumerate(items):
            if item.get("id") == transaction_id:
                merged = coerce_record(Transaction, {**item, **update.to_record()})
                items[idx] = merged.to_record()
                self._save_raw(TRANSACTIONS_KEY, items)
                return merged

        return None

    async def delete_transaction(self, transaction_id: str) -> None:
        items = self._load_raw(TRANSACTIONS_KEY)
        remaining = [item for item in items if item.get("id") != transaction_id]
        if len(remaining) != len(items):
            self._save_raw(TRANSACTIONS_KEY, remaining)

    # -------------------------------------------------------------------------
    # Bank accounts
    # -------------------------------------------------------------------------

    async def list_bank_accounts(self) -> list[BankAccount]:
        return self._load_records(BANKS_KEY, BankAccount)

    async def upsert_bank_account(
        self,
        data: BankAccountInput,
        bank_id: Optional[str] = None,
    ) -> Optional[BankAccount]:
        draft = coerce_record(BankAccountDraft, data)
        items = self._load_raw(BANKS_KEY)

        if bank_id is None:
            bank = BankAccount(**draft.model_dump(exclude={"id"}), id=self._new_id())
            items.append(bank.to_record())
            self._save_raw(BANKS_KEY, items)
            return bank

        for idx, item in enumerate(items):
            if item.get("id") == bank_id:
                bank = BankAccount(**draft.model_dump(exclude={"id"}), id=bank_id)
                items[idx] = {**item, **bank.to_record()}
                self._save_raw(BANKS_KEY, items)
                return bank

        return None

    async def delete_bank_account(self, bank_id: str) -> None:
        items = self._load_raw(BANKS_KEY)
        remaining = [item for item in items if item.get("id") != bank_id]
        if len(remaining) != len(items):
            self._save_raw(BANKS_KEY, remaining)
