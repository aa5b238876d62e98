"""
Remote REST API Storage Implementation

DESIGN DECISION: The API server is the system of record in remote mode.
This module only speaks its JSON contract:

    POST /auth/register, POST /auth/login      -> {user, token}
    GET/POST /transactions, PUT/DELETE /transactions/:id
    GET/POST /banks, PUT/DELETE /banks/:id
    GET /users

Every request carries the session's bearer token when there is one. When
there isn't, the request still goes out: the server decides what an
anonymous caller may do.

TRADEOFFS:
- requests is blocking, so each call runs in a worker thread
- No timeouts and no retries: a failed write is reported once
- Records the server returns that we can't parse are skipped, not fatal
"""

import asyncio
from typing import Any, Optional, TypeVar
from urllib.parse import quote

import requests
import structlog
from pydantic import BaseModel, ValidationError

from nexora.models.finance import (
    Account,
    AccountRegistration,
    AuthFailure,
    AuthResult,
    BankAccount,
    BankAccountDraft,
    Transaction,
    TransactionDraft,
    TransactionUpdate,
)
from nexora.services.storage.interface import (
    BankAccountInput,
    DuplicateEmailError,
    FinanceGateway,
    InvalidCredentialsError,
    TransactionChanges,
    TransactionInput,
    TransportError,
    coerce_record,
)
from nexora.services.storage.session import SessionStore

DEFAULT_ERROR_MESSAGE = "Request failed"

RecordT = TypeVar("RecordT", bound=BaseModel)

logger = structlog.get_logger(__name__)


class ApiClient:
    """
    Low-level JSON-over-HTTP client.

    Handles auth headers and turns every non-2xx answer into a
    TransportError carrying the server's message.
    """

    def __init__(
        self,
        base_url: str,
        session: SessionStore,
        http: Optional[requests.Session] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._http = http or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self._session.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def send(self, method: str, path: str, payload: Optional[Any] = None) -> Any:
        """
        Perform one request and return the decoded JSON body (None if empty).

        Raises:
            TransportError: On network failure or any non-2xx status
        """
        url = f"{self._base_url}{path}"
        try:
            response = self._http.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
            )
        except requests.RequestException as e:
            raise TransportError(f"{DEFAULT_ERROR_MESSAGE}: {e}")

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.ok:
            message = None
            if isinstance(data, dict):
                message = data.get("error") or data.get("message")
            raise TransportError(
                message or DEFAULT_ERROR_MESSAGE,
                status_code=response.status_code,
            )

        return data

    async def request(self, method: str, path: str, payload: Optional[Any] = None) -> Any:
        """Async wrapper around send()."""
        return await asyncio.to_thread(self.send, method, path, payload)


def _parse_one(model: type[RecordT], data: Any) -> RecordT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise TransportError(f"Unexpected {model.__name__} in API response: {e.error_count()} error(s)")


def _parse_many(model: type[RecordT], data: Any, resource: str) -> list[RecordT]:
    if not isinstance(data, list):
        raise TransportError(f"Expected a list from {resource}")

    records = []
    for item in data:
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            # Skip malformed records
            logger.warning(
                "remote_record_skipped",
                resource=resource,
                record_id=item.get("id") or item.get("_id") if isinstance(item, dict) else None,
                errors=e.error_count(),
            )
    return records


class RemoteFinanceGateway(FinanceGateway):
    """Remote mode gateway talking to the REST API."""

    def __init__(self, client: ApiClient, session: SessionStore):
        self._client = client
        self._session = session

    @property
    def demo_mode(self) -> bool:
        return False

    @property
    def session(self) -> SessionStore:
        return self._session

    @property
    def client(self) -> ApiClient:
        return self._client

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    def _start_session(self, data: Any) -> Account:
        if not isinstance(data, dict):
            raise TransportError("Unexpected authentication response")
        account = _parse_one(Account, data.get("user"))
        self._session.save(account, data.get("token"))
        return account

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
            first = e.errors(include_url=False)[0]
            return AuthResult.failure(AuthFailure.VALIDATION, first["msg"])

        try:
            try:
                data = await self._client.request(
                    "POST",
                    "/auth/register",
                    registration.model_dump(),
                )
            except TransportError as e:
                if e.status_code == 400:
                    raise DuplicateEmailError(e.message) from e
                raise
            account = self._start_session(data)
        except DuplicateEmailError as e:
            return AuthResult.failure(AuthFailure.DUPLICATE_EMAIL, str(e))
        except TransportError as e:
            return AuthResult.failure(AuthFailure.TRANSPORT, e.message or "Registration failed")

        return AuthResult.success(account)

    async def login(self, email: str, password: str) -> AuthResult:
        try:
            try:
                data = await self._client.request(
                    "POST",
                    "/auth/login",
                    {"email": email.strip(), "password": password},
                )
            except TransportError as e:
                if e.status_code in (400, 401):
                    raise InvalidCredentialsError(e.message) from e
                raise
            account = self._start_session(data)
        except InvalidCredentialsError as e:
            return AuthResult.failure(AuthFailure.INVALID_CREDENTIALS, str(e))
        except TransportError as e:
            return AuthResult.failure(AuthFailure.TRANSPORT, e.message or "Login failed")

        return AuthResult.success(account)

    async def logout(self) -> None:
        self._session.clear()

    async def current_session(self) -> Optional[Account]:
        return self._session.current()

    async def list_accounts(self) -> list[Account]:
        data = await self._client.request("GET", "/users")
        return _parse_many(Account, data, "/users")

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def list_transactions(self, viewer: Optional[Account] = None) -> list[Transaction]:
        try:
            data = await self._client.request("GET", "/transactions")
            transactions = _parse_many(Transaction, data, "/transactions")
        except TransportError as e:
            # The page shows an empty ledger rather than an error
            logger.error(
                "list_transactions_failed",
                error=e.message,
                status_code=e.status_code,
            )
            return []

        return sorted(transactions, key=lambda t: t.date, reverse=True)

    async def create_transaction(self, draft: TransactionInput) -> Transaction:
        validated = coerce_record(TransactionDraft, draft)
        data = await self._client.request("POST", "/transactions", validated.to_wire())
        return _parse_one(Transaction, data)

    async def update_transaction(
        self,
        transaction_id: str,
        changes: TransactionChanges,
    ) -> Optional[Transaction]:
        update = coerce_record(TransactionUpdate, changes)
        data = await self._client.request(
            "PUT",
            f"/transactions/{quote(transaction_id, safe='')}",
            update.to_wire(),
        )
        if data is None:
            return None
        return _parse_one(Transaction, data)

    async def delete_transaction(self, transaction_id: str) -> None:
        await self._client.request(
            "DELETE",
            f"/transactions/{quote(transaction_id, safe='')}",
        )

    # -------------------------------------------------------------------------
    # Bank accounts
    # -------------------------------------------------------------------------

    async def list_bank_accounts(self) -> list[BankAccount]:
        data = await self._client.request("GET", "/banks")
        return _parse_many(BankAccount, data, "/banks")

    async def upsert_bank_account(
        self,
        data: BankAccountInput,
        bank_id: Optional[str] = None,
    ) -> Optional[BankAccount]:
        draft = coerce_record(BankAccountDraft, data)
        payload = draft.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"id"})

        if bank_id is None:
            response = await self._client.request("POST", "/banks", payload)
        else:
            response = await self._client.request(
                "PUT",
                f"/banks/{quote(bank_id, safe='')}",
                payload,
            )

        if response is None:
            return None
        return _parse_one(BankAccount, response)

    async def delete_bank_account(self, bank_id: str) -> None:
        await self._client.request("DELETE", f"/banks/{quote(bank_id, safe='')}")
