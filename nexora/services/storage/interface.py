"""
Abstract Storage Interface

DESIGN DECISION: Callers talk to one gateway contract. Which backend sits
behind it (the REST API or the demo key-value store) is decided once, when
the gateway is constructed, so no call site ever has to ask "are we in demo
mode?".

The interface is intentionally simple - we're not building a full ORM.
Just the operations the pages need.

Bulk operations are a plain loop over the single-item operations. They are
not atomic: if one item fails, the ones before it stay applied and the
error propagates once.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError

from nexora.models.finance import (
    Account,
    AuthResult,
    BankAccount,
    BankAccountDraft,
    Transaction,
    TransactionDraft,
    TransactionUpdate,
)

TransactionInput = Union[TransactionDraft, dict[str, Any]]
TransactionChanges = Union[TransactionUpdate, dict[str, Any]]
BankAccountInput = Union[BankAccountDraft, dict[str, Any]]


class FinanceGateway(ABC):
    """
    Abstract interface for all NexoraCrew data access.

    Any backend (REST API, local demo store, etc.) must implement these
    methods.
    """

    @property
    @abstractmethod
    def demo_mode(self) -> bool:
        """True when this gateway keeps everything in local storage."""

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    @abstractmethod
    async def register_account(
        self,
        name: str,
        email: str,
        password: str,
        position: Optional[str] = None,
    ) -> AuthResult:
        """
        Create an account and sign it in.

        Returns:
            AuthResult with the new account, or with a failure reason
            (duplicate email, validation, transport)
        """

    @abstractmethod
    async def login(self, email: str, password: str) -> AuthResult:
        """
        Sign in.

        Returns:
            AuthResult with the account, or with a failure reason
            (invalid credentials, transport)
        """

    @abstractmethod
    async def logout(self) -> None:
        """Forget the current session. Always succeeds."""

    @abstractmethod
    async def current_session(self) -> Optional[Account]:
        """Account of the last persisted session, None if absent or unreadable."""

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        """Team roster, without credentials."""

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_transactions(self, viewer: Optional[Account] = None) -> list[Transaction]:
        """
        List all transactions, newest date first.

        Args:
            viewer: Accepted for symmetry. The ledger is shared by the whole
                    team, so nothing is filtered by owner.
        """

    @abstractmethod
    async def create_transaction(self, draft: TransactionInput) -> Transaction:
        """
        Persist a new transaction.

        Raises:
            InvalidRecordError: If the draft breaks a transaction invariant
            TransportError: If the API rejects the write
        """

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: str,
        changes: TransactionChanges,
    ) -> Optional[Transaction]:
        """
        Apply partial changes to a transaction.

        Returns:
            The updated transaction, or None if no transaction has that id
        """

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> None:
        """Delete a transaction. Deleting a missing id is a no-op."""

    async def bulk_delete(self, transaction_ids: list[str]) -> None:
        """Delete several transactions, one at a time."""
        for transaction_id in transaction_ids:
            await self.delete_transaction(transaction_id)

    async def bulk_set_category(self, transaction_ids: list[str], category: str) -> None:
        """Move several transactions to one category, one at a time."""
        changes = coerce_record(TransactionUpdate, {"category": category})
        for transaction_id in transaction_ids:
            await self.update_transaction(transaction_id, changes)

    # -------------------------------------------------------------------------
    # Bank accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_bank_accounts(self) -> list[BankAccount]:
        """List stored payment cards."""

    @abstractmethod
    async def upsert_bank_account(
        self,
        data: BankAccountInput,
        bank_id: Optional[str] = None,
    ) -> Optional[BankAccount]:
        """
        Create a card, or update it when bank_id is given.

        Returns:
            The saved card; None when updating an id that doesn't exist
        """

    @abstractmethod
    async def delete_bank_account(self, bank_id: str) -> None:
        """Delete a card. Deleting a missing id is a no-op."""


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class InvalidRecordError(StorageError):
    """A record failed validation before it was written."""

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        self.errors = errors or []
        super().__init__(message)


class DuplicateEmailError(StorageError):
    """An account with this email already exists."""
    pass


class InvalidCredentialsError(StorageError):
    """Email and password don't match any account."""
    pass


class TransportError(StorageError):
    """The API answered with a failure, or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


ModelT = TypeVar("ModelT", bound=BaseModel)


def coerce_record(model: type[ModelT], data: Union[BaseModel, dict[str, Any]]) -> ModelT:
    """
    Validate caller input into `model` before anything is written.

    Raises:
        InvalidRecordError: With pydantic's error list attached
    """
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        raise InvalidRecordError(
            f"Invalid {model.__name__}: {len(errors)} validation error(s)",
            errors=errors,
        ) from e
