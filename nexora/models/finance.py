"""
Core Data Models for NexoraCrew Finance

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize to the camelCase JSON the REST API and the demo store speak
4. Keep the transaction invariants in one place

DESIGN DECISION: Python attributes are snake_case, wire keys are camelCase.
Every record model accepts both on input and emits camelCase via to_wire().
"""

import datetime as dt
import re
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class _CaseInsensitiveEnum(str, Enum):
    """String enum that also matches its values case-insensitively."""

    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in cls:
                if member.value.lower() == wanted:
                    return member
        return None


class TransactionType(_CaseInsensitiveEnum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


class PaymentMethod(_CaseInsensitiveEnum):
    """
    Payment channels a transaction can go through.

    Cash plus the digital wallets, cards and bank transfers the team uses.
    """
    CASH = "Cash"
    GPAY = "GPay"
    PHONEPE = "PhonePe"
    PAYTM = "Paytm"
    FAMPAY = "FamPay"
    CARD = "Card"
    BANK_TRANSFER = "Bank Transfer"


class InvestmentType(_CaseInsensitiveEnum):
    """Who paid for an expense: one person or a group of team investors."""
    SINGLE = "SINGLE"
    TEAM = "TEAM"


class CardType(_CaseInsensitiveEnum):
    """Kind of stored payment card."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class AuthFailure(str, Enum):
    """Why an authentication call did not produce an account."""
    DUPLICATE_EMAIL = "duplicate_email"
    INVALID_CREDENTIALS = "invalid_credentials"
    VALIDATION = "validation"
    TRANSPORT = "transport"


# =============================================================================
# WIRE BASE
# =============================================================================

class WireModel(BaseModel):
    """Base for records that travel to the API or the demo store."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def accept_document_id(cls, data: Any) -> Any:
        """The document database names its key `_id`; we call it `id`."""
        if isinstance(data, dict) and "id" not in data and "_id" in data:
            data = {**data, "id": str(data["_id"])}
        return data

    def to_wire(self) -> dict[str, Any]:
        """Dump as camelCase JSON-compatible dict, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_record(self) -> dict[str, Any]:
        """
        Dump for the local store.

        Same shape as to_wire(), but every value keeps its full precision
        (Decimals are written as strings).
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# ACCOUNTS
# =============================================================================

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Account(WireModel):
    """
    A team member's identity record.

    The credential is never part of this model, so nothing that returns
    an Account can leak it.
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    position: Optional[str] = Field(default=None, max_length=100)
    created_at: Optional[dt.datetime] = None

    @property
    def display_position(self) -> str:
        return self.position or "Member"


class StoredAccount(Account):
    """Demo mode account record, credential included."""

    # The credential is compared byte for byte, spaces included
    model_config = ConfigDict(str_strip_whitespace=False)

    password: str

    def to_account(self) -> Account:
        return Account.model_validate(self.model_dump(exclude={"password"}))


class AccountRegistration(BaseModel):
    """
    Input for creating an account.

    Name, email and position are trimmed. The password is kept exactly as
    typed, since login compares it exactly.
    """

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1)
    position: Optional[str] = Field(default=None, max_length=100)

    @field_validator('name', 'email', 'position', mode='before')
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError(f"Not a valid email address: {v}")
        return v

    @field_validator('position')
    @classmethod
    def blank_position_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class AuthResult(BaseModel):
    """
    Outcome of register/login.

    Expected failures (taken email, wrong password, unreachable API) come
    back as values so the caller can show a short message.
    """

    account: Optional[Account] = None
    error: Optional[str] = None
    reason: Optional[AuthFailure] = None

    @property
    def ok(self) -> bool:
        return self.account is not None

    @classmethod
    def success(cls, account: Account) -> "AuthResult":
        return cls(account=account)

    @classmethod
    def failure(cls, reason: AuthFailure, error: str) -> "AuthResult":
        return cls(reason=reason, error=error)


# =============================================================================
# TRANSACTIONS
# =============================================================================

def _calendar_date(value: Any) -> Any:
    """The document database hands dates back as full ISO timestamps."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


class TransactionDraft(WireModel):
    """
    Everything a transaction carries except its identity.

    Invariants:
    - amount is strictly positive
    - investment_type only exists on expenses
    - investors only exist on TEAM expenses, and there is at least one
    """

    user_id: Optional[str] = None
    user_name: Optional[str] = None
    date: dt.date
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    description: Optional[str] = Field(default=None, max_length=1000)
    attachment: Optional[str] = Field(
        default=None,
        description="Self-describing data URL of the attached file"
    )
    bank_account_id: Optional[str] = None
    bank_name: Optional[str] = None
    investment_type: Optional[InvestmentType] = None
    investors: Optional[list[str]] = None

    @field_validator('date', mode='before')
    @classmethod
    def truncate_timestamp(cls, v: Any) -> Any:
        return _calendar_date(v)

    @field_validator('type', mode='before')
    @classmethod
    def lowercase_type(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode='after')
    def normalize_investment(self) -> 'TransactionDraft':
        """Apply the contribution-structure rules."""
        if self.type != TransactionType.EXPENSE:
            self.investment_type = None
            self.investors = None
            return self

        if self.investment_type == InvestmentType.TEAM:
            names = [name.strip() for name in self.investors or [] if name and name.strip()]
            if not names:
                raise ValueError("Team expenses need at least one investor name")
            self.investors = names
        else:
            self.investors = None

        return self

    def to_wire(self) -> dict[str, Any]:
        data = super().to_wire()
        # JSON numbers, not strings, on the wire
        data["amount"] = float(self.amount)
        return data


class Transaction(TransactionDraft):
    """A persisted transaction."""

    id: str = Field(..., min_length=1)
    created_at: Optional[dt.datetime] = None

    @classmethod
    def from_draft(
        cls,
        draft: TransactionDraft,
        transaction_id: str,
        created_at: dt.datetime,
    ) -> "Transaction":
        return cls(
            **draft.model_dump(exclude={"id", "created_at"}),
            id=transaction_id,
            created_at=created_at,
        )


class TransactionUpdate(WireModel):
    """
    Partial transaction changes.

    Only the fields explicitly set are sent or merged. The merged record is
    re-validated as a whole before it is written.
    """

    user_id: Optional[str] = None
    user_name: Optional[str] = None
    date: Optional[dt.date] = None
    type: Optional[TransactionType] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(default=None, gt=0)
    payment_method: Optional[PaymentMethod] = None
    description: Optional[str] = Field(default=None, max_length=1000)
    attachment: Optional[str] = None
    bank_account_id: Optional[str] = None
    bank_name: Optional[str] = None
    investment_type: Optional[InvestmentType] = None
    investors: Optional[list[str]] = None

    @field_validator('date', mode='before')
    @classmethod
    def truncate_timestamp(cls, v: Any) -> Any:
        return _calendar_date(v)

    @field_validator('type', mode='before')
    @classmethod
    def lowercase_type(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude_unset=True)
        if self.amount is not None:
            data["amount"] = float(self.amount)
        return data

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# =============================================================================
# BANK ACCOUNTS
# =============================================================================

class BankAccountDraft(WireModel):
    """A stored payment card, before it has an id."""

    bank_name: str = Field(..., min_length=1, max_length=100)
    holder_name: str = Field(..., min_length=1, max_length=200)
    card_number: str = Field(
        ...,
        min_length=1,
        max_length=40,
        description="Display string, not validated beyond presence"
    )
    expiry_date: str = Field(..., min_length=1, max_length=10)
    card_type: CardType = CardType.DEBIT
    user_id: Optional[str] = None


class BankAccount(BankAccountDraft):
    """A persisted payment card."""

    id: str = Field(..., min_length=1)


# =============================================================================
# DASHBOARD MODELS (derived, never persisted)
# =============================================================================

ZERO = Decimal("0")


class DashboardStats(BaseModel):
    """Headline numbers for the dashboard cards."""

    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    balance: Decimal = Field(
        default=ZERO,
        description="total_income - total_expense, may be negative"
    )
    today_income: Decimal = ZERO
    today_expense: Decimal = ZERO
    month_income: Decimal = ZERO
    month_expense: Decimal = ZERO
    year_income: Decimal = ZERO
    year_expense: Decimal = ZERO


class MonthlyPoint(BaseModel):
    """One month of the current year's income/expense series."""

    month: str
    income: Decimal = ZERO
    expense: Decimal = ZERO


class BreakdownEntry(BaseModel):
    """A named slice of a breakdown chart."""

    name: str
    value: Decimal


class Dashboard(BaseModel):
    """Everything the dashboard page renders, computed in one pass."""

    as_of: dt.datetime
    stats: DashboardStats
    monthly: list[MonthlyPoint]
    categories: list[BreakdownEntry]
    contributors: list[BreakdownEntry]


# =============================================================================
# FILTER MODELS
# =============================================================================

class TypeFilter(str, Enum):
    """Transaction list type filter."""
    ALL = "ALL"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class InvestmentFilter(str, Enum):
    """Transaction list contribution filter."""
    ALL = "ALL"
    TEAM = "TEAM"
    SINGLE = "SINGLE"


class TransactionFilter(BaseModel):
    """What the transactions page is currently showing."""

    search: str = ""
    type: TypeFilter = TypeFilter.ALL
    investment: InvestmentFilter = InvestmentFilter.ALL


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'too_large')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage transaction validation.

    Stage 1: Schema validation (types, required fields, invariants)
    Stage 2: Semantic validation (attachment, date sanity)
    """

    validated_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )
    schema_valid: bool
    semantic_valid: bool
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    # The parsed draft, when schema validation succeeded
    draft: Optional[TransactionDraft] = None

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# ATTACHMENTS
# =============================================================================

class AttachmentInfo(BaseModel):
    """What we learned from decoding an attachment data URL."""

    mime_type: str
    size_bytes: int = Field(ge=0)
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")
