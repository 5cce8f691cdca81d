"""
Core Data Models for Kasa

These models define the strict schemas for all data flowing between the
hosted backend and the application. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Map cleanly onto the backend's table rows
4. Keep the stored (Turkish) enum values while code uses English names

DESIGN DECISION: Rows coming from the backend are parsed with
model_validate(). Joined relations (e.g. ``regions(name)``) are flattened
into plain fields so callers never deal with nested dicts.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction. Values are the stored column values."""
    INCOME = "GİRDİ"
    EXPENSE = "ÇIKTI"

    @property
    def label(self) -> str:
        return _TYPE_LABELS[self]


class PaymentMethod(str, Enum):
    """How an expense was paid. Income is always recorded as cash."""
    CASH = "NAKİT"
    CARD = "KREDI_KARTI"

    @property
    def label(self) -> str:
        return _PAYMENT_LABELS[self]


class InvoiceType(str, Enum):
    """
    Supporting document attached to an expense.

    "YOK" (none) is a form choice only; it is stored as null.
    """
    INVOICE = "FATURA"
    E_INVOICE = "E_FATURA"
    CASH_RECEIPT = "KASA_FISI"

    @property
    def label(self) -> str:
        return _INVOICE_LABELS[self]


# Form/filter value meaning "no invoice"
NO_INVOICE = "YOK"


class Role(str, Enum):
    """
    Closed set of user roles.

    Every capability check goes through ROLE_CAPABILITIES, which has
    exactly one entry per member. Never compare raw role strings.
    """
    BASE_USER = "LEVEL_1"
    REGIONAL_EDITOR = "LEVEL_2"
    SUPER_ADMIN = "LEVEL_3"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Parse a stored role, falling back to the least privileged one."""
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.BASE_USER

    @property
    def capabilities(self) -> "RoleCapabilities":
        return ROLE_CAPABILITIES[self]

    @property
    def label(self) -> str:
        return self.capabilities.label


class SortField(str, Enum):
    """Columns a transaction listing can be ordered by."""
    TRANSACTION_DATE = "transaction_date"
    CREATED_AT = "created_at"


class SortOrder(str, Enum):
    DESC = "desc"
    ASC = "asc"


_TYPE_LABELS = {
    TransactionType.INCOME: "Gelir",
    TransactionType.EXPENSE: "Gider",
}

_PAYMENT_LABELS = {
    PaymentMethod.CASH: "Nakit",
    PaymentMethod.CARD: "Kredi Kartı",
}

_INVOICE_LABELS = {
    InvoiceType.INVOICE: "Fatura",
    InvoiceType.E_INVOICE: "E-Fatura",
    InvoiceType.CASH_RECEIPT: "Kasa Fişi",
}


# =============================================================================
# ROLE CAPABILITIES
# =============================================================================

class RoleCapabilities(BaseModel):
    """What a role is allowed to see and do."""
    model_config = ConfigDict(frozen=True)

    label: str
    sees_all_regions: bool
    can_choose_expense_region: bool
    can_modify_transactions: bool
    can_administer: bool

    @property
    def sees_regional_stats(self) -> bool:
        return self.sees_all_regions

    @property
    def uses_admin_filters(self) -> bool:
        return self.can_administer


ROLE_CAPABILITIES: dict[Role, RoleCapabilities] = {
    Role.BASE_USER: RoleCapabilities(
        label="Kullanıcı",
        sees_all_regions=False,
        can_choose_expense_region=False,
        can_modify_transactions=False,
        can_administer=False,
    ),
    Role.REGIONAL_EDITOR: RoleCapabilities(
        label="Editör",
        sees_all_regions=False,
        can_choose_expense_region=True,
        can_modify_transactions=False,
        can_administer=False,
    ),
    Role.SUPER_ADMIN: RoleCapabilities(
        label="Yönetici",
        sees_all_regions=True,
        can_choose_expense_region=True,
        can_modify_transactions=True,
        can_administer=True,
    ),
}


# =============================================================================
# HELPERS
# =============================================================================

def _flatten_region(data: Any) -> Any:
    """Move a joined ``regions: {name: ...}`` relation into ``region_name``."""
    if isinstance(data, dict) and "regions" in data:
        data = dict(data)
        joined = data.pop("regions")
        if isinstance(joined, dict) and "region_name" not in data:
            data["region_name"] = joined.get("name")
    return data


def to_decimal(value: Any) -> Decimal:
    """Convert a stored numeric value to Decimal; missing values become 0."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


def _normalize_invoice(value: Any) -> Any:
    if value is None or value == "" or value == NO_INVOICE:
        return None
    return value


# =============================================================================
# CORE ENTITIES
# =============================================================================

class Region(BaseModel):
    """An organizational/geographic unit."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    name: str = Field(..., min_length=1, max_length=200)

    @field_validator("id", mode="before")
    @classmethod
    def id_as_str(cls, v: Any) -> str:
        return str(v)


class AuthUser(BaseModel):
    """The identity returned by the auth service."""

    id: str
    email: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_str(cls, v: Any) -> str:
        return str(v)


class Profile(BaseModel):
    """
    Application profile of an auth identity.

    The id is shared with the auth user. Role drives both what the UI
    shows and what mutations are permitted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    full_name: str = ""
    role: Role = Role.BASE_USER
    region_id: Optional[str] = None
    region_name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def flatten_joined_region(cls, data: Any) -> Any:
        return _flatten_region(data)

    @field_validator("id", mode="before")
    @classmethod
    def id_as_str(cls, v: Any) -> str:
        return str(v)

    @field_validator("full_name", mode="before")
    @classmethod
    def none_name_to_empty(cls, v: Any) -> Any:
        return v or ""

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, v: Any) -> Role:
        return Role.parse(v)

    @field_validator("region_id", mode="before")
    @classmethod
    def region_as_str(cls, v: Any) -> Optional[str]:
        return str(v) if v not in (None, "") else None

    @property
    def capabilities(self) -> RoleCapabilities:
        return self.role.capabilities

    @property
    def is_admin(self) -> bool:
        return self.capabilities.can_administer


class Transaction(BaseModel):
    """
    A recorded income or expense, as read back from the backend.

    ``invoice_type`` maps to the ``fatura_tipi`` column.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    type: TransactionType
    payment_method: Optional[PaymentMethod] = None
    transaction_date: date
    description: Optional[str] = None
    region_id: Optional[str] = None
    region_name: Optional[str] = None
    invoice_type: Optional[InvoiceType] = Field(default=None, alias="fatura_tipi")
    image_path: Optional[str] = None
    expense_region_info: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def flatten_joined_region(cls, data: Any) -> Any:
        return _flatten_region(data)

    @field_validator("id", mode="before")
    @classmethod
    def id_as_str(cls, v: Any) -> str:
        return str(v)

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_decimal(cls, v: Any) -> Decimal:
        return to_decimal(v)

    @field_validator("region_id", "user_id", mode="before")
    @classmethod
    def optional_id_as_str(cls, v: Any) -> Optional[str]:
        return str(v) if v not in (None, "") else None

    @field_validator("payment_method", mode="before")
    @classmethod
    def empty_payment_to_none(cls, v: Any) -> Any:
        return v or None

    @field_validator("invoice_type", mode="before")
    @classmethod
    def normalize_invoice(cls, v: Any) -> Any:
        return _normalize_invoice(v)

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def is_card_expense(self) -> bool:
        return (
            self.type == TransactionType.EXPENSE
            and self.payment_method == PaymentMethod.CARD
        )


class _TransactionFields(BaseModel):
    """
    Editable fields shared by new transactions and updates.

    Income is always cash and carries no invoice type; the rule is
    applied here so every write path agrees.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
    type: TransactionType
    transaction_date: date
    description: Optional[str] = Field(default=None, max_length=2000)
    payment_method: Optional[PaymentMethod] = None
    invoice_type: Optional[InvoiceType] = None

    @field_validator("description", mode="before")
    @classmethod
    def empty_description_to_none(cls, v: Any) -> Any:
        return v or None

    @field_validator("invoice_type", mode="before")
    @classmethod
    def normalize_invoice(cls, v: Any) -> Any:
        return _normalize_invoice(v)

    @model_validator(mode="after")
    def apply_type_rules(self):
        if self.type == TransactionType.INCOME:
            self.payment_method = PaymentMethod.CASH
            self.invoice_type = None
        elif self.payment_method is None:
            raise ValueError("Payment method is required for expenses")
        return self

    def _base_record(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "amount": float(self.amount),
            "type": self.type.value,
            "transaction_date": self.transaction_date.isoformat(),
            "description": self.description,
            "payment_method": self.payment_method.value if self.payment_method else None,
            "fatura_tipi": self.invoice_type.value if self.invoice_type else None,
        }


class TransactionDraft(_TransactionFields):
    """A transaction about to be inserted."""

    user_id: str
    region_id: Optional[str] = None
    image_path: Optional[str] = None
    expense_region_info: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def income_has_no_expense_region(self):
        if self.type == TransactionType.INCOME:
            self.expense_region_info = None
        return self

    def to_record(self) -> dict[str, Any]:
        """Row payload for the ``transactions`` table."""
        record = self._base_record()
        record.update({
            "user_id": self.user_id,
            "region_id": self.region_id,
            "image_path": self.image_path,
            "expense_region_info": self.expense_region_info,
        })
        return record


class TransactionChanges(_TransactionFields):
    """Field updates applied to an existing transaction."""

    def to_record(self) -> dict[str, Any]:
        return self._base_record()


class TransactionFilter(BaseModel):
    """
    Filters for a transaction listing.

    ``region_id``, ``user_id`` and ``expense_region_info`` are admin-only;
    the query executor drops them for other roles.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    type: Optional[TransactionType] = None
    payment_method: Optional[PaymentMethod] = None
    invoice_type: Optional[str] = Field(
        default=None,
        description="An InvoiceType value, or 'YOK' for transactions without one"
    )

    region_id: Optional[str] = None
    user_id: Optional[str] = None
    expense_region_info: Optional[str] = None

    search_term: str = ""
    sort_by: SortField = SortField.TRANSACTION_DATE
    sort_order: SortOrder = SortOrder.DESC
    limit: int = Field(default=10000, ge=1)

    @field_validator("invoice_type")
    @classmethod
    def validate_invoice_filter(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if v != NO_INVOICE:
            InvoiceType(v)
        return v

    @field_validator("region_id", "user_id", "expense_region_info", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        return v or None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class Notification(BaseModel):
    """A message broadcast by an administrator to every user."""

    id: str
    message: str
    created_by: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    # Display only, resolved from profiles
    creator_name: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_str(cls, v: Any) -> str:
        return str(v)


class NotificationStatus(BaseModel):
    """Per-user dismissal record of a notification."""

    user_id: str
    notification_id: str
    is_dismissed: bool = True
    dismissed_at: Optional[datetime] = None

    @field_validator("user_id", "notification_id", mode="before")
    @classmethod
    def id_as_str(cls, v: Any) -> str:
        return str(v)


class AudienceMember(BaseModel):
    user_id: str
    full_name: str
    dismissed_at: Optional[datetime] = None


class NotificationAudience(BaseModel):
    """Who has and has not dismissed a notification."""

    dismissed: list[AudienceMember] = Field(default_factory=list)
    not_dismissed: list[AudienceMember] = Field(default_factory=list)


# =============================================================================
# RESULTS
# =============================================================================

class ActionResult(BaseModel):
    """
    Outcome of a user-triggered mutation.

    Messages are free text meant to be shown as-is.
    """

    success: bool
    message: str
    entity_id: Optional[str] = None
    warning: Optional[str] = Field(
        default=None,
        description="Non-blocking notes about the input, shown next to a success"
    )

    @classmethod
    def ok(
        cls,
        message: str,
        entity_id: Optional[str] = None,
        warning: Optional[str] = None,
    ) -> "ActionResult":
        return cls(success=True, message=message, entity_id=entity_id, warning=warning)

    @classmethod
    def fail(cls, message: str) -> "ActionResult":
        return cls(success=False, message=message)


class ValidationIssue(BaseModel):
    """A single validation issue found in form input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating a form."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def has_warnings(self) -> bool:
        return any(issue.severity == "warning" for issue in self.issues)

    @property
    def first_error(self) -> Optional[str]:
        for issue in self.issues:
            if issue.severity == "error":
                return issue.message
        return None
