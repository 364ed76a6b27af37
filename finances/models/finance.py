"""
Core Data Models for Finances

These models define the schemas for every collection the application
persists. They are designed to:
1. Enforce non-negative amounts and required fields at runtime
2. Serialize to the same JSON document for both storage backends
3. Carry their own generated identifier

DESIGN DECISION: Documents are stored with camelCase keys so data written
by earlier versions of the app (and by the browser store) loads unchanged.
Python code uses the snake_case attribute names.
"""

import datetime as dt
import secrets
import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Optional, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_id() -> str:
    """
    Generate a document identifier.

    Millisecond timestamp in base 36 followed by random base-36 characters,
    so identifiers sort roughly by creation time.
    """
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(11))
    return timestamp + suffix


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


CENTS = Decimal("0.01")


def to_cents(value: Any) -> Any:
    """
    Round an incoming amount to cents.

    Documents written by the browser store hold float amounts such as
    0.30000000000000004. Values that are not numbers are passed through
    for pydantic to reject.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        return value
    try:
        return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return value


Money = Annotated[Decimal, BeforeValidator(to_cents)]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class WishPriority(str, Enum):
    """How much the user wants a wish."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class WishStatus(str, Enum):
    """
    Wish lifecycle.

    Only ACHIEVED wishes are skipped by the affordability check.
    """
    PENDING = "pending"
    SAVING = "saving"
    ACHIEVED = "achieved"


# =============================================================================
# BASE DOCUMENT
# =============================================================================

DocumentT = TypeVar("DocumentT", bound="Document")


class Document(BaseModel):
    """
    Base for every persisted entity.

    Each document is identified by a generated string id that is unique
    within its collection.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: str = Field(
        default_factory=generate_id,
        min_length=1,
        description="Unique identifier within the collection"
    )

    def to_document(self) -> dict[str, Any]:
        """Convert to the JSON document stored by both backends."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls: type[DocumentT], document: dict[str, Any]) -> DocumentT:
        """Build from a stored JSON document."""
        return cls.model_validate(document)

    def with_changes(self: DocumentT, **changes: Any) -> DocumentT:
        """
        Return a re-validated copy with some fields changed.

        The identifier cannot be changed.
        """
        if "id" in changes:
            raise ValueError("Document id cannot be changed")
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown fields for {type(self).__name__}: {sorted(unknown)}")
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def with_new_id(self: DocumentT) -> DocumentT:
        """Return a copy carrying a freshly generated identifier."""
        return self.model_copy(update={"id": generate_id()})


# =============================================================================
# ENTITIES
# =============================================================================

class Transaction(Document):
    """A single income or expense entry."""

    type: TransactionType = Field(
        ...,
        description="Income or expense"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name (matched against Category.name)"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Money = Field(
        ...,
        ge=0,
        decimal_places=2,
    )
    is_fixed: bool = Field(
        default=False,
        description="Fixed (expected every month) or variable"
    )
    date: dt.date = Field(
        default_factory=dt.date.today,
        description="Date the money moved"
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
    )


class MonthlyIncome(Document):
    """A recurring income received on a fixed day every month."""

    name: str = Field(..., min_length=1, max_length=200)
    amount: Money = Field(..., ge=0, decimal_places=2)
    day_of_month: int = Field(
        ...,
        ge=1,
        le=31,
        description="Day of the month the income is received"
    )
    is_active: bool = True


class MonthlyExpense(Document):
    """A recurring expense charged on a fixed day every month."""

    name: str = Field(..., min_length=1, max_length=200)
    amount: Money = Field(..., ge=0, decimal_places=2)
    day_of_month: int = Field(
        ...,
        ge=1,
        le=31,
        description="Day of the month the expense is charged"
    )
    cancellation_link: str = Field(
        default="",
        max_length=500,
        description="Where to cancel the subscription"
    )
    is_active: bool = True


class Category(Document):
    """
    A named expense bucket with a spending limit.

    DESIGN DECISION: ``spent`` is derived from the expense transactions
    whose category matches ``name``. It is stored for display only and is
    recomputed whenever transactions or categories change.
    """

    name: str = Field(..., min_length=1, max_length=100)
    spent: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Running spend (derived)"
    )
    max_budget: Money = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Spending limit"
    )
    color: str = Field(
        default="#94a3b8",
        pattern=r"^#[0-9a-fA-F]{6}$",
        description="Display color (hex)"
    )


class Wish(Document):
    """A goal purchase tracked against the available balance."""

    name: str = Field(..., min_length=1, max_length=200)
    estimated_price: Money = Field(
        default=Decimal("0"),
        ge=0,
        decimal_places=2,
    )
    category: str = Field(default="Other", max_length=100)
    priority: WishPriority = WishPriority.MEDIUM
    status: WishStatus = WishStatus.PENDING
    target_date: Optional[dt.date] = None
    purchase_link: str = Field(default="", max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)


class ShoppingItem(Document):
    """An entry on the shopping list."""

    name: str = Field(..., min_length=1, max_length=200)
    price: Money = Field(..., ge=0, decimal_places=2)
    is_purchased: bool = False
    created_at: dt.datetime = Field(default_factory=utc_now)
