"""
Core Data Models for Ledgerbook

These models define the schemas for every record in the ledger.
They are designed to:
1. Make each transaction kind carry exactly the fields it needs
2. Provide clear validation error messages for form input
3. Serialize to the same JSON shape the stored collections use
4. Stay immutable once created - edits replace whole records

DESIGN DECISION: A transaction is a tagged union keyed by ``type``.
A ``transfer`` simply has no ``person`` field and a ``delivery`` has no
``amount``, so a "wrong field for this type" record cannot be built.

DESIGN DECISION: Two tiers of schema.
``*Transaction`` models read stored records and only insist on what
balances and reports need (parties, a numeric amount, a known currency
and type). ``*Entry`` models add the form rules (order number pattern,
description length, rate currency, positive amounts) and gate every
create and edit. Records written before a rule existed still count.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
    field_validator,
    model_validator,
)


def _decimal_to_json(value: Decimal) -> Union[int, float]:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# Stored collections keep plain JSON numbers
Money = Annotated[Decimal, PlainSerializer(_decimal_to_json, when_used="json")]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Currency(str, Enum):
    """
    Supported currencies.

    Closed set - not user-extensible.
    """
    USD = "usd"
    CNY = "cny"
    IRR = "irr"

    @property
    def symbol(self) -> str:
        return CURRENCY_INFO[self].symbol

    @property
    def label_fa(self) -> str:
        return CURRENCY_INFO[self].label_fa

    @property
    def label_zh(self) -> str:
        return CURRENCY_INFO[self].label_zh

    @property
    def accepts_rate(self) -> bool:
        """Only foreign currencies carry a conversion rate."""
        return self in (Currency.USD, Currency.CNY)


class CurrencyInfo(BaseModel):
    """Display metadata for a currency."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    label: str
    label_fa: str
    label_zh: str


CURRENCY_INFO: dict[Currency, CurrencyInfo] = {
    Currency.USD: CurrencyInfo(symbol="$", label="US dollar", label_fa="دلار", label_zh="美元"),
    Currency.CNY: CurrencyInfo(symbol="¥", label="Yuan", label_fa="یوان", label_zh="元"),
    Currency.IRR: CurrencyInfo(symbol="IRR", label="Toman", label_fa="تومان", label_zh="图曼"),
}


class TransactionType(str, Enum):
    """Transaction kinds, used as the union discriminator."""
    RECEIVE = "receive"
    PAY = "pay"
    TRANSFER = "transfer"
    BUY = "buy"
    DELIVERY = "delivery"


class OrderStatus(str, Enum):
    """
    Status of a purchase order entry.

    Freely editable in any direction - there is no enforced workflow.
    """
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionBase(BaseModel):
    """
    Fields shared by every transaction kind.

    ``id`` is generated on the client and is the record's identity for
    edit and delete; filtered and sorted views never rely on positions.
    A stored record without a ``date`` stays undated.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: UUID = Field(
        default_factory=uuid4,
        description="Record identity"
    )
    user: Optional[str] = Field(
        default=None,
        description="Username of the creator"
    )
    date: Optional[datetime] = Field(
        default=None,
        description="When the transaction was recorded (UTC)"
    )
    description: str = Field(
        default="",
        description="Free-text note"
    )

    @field_validator("date")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps are taken as UTC so all dates compare."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def sort_date(self) -> datetime:
        """Date used for ordering; undated records sort as the oldest."""
        return self.date if self.date is not None else UNDATED

    @property
    def parties(self) -> tuple[str, ...]:
        """Persons this record refers to."""
        return ()

    def ledger_entries(self) -> tuple[tuple[str, Currency, Decimal], ...]:
        """Signed (person, currency, delta) contributions to balances."""
        return ()

    def search_keys(self) -> tuple[str, ...]:
        """Identifiers matched by free-text report search."""
        return self.parties

    def to_record(self) -> dict[str, Any]:
        """Serialize to the stored JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


UNDATED = datetime.min.replace(tzinfo=timezone.utc)


class ReceiveTransaction(TransactionBase):
    """Cash received from a person - credits their balance."""

    type: Literal["receive"] = "receive"
    person: str = Field(..., min_length=1)
    amount: Money
    currency: Currency
    rate: Optional[Money] = Field(
        default=None,
        description="Conversion rate against the reference currency"
    )
    sum: Optional[Money] = Field(
        default=None,
        description="amount x rate"
    )

    @model_validator(mode="before")
    @classmethod
    def derive_sum(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        rate = data.get("rate")
        if rate in (None, "") or data.get("sum") not in (None, ""):
            return data
        try:
            derived = Decimal(str(data["amount"])) * Decimal(str(rate))
        except (KeyError, InvalidOperation, TypeError, ValueError):
            # Field validation reports the bad amount or rate
            return data
        return {**data, "sum": derived}

    @property
    def parties(self) -> tuple[str, ...]:
        return (self.person,)

    def ledger_entries(self) -> tuple[tuple[str, Currency, Decimal], ...]:
        return ((self.person, self.currency, self.amount),)


class PayTransaction(TransactionBase):
    """Cash paid out on behalf of a person - debits their balance."""

    type: Literal["pay"] = "pay"
    person: str = Field(..., min_length=1)
    amount: Money
    currency: Currency
    rate: Optional[Money] = Field(
        default=None,
        description="Rate used when the payment was part of a conversion"
    )

    @property
    def parties(self) -> tuple[str, ...]:
        return (self.person,)

    def ledger_entries(self) -> tuple[tuple[str, Currency, Decimal], ...]:
        return ((self.person, self.currency, -self.amount),)


class TransferTransaction(TransactionBase):
    """Money moved between two persons in one currency."""

    type: Literal["transfer"] = "transfer"
    from_person: str = Field(..., alias="from", min_length=1)
    to_person: str = Field(..., alias="to", min_length=1)
    amount: Money
    currency: Currency

    @property
    def parties(self) -> tuple[str, ...]:
        return (self.from_person, self.to_person)

    def ledger_entries(self) -> tuple[tuple[str, Currency, Decimal], ...]:
        return (
            (self.from_person, self.currency, -self.amount),
            (self.to_person, self.currency, self.amount),
        )


class BuyTransaction(TransactionBase):
    """A purchase order line - debits the buyer."""

    type: Literal["buy"] = "buy"
    person: str = Field(..., min_length=1)
    amount: Money
    currency: Currency
    order_number: str = Field(..., alias="orderNumber", min_length=1)
    category: str = Field(
        default="",
        description="Category key; may outlive the category itself"
    )
    status: OrderStatus = OrderStatus.ACTIVE

    @property
    def parties(self) -> tuple[str, ...]:
        return (self.person,)

    def ledger_entries(self) -> tuple[tuple[str, Currency, Decimal], ...]:
        return ((self.person, self.currency, -self.amount),)

    def search_keys(self) -> tuple[str, ...]:
        return (self.person, self.order_number)


class DeliveryTransaction(TransactionBase):
    """
    A shipped package record.

    Tracked separately from money - it never touches balances.
    """

    type: Literal["delivery"] = "delivery"
    delivery_number: str = Field(..., alias="deliveryNumber", min_length=1)
    box_count: int = Field(default=0, alias="boxCount")
    weight: Money = Decimal("0")
    receipt_number: str = Field(default="", alias="receiptNumber")
    order_number: Optional[str] = Field(default=None, alias="orderNumber")
    receipt_image: Optional[str] = Field(default=None, alias="receiptImage")
    boxes_image: Optional[str] = Field(default=None, alias="boxesImage")

    def search_keys(self) -> tuple[str, ...]:
        keys = [self.delivery_number]
        if self.order_number:
            keys.append(self.order_number)
        return tuple(keys)


Transaction = Annotated[
    Union[
        ReceiveTransaction,
        PayTransaction,
        TransferTransaction,
        BuyTransaction,
        DeliveryTransaction,
    ],
    Field(discriminator="type"),
]

TransactionAdapter: TypeAdapter = TypeAdapter(Transaction)


def parse_transaction(data: Any) -> Transaction:
    """
    Read a stored record.

    Raises:
        pydantic.ValidationError: if the record lacks a party, a numeric
            amount, a known currency or a known type
    """
    if isinstance(data, TransactionBase):
        return data
    return TransactionAdapter.validate_python(data)


# =============================================================================
# ENTRIES - Rules for records being created or edited
# =============================================================================

class ReceiveEntry(ReceiveTransaction):
    date: datetime = Field(default_factory=utcnow)
    description: str = Field(default="", max_length=500)
    amount: Money = Field(..., gt=0)
    rate: Optional[Money] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def rate_only_for_foreign_currency(self) -> "ReceiveEntry":
        if self.rate is not None and not self.currency.accepts_rate:
            raise ValueError(
                f"Rate only applies to usd or cny receipts, not {self.currency.value}"
            )
        return self


class PayEntry(PayTransaction):
    date: datetime = Field(default_factory=utcnow)
    description: str = Field(default="", max_length=500)
    amount: Money = Field(..., gt=0)
    rate: Optional[Money] = Field(default=None, gt=0)


class TransferEntry(TransferTransaction):
    date: datetime = Field(default_factory=utcnow)
    description: str = Field(default="", max_length=500)
    amount: Money = Field(..., gt=0)

    @model_validator(mode="after")
    def distinct_parties(self) -> "TransferEntry":
        if self.from_person == self.to_person:
            raise ValueError("Sender and receiver must be different persons")
        return self


class BuyEntry(BuyTransaction):
    date: datetime = Field(default_factory=utcnow)
    description: str = Field(default="", max_length=500)
    amount: Money = Field(..., gt=0)
    order_number: str = Field(
        ...,
        alias="orderNumber",
        min_length=1,
        max_length=50,
        pattern=r"^[A-Za-z0-9-]+$",
    )
    category: str = Field(..., min_length=1)


class DeliveryEntry(DeliveryTransaction):
    date: datetime = Field(default_factory=utcnow)
    description: str = Field(default="", max_length=500)
    box_count: int = Field(..., alias="boxCount", gt=0)
    weight: Money = Field(..., gt=0)
    receipt_number: str = Field(..., alias="receiptNumber", min_length=1)


TransactionEntry = Annotated[
    Union[ReceiveEntry, PayEntry, TransferEntry, BuyEntry, DeliveryEntry],
    Field(discriminator="type"),
]

EntryAdapter: TypeAdapter = TypeAdapter(TransactionEntry)


def parse_entry(data: Any) -> Transaction:
    """
    Check a new or edited record against the form rules.

    Returns the stored-model form of the record, with a date filled in
    when the input had none.

    Raises:
        pydantic.ValidationError: if the record is incomplete or invalid
    """
    if isinstance(data, TransactionBase):
        data = data.model_dump(by_alias=True, exclude_none=True)
    entry = EntryAdapter.validate_python(data)
    return TransactionAdapter.validate_python(
        entry.model_dump(by_alias=True, exclude_none=True)
    )


# =============================================================================
# CATEGORIES
# =============================================================================

class Category(BaseModel):
    """
    A purchase category.

    Transactions reference categories by ``key``; deleting a category
    leaves those references in place.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    key: str = Field(..., min_length=1, max_length=100)
    label: str = Field(..., min_length=1, max_length=100)


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(key="material", label="Raw materials"),
    Category(key="shipping", label="Shipping"),
    Category(key="packaging", label="Packaging"),
    Category(key="other", label="Other"),
)


def category_label(categories: tuple[Category, ...], key: str) -> str:
    """Display label for a category key, falling back to the key itself."""
    for category in categories:
        if category.key == key:
            return category.label
    return key


# =============================================================================
# BACKUP
# =============================================================================

class Backup(BaseModel):
    """
    A whole-state snapshot as written by export and read by import.

    Any top-level collection that is present replaces the current one
    wholesale; absent collections are left alone. ``model_fields_set``
    tells the two apart.
    """
    model_config = ConfigDict(extra="ignore")

    transactions: Optional[list[Transaction]] = None
    persons: Optional[list[str]] = None
    products: Optional[list[dict[str, Any]]] = None
    settings: Optional[dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("persons")
    @classmethod
    def persons_unique(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is None:
            return v
        names = [name.strip() for name in v]
        if any(not name for name in names):
            raise ValueError("Person names cannot be empty")
        if len(set(names)) != len(names):
            raise ValueError("Person names must be unique")
        return names

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
