"""
bullionpos/schemas/transaction.py

Pydantic v2 models for deals and the stored transaction history.

Stored records are camelCase JSON (customerId, coinType, form1099BFlag, ...)
and may come in two shapes:
 - current: a `lines` array, with a single-line deal also flattened on top
 - legacy: no `lines`, one line's fields flattened onto the transaction

Services never branch on the shape; they call services.deal.get_lines().

- TxType, PaymentMethod: enums for the deal header
- TradeLeg: one priced item of a trade (no profit of its own)
- Line: a priced line of a buy/sell/wholesale deal
- Transaction: the stored record
- LineInput, DealCreate: request bodies for pricing/assembling a deal
- LineEdit, TransactionUpdate: request bodies for edits (full overwrite)
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from bullionpos.schemas.pricing import SpotPrices

# -------------------------------------------------
# ENUMS
# -------------------------------------------------

class TxType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    WHOLESALE = "wholesale"
    TRADE = "trade"


class PaymentMethod(str, Enum):
    CASH = "cash"
    WIRE = "wire"
    CHECK = "check"
    CARD = "card"
    OTHER = "other"


class ComplianceFilter(str, Enum):
    FLAGGED_1099B = "1099b-flagged"
    NEEDS_FILING_1099B = "1099b-needs-filing"
    FILED_1099B = "1099b-filed"
    FLAGGED_8300 = "8300-flagged"
    NEEDS_REVIEW = "needs-review"
    REVIEWED_8300 = "8300-reviewed"
    ANY = "any-compliance"


CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _blank_to_none(v):
    """Legacy records use '' for 'no coin type' / 'walk-in customer'."""
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v

# -------------------------------------------------
# LINES
# -------------------------------------------------

class TradeLeg(BaseModel):
    model_config = CAMEL

    metal: str
    form: str
    coin_type: Optional[str] = None
    qty: Decimal  # canonical fine troy ounces
    raw_qty: Optional[Decimal] = None
    weight_unit: Optional[str] = None
    scrap_purity: Optional[str] = None
    spot: Decimal
    price: Decimal  # $ per fine oz
    total: Decimal

    @field_validator("coin_type", "scrap_purity", "weight_unit", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return _blank_to_none(v)


class Line(TradeLeg):
    profit: Decimal = Decimal("0")

# -------------------------------------------------
# TRANSACTION
# -------------------------------------------------

class Transaction(BaseModel):
    """
    Stored deal. Aggregates (total/profit/subtotal/tax) are always derived
    from the lines; compliance fields are derived annotations except for the
    human review state (form1099BFiled, form8300Reviewed).
    """
    model_config = CAMEL

    id: str = Field(default_factory=lambda: uuid4().hex)
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    type: TxType
    payment: str = PaymentMethod.CASH.value
    customer_id: Optional[str] = None
    notes: Optional[str] = None

    lines: Optional[List[Line]] = None

    # Flattened single-line fields (legacy shape, or single-line deals)
    metal: Optional[str] = None
    form: Optional[str] = None
    coin_type: Optional[str] = None
    qty: Optional[Decimal] = None
    raw_qty: Optional[Decimal] = None
    weight_unit: Optional[str] = None
    scrap_purity: Optional[str] = None
    spot: Optional[Decimal] = None
    price: Optional[Decimal] = None

    total: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")
    subtotal: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None

    # Trade (two-sided swap)
    trade_in: Optional[TradeLeg] = None
    trade_out: Optional[TradeLeg] = None
    settlement: Optional[Decimal] = None

    # Compliance annotations, absent unless set
    form_1099b_flag: Optional[bool] = Field(default=None, alias="form1099BFlag")
    form_1099b_filed: Optional[bool] = Field(default=None, alias="form1099BFiled")
    form_1099b_reason: Optional[str] = Field(default=None, alias="form1099BReason")
    form_8300_flag: Optional[bool] = Field(default=None, alias="form8300Flag")
    form_8300_reviewed: Optional[bool] = Field(default=None, alias="form8300Reviewed")

    @field_validator("customer_id", "coin_type", "scrap_purity", "weight_unit", "notes", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return _blank_to_none(v)

    @field_validator("date")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    def to_record(self) -> dict:
        """camelCase JSON-ready dict, None fields omitted."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

# -------------------------------------------------
# REQUEST BODIES
# -------------------------------------------------

class LineInput(BaseModel):
    """
    One item as entered at the counter. `raw_qty` is in the form's input
    unit: troy oz or grams for coins/bars/rounds/scrap, dollars of face value
    for junk. A `price` overrides the resolver's $/oz price.
    """
    model_config = CAMEL

    metal: str
    form: str
    coin_type: Optional[str] = None
    raw_qty: Decimal
    weight_unit: str = "toz"
    scrap_purity: Optional[str] = None
    price: Optional[Decimal] = None

    @field_validator("coin_type", "scrap_purity", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return _blank_to_none(v)


class DealCreate(BaseModel):
    model_config = CAMEL

    type: TxType
    payment: str = PaymentMethod.CASH.value
    customer_id: Optional[str] = None
    notes: Optional[str] = None
    date: Optional[datetime] = None
    lines: List[LineInput] = Field(default_factory=list)
    trade_in: Optional[LineInput] = None
    trade_out: Optional[LineInput] = None
    # Omitted -> the router asks the spot price source
    spot: Optional[SpotPrices] = None

    @field_validator("customer_id", "notes", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return _blank_to_none(v)

    @field_validator("date")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class LineEdit(BaseModel):
    model_config = CAMEL

    metal: str
    form: str
    coin_type: Optional[str] = None
    qty: Decimal
    spot: Decimal
    price: Decimal

    @field_validator("coin_type", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return _blank_to_none(v)


class TransactionUpdate(BaseModel):
    """
    Edit form. Header fields overwrite the record; for a single-line or legacy
    deal the flat line fields overwrite its only line, for a multi-line deal
    `lines` replaces them all. Review flags are set by the compliance desk.
    """
    model_config = CAMEL

    date: Optional[datetime] = None
    type: Optional[TxType] = None
    payment: Optional[str] = None
    customer_id: Optional[str] = None
    notes: Optional[str] = None

    metal: Optional[str] = None
    form: Optional[str] = None
    coin_type: Optional[str] = None
    qty: Optional[Decimal] = None
    spot: Optional[Decimal] = None
    price: Optional[Decimal] = None
    lines: Optional[List[LineEdit]] = None

    form_1099b_filed: Optional[bool] = Field(default=None, alias="form1099BFiled")
    form_8300_reviewed: Optional[bool] = Field(default=None, alias="form8300Reviewed")

    @field_validator("customer_id", "notes", "coin_type", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return _blank_to_none(v)

    @field_validator("date")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)
