"""
bullionpos/schemas/pricing.py

Spot prices and price quotes.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SpotPrices(BaseModel):
    """$ per troy ounce; 0 means the source had no price for that metal."""
    gold: Decimal = Decimal("0")
    silver: Decimal = Decimal("0")

    def for_metal(self, metal: str) -> Decimal:
        return self.silver if metal == "silver" else self.gold


class PriceQuote(BaseModel):
    """
    Resolver output. `unit_price` is per troy oz, except for junk where it is
    per $1 of face value.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    price_per_oz: Decimal
    margin_fraction: Decimal
    unit_price: Decimal


class QuoteRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: str
    metal: str
    form: str
    coin_type: Optional[str] = None
    raw_qty: Decimal = Decimal("1")
    weight_unit: str = "toz"
    scrap_purity: Optional[str] = None
    spot: Optional[Decimal] = None


class QuoteResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: str
    metal: str
    form: str
    coin_type: Optional[str] = None
    scrap_purity: Optional[str] = None
    qty: Decimal
    spot: Decimal
    price_per_oz: Decimal
    unit_price: Decimal
    margin_fraction: Decimal
    total: Decimal
    exceeds_alert_threshold: bool = False
