"""
bullionpos/schemas/settings.py

Dealer Settings, stored as a single JSON document under the `settings` key.
Field names are snake_case in Python and camelCase on the wire / in storage
(sellPremCoins, buyDiscBars, premiumModes, ...), so documents written by the
original browser app load unchanged.

Sanitisation happens in the validators, so every Settings instance is safe
to price with:
 - negative margins, coin adjustments, thresholds, reorder points -> 0
 - junkMultiplier that is zero, negative or not a number -> 0.715
 - premiumModes values other than 'percent'/'dollar' -> 'percent'
"""

from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from bullionpos.constants import (
    COIN_ADJUSTMENT_KEYS,
    DEFAULT_JUNK_MULTIPLIER,
)

PREMIUM_MODES = ("percent", "dollar")


def _non_negative(value) -> Decimal:
    """Coerce to Decimal and clamp at zero. None and blanks count as zero."""
    if value is None or value == "":
        return Decimal("0")
    try:
        dec = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not dec.is_finite() or dec < 0:
        return Decimal("0")
    return dec


class ReorderPoints(BaseModel):
    """Minimum on-hand quantity per product bucket; 0 disables the alert."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    gold_coins: Decimal = Decimal("0")
    gold_bars: Decimal = Decimal("0")
    gold_rounds: Decimal = Decimal("0")
    gold_scrap: Decimal = Decimal("0")
    silver_coins: Decimal = Decimal("0")
    silver_bars: Decimal = Decimal("0")
    silver_rounds: Decimal = Decimal("0")
    silver_junk: Decimal = Decimal("0")
    silver_scrap: Decimal = Decimal("0")

    @field_validator("*", mode="before")
    @classmethod
    def clamp_points(cls, v):
        return _non_negative(v)


class Settings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    shop_name: str = "Bullion Shop"

    # Standard margin tables, one column per margin form
    sell_prem_coins: Decimal = Decimal("7")
    sell_prem_bars: Decimal = Decimal("5")
    sell_prem_scrap: Decimal = Decimal("3")
    sell_prem_junk: Decimal = Decimal("7")

    buy_disc_coins: Decimal = Decimal("3")
    buy_disc_bars: Decimal = Decimal("5")
    buy_disc_scrap: Decimal = Decimal("8")
    buy_disc_junk: Decimal = Decimal("3")

    wh_disc_coins: Decimal = Decimal("1")
    wh_disc_bars: Decimal = Decimal("2")
    wh_disc_scrap: Decimal = Decimal("3")
    wh_disc_junk: Decimal = Decimal("1")

    # Trade tables, independent of the buy/sell columns
    trade_in_disc_coins: Decimal = Decimal("3")
    trade_in_disc_bars: Decimal = Decimal("5")
    trade_in_disc_scrap: Decimal = Decimal("8")
    trade_in_disc_junk: Decimal = Decimal("3")

    trade_out_prem_coins: Decimal = Decimal("7")
    trade_out_prem_bars: Decimal = Decimal("5")
    trade_out_prem_scrap: Decimal = Decimal("3")
    trade_out_prem_junk: Decimal = Decimal("7")

    # camelCase margin field name -> 'percent' | 'dollar'; absent means percent
    premium_modes: Dict[str, str] = Field(default_factory=dict)

    coin_adjustments: Dict[str, Decimal] = Field(
        default_factory=lambda: {key: Decimal("0") for key in COIN_ADJUSTMENT_KEYS}
    )

    junk_multiplier: Decimal = DEFAULT_JUNK_MULTIPLIER
    junk_mult_override: Optional[Decimal] = None

    # Large-quantity alert levels in troy ounces (0 disables)
    thresh_gold: Decimal = Decimal("0")
    thresh_silver: Decimal = Decimal("0")

    reorder_points: ReorderPoints = Field(default_factory=ReorderPoints)

    tax_enabled: bool = False
    tax_state: Optional[str] = None
    tax_rate_override: Optional[Decimal] = None

    # -------------------------------------------------
    # Sanitisation
    # -------------------------------------------------
    @field_validator(
        "sell_prem_coins", "sell_prem_bars", "sell_prem_scrap", "sell_prem_junk",
        "buy_disc_coins", "buy_disc_bars", "buy_disc_scrap", "buy_disc_junk",
        "wh_disc_coins", "wh_disc_bars", "wh_disc_scrap", "wh_disc_junk",
        "trade_in_disc_coins", "trade_in_disc_bars", "trade_in_disc_scrap", "trade_in_disc_junk",
        "trade_out_prem_coins", "trade_out_prem_bars", "trade_out_prem_scrap", "trade_out_prem_junk",
        "thresh_gold", "thresh_silver",
        mode="before",
    )
    @classmethod
    def clamp_non_negative(cls, v):
        return _non_negative(v)

    @field_validator("coin_adjustments", mode="before")
    @classmethod
    def clamp_adjustments(cls, v):
        if not isinstance(v, dict):
            v = {}
        cleaned = {key: _non_negative(val) for key, val in v.items()}
        for key in COIN_ADJUSTMENT_KEYS:
            cleaned.setdefault(key, Decimal("0"))
        return cleaned

    @field_validator("premium_modes", mode="before")
    @classmethod
    def known_modes_only(cls, v):
        if not isinstance(v, dict):
            return {}
        return {
            key: (mode if mode in PREMIUM_MODES else "percent")
            for key, mode in v.items()
        }

    @field_validator("junk_multiplier", mode="before")
    @classmethod
    def valid_junk_multiplier(cls, v):
        try:
            dec = Decimal(str(v))
        except (InvalidOperation, ValueError):
            return DEFAULT_JUNK_MULTIPLIER
        if not dec.is_finite() or dec <= 0:
            return DEFAULT_JUNK_MULTIPLIER
        return dec

    @field_validator("junk_mult_override", "tax_rate_override", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        if v is None or v == "":
            return None
        try:
            dec = Decimal(str(v))
        except (InvalidOperation, ValueError):
            return None
        if not dec.is_finite() or dec < 0:
            return None
        return dec

    @field_validator("tax_state", mode="before")
    @classmethod
    def upper_state(cls, v):
        if not v:
            return None
        return str(v).strip().upper()

    # -------------------------------------------------
    # Lookups used by the pricing resolver
    # -------------------------------------------------
    @property
    def effective_junk_multiplier(self) -> Decimal:
        if self.junk_mult_override is not None and self.junk_mult_override > 0:
            return self.junk_mult_override
        return self.junk_multiplier

    def margin(self, table: str, margin_form: str) -> Tuple[Decimal, str]:
        """
        Returns (value, mode) for a margin column, e.g. ("buy_disc", "coins")
        -> (Decimal("3"), "percent"). Mode keys use the stored camelCase name.
        """
        field = f"{table}_{margin_form}"
        value = getattr(self, field)
        mode = self.premium_modes.get(to_camel(field), "percent")
        return value, mode

    def coin_adjustment(self, adjustment_key: Optional[str]) -> Decimal:
        if not adjustment_key:
            return Decimal("0")
        return self.coin_adjustments.get(adjustment_key, Decimal("0"))
