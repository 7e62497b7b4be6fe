"""
bullionpos/services/pricing.py

Per-ounce price resolution from spot and the dealer's margin tables.

Each pricing context maps to one margin table and a sign: premiums raise the
price above spot, discounts lower it. Trade legs use their own tables.

    sell        sell_prem_*       +
    buy         buy_disc_*        -
    wholesale   wh_disc_*         -
    trade_in    trade_in_disc_*   -
    trade_out   trade_out_prem_*  +

Percent mode: price = spot * (1 + sign * (margin + coin_adj) / 100)
Dollar mode:  price = spot + sign * margin, plus the coin adjustment as a
              percent of spot. For junk the dollar amount is per $1 of face
              value, i.e. margin / junk_multiplier per fine oz.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Optional

from bullionpos.constants import MARGIN_FORM_FOR, PRE33_ADJUSTMENT_KEY, PRE33_COIN_TYPES
from bullionpos.errors import InvalidProductError, UnavailablePriceError
from bullionpos.schemas.pricing import PriceQuote
from bullionpos.schemas.settings import Settings
from bullionpos.services.normalizer import to_decimal, validate_product

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


class MarginRule(NamedTuple):
    table: str
    sign: int


PRICING_RULES = {
    "sell": MarginRule("sell_prem", 1),
    "buy": MarginRule("buy_disc", -1),
    "wholesale": MarginRule("wh_disc", -1),
    "trade_in": MarginRule("trade_in_disc", -1),
    "trade_out": MarginRule("trade_out_prem", 1),
}


def round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def coin_adjustment_key(form: str, coin_type: Optional[str]) -> Optional[str]:
    """All pre-1933 denominations share the 'pre33' adjustment."""
    if form != "coins" or not coin_type:
        return None
    if coin_type in PRE33_COIN_TYPES:
        return PRE33_ADJUSTMENT_KEY
    return coin_type


def resolve_price(
    type_: str,
    metal: str,
    form: str,
    coin_type: Optional[str],
    spot,
    settings: Settings,
) -> PriceQuote:
    """
    Returns price per fine oz and the margin as a signed fraction of spot
    (buy coins at 3% + pre-33 2% -> -0.05). A zero or unset spot blocks
    pricing rather than quoting $0.
    """
    rule = PRICING_RULES.get(getattr(type_, "value", type_))
    if rule is None:
        raise InvalidProductError(f"No margin table for transaction type {type_!r}")
    validate_product(metal, form, coin_type)

    spot_dec = to_decimal(spot if spot is not None else 0, "Spot price")
    if spot_dec <= 0:
        raise UnavailablePriceError(f"Spot price for {metal} is unavailable")

    margin_form = MARGIN_FORM_FOR[form]
    margin, mode = settings.margin(rule.table, margin_form)
    adjustment = settings.coin_adjustment(coin_adjustment_key(form, coin_type))
    sign = Decimal(rule.sign)
    junk_multiplier = settings.effective_junk_multiplier

    if mode == "dollar":
        per_oz_margin = margin / junk_multiplier if form == "junk" else margin
        price = spot_dec + sign * per_oz_margin + sign * spot_dec * adjustment / HUNDRED
    else:
        price = spot_dec * (1 + sign * (margin + adjustment) / HUNDRED)

    if price < 0:
        logger.warning(f"{rule.table}_{margin_form} margin drives {metal} {form} below zero, clamping")
        price = Decimal("0")

    price = round2(price)
    unit_price = round2(price * junk_multiplier) if form == "junk" else price
    margin_fraction = (price - spot_dec) / spot_dec

    logger.debug(
        f"Resolved {rule.table}/{margin_form} ({mode}) {metal} {form} {coin_type or ''}: "
        f"spot={spot_dec} price={price} margin={margin_fraction}"
    )
    return PriceQuote(price_per_oz=price, margin_fraction=margin_fraction, unit_price=unit_price)


def line_total(price: Decimal, qty: Decimal) -> Decimal:
    return round2(price * qty)


def line_profit(price: Decimal, spot: Decimal, qty: Decimal) -> Decimal:
    """Shop's margin on a line; non-negative by construction of the tables."""
    return round2(abs(price - spot) * qty)
