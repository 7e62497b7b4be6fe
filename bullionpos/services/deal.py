"""
bullionpos/services/deal.py

Deal Assembler: prices counter input into Lines and composes them into a
Transaction record.

 - buy/sell/wholesale: aggregates are sums over lines; a single-line deal is
   also flattened onto the transaction for older consumers
 - trade: settlement = trade-out value - trade-in value (positive: customer
   pays); profit is the margin earned on both legs
 - sales tax: sell deals only, when enabled; a state's exemption threshold
   zeroes the tax for larger subtotals

Also home of the shape accessors get_lines() / get_movements(), which every
other engine uses instead of looking at legacy vs. multi-line records.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from bullionpos.constants import INBOUND_TYPES, OUTBOUND_TYPES, STATE_TAX_RATES
from bullionpos.errors import (
    EmptyDealError,
    InvalidQuantityError,
    UnavailablePriceError,
)
from bullionpos.schemas.pricing import SpotPrices
from bullionpos.schemas.settings import Settings
from bullionpos.schemas.transaction import (
    DealCreate,
    Line,
    LineInput,
    TradeLeg,
    Transaction,
    TxType,
)
from bullionpos.services.normalizer import (
    normalize,
    reconcile_purity,
    require_positive,
    validate_product,
)
from bullionpos.services.pricing import line_profit, line_total, resolve_price, round2

logger = logging.getLogger(__name__)

FLAT_LINE_FIELDS = (
    "metal", "form", "coin_type", "qty", "raw_qty",
    "weight_unit", "scrap_purity", "spot", "price",
)

# ---------------------------------------------------------------------
# Shape accessors
# ---------------------------------------------------------------------

def get_lines(tx: Transaction) -> List[Line]:
    """
    Uniform view of a transaction's priced lines. Legacy records without a
    `lines` array yield one Line built from their flattened fields. Trades
    have no lines; see get_movements().
    """
    if tx.lines:
        return list(tx.lines)
    if tx.type == TxType.TRADE or tx.metal is None or tx.form is None:
        return []
    qty = tx.qty if tx.qty is not None else Decimal("0")
    price = tx.price if tx.price is not None else Decimal("0")
    return [
        Line(
            metal=tx.metal,
            form=tx.form,
            coin_type=tx.coin_type if tx.form == "coins" else None,
            qty=qty,
            raw_qty=tx.raw_qty,
            weight_unit=tx.weight_unit,
            scrap_purity=tx.scrap_purity,
            spot=tx.spot if tx.spot is not None else Decimal("0"),
            price=price,
            total=tx.subtotal if tx.subtotal is not None else tx.total,
            profit=tx.profit or Decimal("0"),
        )
    ]


def get_movements(tx: Transaction) -> List[Tuple[str, TradeLeg]]:
    """
    Metal movements of a transaction as ("in" | "out", line) pairs. Buys and
    trade-ins bring metal in; sells, wholesale and trade-outs send it out.
    """
    if tx.type == TxType.TRADE:
        movements = []
        if tx.trade_in is not None:
            movements.append(("in", tx.trade_in))
        if tx.trade_out is not None:
            movements.append(("out", tx.trade_out))
        return movements
    if tx.type in INBOUND_TYPES:
        return [("in", line) for line in get_lines(tx)]
    if tx.type in OUTBOUND_TYPES:
        return [("out", line) for line in get_lines(tx)]
    return []

# ---------------------------------------------------------------------
# Pricing counter input
# ---------------------------------------------------------------------

def _price_input(item: LineInput, context: str, spot: SpotPrices, settings: Settings) -> dict:
    key = validate_product(item.metal, item.form, item.coin_type)
    purity = reconcile_purity(item.metal, item.scrap_purity) if item.form == "scrap" else None
    qty = normalize(
        item.form, item.metal, item.raw_qty,
        weight_unit=item.weight_unit,
        scrap_purity=purity,
        junk_multiplier=settings.effective_junk_multiplier,
    )
    metal_spot = spot.for_metal(item.metal)
    if metal_spot is None or metal_spot <= 0:
        raise UnavailablePriceError(f"Spot price for {item.metal} is unavailable")

    if item.price is not None:
        price = require_positive(item.price, "Price")
    else:
        price = resolve_price(context, item.metal, item.form, key[2], metal_spot, settings).price_per_oz
        if price <= 0:
            raise InvalidQuantityError(f"Price for {item.metal} {item.form} resolves to zero")

    return dict(
        metal=item.metal,
        form=item.form,
        coin_type=key[2],
        qty=qty,
        raw_qty=item.raw_qty,
        weight_unit=None if item.form == "junk" else item.weight_unit,
        scrap_purity=purity,
        spot=metal_spot,
        price=price,
        total=line_total(price, qty),
    )


def price_line(item: LineInput, type_: str, spot: SpotPrices, settings: Settings) -> Line:
    fields = _price_input(item, type_, spot, settings)
    fields["profit"] = line_profit(fields["price"], fields["spot"], fields["qty"])
    return Line(**fields)


def price_trade_leg(item: LineInput, side: str, spot: SpotPrices, settings: Settings) -> TradeLeg:
    """side is 'trade_in' or 'trade_out'."""
    return TradeLeg(**_price_input(item, side, spot, settings))

# ---------------------------------------------------------------------
# Sales tax
# ---------------------------------------------------------------------

def effective_tax_rate(subtotal: Decimal, settings: Settings) -> Decimal:
    """Percent rate for a sell subtotal, 0 when disabled or exempt."""
    if not settings.tax_enabled:
        return Decimal("0")
    if settings.tax_rate_override is not None:
        return settings.tax_rate_override

    entry = STATE_TAX_RATES.get(settings.tax_state or "")
    if entry is None:
        logger.warning(f"No sales tax rate configured for state {settings.tax_state!r}, charging none")
        return Decimal("0")
    rate, exemption_threshold = entry
    if exemption_threshold is not None and subtotal > exemption_threshold:
        logger.debug(f"Subtotal {subtotal} exceeds {settings.tax_state} exemption threshold {exemption_threshold}")
        return Decimal("0")
    return rate


def apply_tax(subtotal: Decimal, rate: Decimal) -> Tuple[Decimal, Decimal]:
    """Returns (tax_amount, total)."""
    tax_amount = round2(subtotal * rate / Decimal("100"))
    return tax_amount, subtotal + tax_amount

# ---------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------

def _check_line(line: TradeLeg):
    if line.qty is None or line.qty <= 0:
        raise InvalidQuantityError(f"Quantity for {line.metal} {line.form} must be greater than zero")
    if line.spot is None or line.spot <= 0:
        raise UnavailablePriceError(f"Spot price for {line.metal} is unavailable")
    if line.price is None or line.price <= 0:
        raise InvalidQuantityError(f"Price for {line.metal} {line.form} must be greater than zero")


def assemble(
    type_,
    payment: str,
    customer_id: Optional[str],
    lines: Optional[List[Line]] = None,
    trade_in: Optional[TradeLeg] = None,
    trade_out: Optional[TradeLeg] = None,
    settings: Optional[Settings] = None,
    date: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> Transaction:
    """
    Composes priced lines (or the two trade legs) into a new Transaction.
    Refuses to build anything with zero/negative quantities or prices.
    """
    settings = settings or Settings()
    tx_type = TxType(getattr(type_, "value", type_))
    header = dict(
        type=tx_type,
        payment=payment,
        customer_id=customer_id or None,
        notes=notes,
        date=date or datetime.now(timezone.utc),
    )

    if tx_type == TxType.TRADE:
        legs = [leg for leg in (trade_in, trade_out) if leg is not None]
        if not any(leg.qty is not None and leg.qty > 0 for leg in legs):
            raise EmptyDealError("Trade has no items")
        if trade_in is None or trade_out is None:
            raise EmptyDealError("A trade needs both a trade-in and a trade-out item")
        for leg in legs:
            _check_line(leg)

        in_value = trade_in.total
        out_value = trade_out.total
        settlement = out_value - in_value
        profit = round2(
            trade_in.qty * (trade_in.spot - trade_in.price)
            + trade_out.qty * (trade_out.price - trade_out.spot)
        )
        tx = Transaction(
            **header,
            trade_in=trade_in,
            trade_out=trade_out,
            settlement=settlement,
            subtotal=settlement,
            total=settlement,
            profit=profit,
        )
        logger.debug(f"Assembled trade: in={in_value} out={out_value} settlement={settlement}")
        return tx

    lines = list(lines or [])
    if not any(line.qty is not None and line.qty > 0 for line in lines):
        raise EmptyDealError("Deal has no priced lines")
    for line in lines:
        _check_line(line)

    subtotal = sum((line.total for line in lines), Decimal("0"))
    profit = sum((line.profit for line in lines), Decimal("0"))

    fields = dict(header, lines=lines, subtotal=subtotal, total=subtotal, profit=profit)
    if tx_type == TxType.SELL:
        rate = effective_tax_rate(subtotal, settings)
        tax_amount, total = apply_tax(subtotal, rate)
        fields.update(tax_rate=rate, tax_amount=tax_amount, total=total)

    if len(lines) == 1:
        only = lines[0]
        fields.update({name: getattr(only, name) for name in FLAT_LINE_FIELDS})

    tx = Transaction(**fields)
    logger.debug(f"Assembled {tx_type.value} with {len(lines)} line(s): subtotal={subtotal} total={tx.total}")
    return tx


def build_deal(request: DealCreate, spot: SpotPrices, settings: Settings) -> Transaction:
    """Prices every item of a deal request and assembles the Transaction."""
    if request.type == TxType.TRADE:
        if request.trade_in is None and request.trade_out is None:
            raise EmptyDealError("Trade has no items")
        trade_in = price_trade_leg(request.trade_in, "trade_in", spot, settings) if request.trade_in else None
        trade_out = price_trade_leg(request.trade_out, "trade_out", spot, settings) if request.trade_out else None
        return assemble(
            request.type, request.payment, request.customer_id,
            trade_in=trade_in, trade_out=trade_out,
            settings=settings, date=request.date, notes=request.notes,
        )

    if not request.lines:
        raise EmptyDealError("Deal has no priced lines")
    lines = [price_line(item, request.type.value, spot, settings) for item in request.lines]
    return assemble(
        request.type, request.payment, request.customer_id, lines,
        settings=settings, date=request.date, notes=request.notes,
    )
