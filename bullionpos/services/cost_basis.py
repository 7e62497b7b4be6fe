"""
bullionpos/services/cost_basis.py

FIFO cost basis and running inventory, derived on demand from the
transaction list (nothing is stored).

Every inbound movement (buy line, trade-in leg) pushes a lot {qty, unit_cost}
onto its product key's queue; every outbound movement (sell/wholesale line,
trade-out leg) consumes the oldest lots first, splitting a lot when the sale
is smaller. Realized P&L per sale = the recorded line total - consumed cost.

Selling more than the queue holds is a data-integrity condition: the queue is
run to empty, the remainder is costed at zero and a DataIntegrityWarning is
logged and recorded on the report.
"""

import logging
from collections import defaultdict, deque
from decimal import Decimal
from typing import Deque, Dict, List, Optional

from bullionpos.errors import DataIntegrityWarning
from bullionpos.schemas.calculation import (
    CostBasisReport,
    FormSummary,
    IntegrityIssue,
    InventoryItem,
)
from bullionpos.schemas.pricing import SpotPrices
from bullionpos.schemas.settings import Settings
from bullionpos.schemas.transaction import Transaction
from bullionpos.services.deal import get_movements
from bullionpos.services.normalizer import ProductKey, product_key
from bullionpos.services.pricing import round2

logger = logging.getLogger(__name__)


class Lot:
    __slots__ = ("tx_id", "qty", "unit_cost")

    def __init__(self, tx_id: str, qty: Decimal, unit_cost: Decimal):
        self.tx_id = tx_id
        self.qty = qty
        self.unit_cost = unit_cost


def _in_date_order(transactions: List[Transaction]) -> List[Transaction]:
    # sorted() is stable, so same-timestamp records keep their entry order
    return sorted(transactions, key=lambda tx: tx.date)


def _consume_fifo(queue: Deque[Lot], qty: Decimal):
    """
    Takes `qty` from the front of the queue. Returns (consumed_cost, unmatched_qty).
    """
    remaining = qty
    cost = Decimal("0")
    while remaining > 0 and queue:
        lot = queue[0]
        use = min(lot.qty, remaining)
        cost += use * lot.unit_cost
        lot.qty -= use
        remaining -= use
        if lot.qty <= 0:
            queue.popleft()
    return cost, remaining


def build_lot_queues(transactions: List[Transaction]):
    """
    Replays the history. Returns (queues, realized_by_tx, issues) where
    queues maps product key -> remaining lots.
    """
    queues: Dict[ProductKey, Deque[Lot]] = defaultdict(deque)
    realized: Dict[str, Decimal] = {}
    issues: List[DataIntegrityWarning] = []

    for tx in _in_date_order(transactions):
        for direction, line in get_movements(tx):
            if line.qty is None or line.qty <= 0:
                continue
            key = product_key(line.metal, line.form, line.coin_type)
            if direction == "in":
                queues[key].append(Lot(tx.id, line.qty, line.price))
                continue

            proceeds = line.total
            cost, unmatched = _consume_fifo(queues[key], line.qty)
            if unmatched > 0:
                warning = DataIntegrityWarning(tx.id, key, unmatched)
                logger.warning(str(warning))
                issues.append(warning)
            realized[tx.id] = realized.get(tx.id, Decimal("0")) + (proceeds - cost)

    return queues, realized, issues


def compute_cost_basis(transactions: List[Transaction], settings: Optional[Settings] = None) -> CostBasisReport:
    """
    Pure and idempotent: the same transaction list always yields the same report.
    """
    queues, realized, issues = build_lot_queues(transactions)

    summary: Dict[str, Dict[str, FormSummary]] = {}
    total_cost_basis = Decimal("0")
    for (metal, form, _coin_type), queue in sorted(queues.items(), key=lambda kv: tuple(p or "" for p in kv[0])):
        qty = sum((lot.qty for lot in queue), Decimal("0"))
        cost = sum((lot.qty * lot.unit_cost for lot in queue), Decimal("0"))
        entry = summary.setdefault(metal, {}).setdefault(form, FormSummary())
        entry.qty += qty
        entry.total_cost += cost
        total_cost_basis += cost

    for forms in summary.values():
        for entry in forms.values():
            entry.total_cost = round2(entry.total_cost)
            entry.avg_cost = round2(entry.total_cost / entry.qty) if entry.qty > 0 else Decimal("0")

    realized_by_tx = {tx_id: round2(pnl) for tx_id, pnl in realized.items()}
    report = CostBasisReport(
        summary=summary,
        total_cost_basis=round2(total_cost_basis),
        total_realized_pnl=round2(sum(realized.values(), Decimal("0"))),
        realized_by_tx=realized_by_tx,
        warnings=[
            IntegrityIssue(
                code=w.code,
                message=str(w),
                transaction_id=w.transaction_id,
                metal=w.product_key[0],
                form=w.product_key[1],
                coin_type=w.product_key[2],
                unmatched_qty=w.unmatched_qty,
            )
            for w in issues
        ],
    )
    logger.debug(f"Cost basis: {len(transactions)} transactions, basis={report.total_cost_basis}")
    return report


def unrealized_pnl(report: CostBasisReport, spot: SpotPrices) -> Decimal:
    """Market value of the remaining lots at the injected spot, minus their cost."""
    market_value = Decimal("0")
    for metal, forms in report.summary.items():
        for entry in forms.values():
            market_value += entry.qty * spot.for_metal(metal)
    return round2(market_value - report.total_cost_basis)

# ---------------------------------------------------------------------
# Running inventory
# ---------------------------------------------------------------------

def get_inventory(transactions: List[Transaction]) -> Dict[ProductKey, Decimal]:
    """
    Σ inbound - Σ outbound fine oz per product key, independent of cost.
    Agrees with the remaining lot quantities unless inventory was oversold.
    """
    inventory: Dict[ProductKey, Decimal] = defaultdict(Decimal)
    for tx in transactions:
        for direction, line in get_movements(tx):
            if line.qty is None:
                continue
            key = product_key(line.metal, line.form, line.coin_type)
            inventory[key] += line.qty if direction == "in" else -line.qty
    return dict(inventory)


def inventory_items(inventory: Dict[ProductKey, Decimal]) -> List[InventoryItem]:
    return [
        InventoryItem(metal=metal, form=form, coin_type=coin_type, qty=qty)
        for (metal, form, coin_type), qty in sorted(inventory.items(), key=lambda kv: tuple(p or "" for p in kv[0]))
    ]
