"""
bullionpos/services/dashboard.py

Reporting-layer aggregates over the derived engines: the counter dashboard,
reorder-point alerts and a customer's profile. Spot prices are injected.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from bullionpos.constants import REORDER_BUCKETS
from bullionpos.schemas.calculation import CustomerProfile, Dashboard, Holding, ReorderAlert
from bullionpos.schemas.pricing import SpotPrices
from bullionpos.schemas.settings import Settings
from bullionpos.schemas.transaction import Transaction, TxType
from bullionpos.services.compliance import needs_1099b_filing, needs_8300_review
from bullionpos.services.cost_basis import compute_cost_basis, get_inventory, unrealized_pnl
from bullionpos.services.normalizer import ProductKey
from bullionpos.services.pricing import round2

logger = logging.getLogger(__name__)

SOLD_TYPES = (TxType.SELL, TxType.WHOLESALE)


def bucket_inventory(inventory: Dict[ProductKey, Decimal]) -> Dict[str, Decimal]:
    """Collapses coin types: (gold, coins, maples) -> 'gold_coins'."""
    buckets = {bucket: Decimal("0") for bucket in REORDER_BUCKETS}
    for (metal, form, _coin_type), qty in inventory.items():
        bucket = f"{metal}_{form}"
        buckets[bucket] = buckets.get(bucket, Decimal("0")) + qty
    return buckets


def reorder_alerts(inventory: Dict[ProductKey, Decimal], settings: Settings) -> List[ReorderAlert]:
    buckets = bucket_inventory(inventory)
    alerts = []
    for bucket in REORDER_BUCKETS:
        point = getattr(settings.reorder_points, bucket)
        if point > 0 and buckets[bucket] < point:
            alerts.append(ReorderAlert(bucket=bucket, qty=buckets[bucket], reorder_point=point))
    return alerts


def build_dashboard(
    transactions: List[Transaction],
    settings: Settings,
    spot: SpotPrices,
    today: Optional[date] = None,
) -> Dashboard:
    today = today or datetime.now(timezone.utc).date()
    dash = Dashboard()

    for tx in transactions:
        if tx.date.astimezone(timezone.utc).date() != today:
            continue
        dash.today_count += 1
        dash.today_profit += tx.profit or Decimal("0")
        if tx.type == TxType.BUY:
            dash.today_bought += tx.total
        elif tx.type in SOLD_TYPES:
            dash.today_sold += tx.total

    inventory = get_inventory(transactions)
    for (metal, form, _coin_type), qty in inventory.items():
        holding = dash.junk if form == "junk" else getattr(dash, metal)
        holding.qty += qty
    dash.gold.value = round2(dash.gold.qty * spot.gold)
    dash.silver.value = round2(dash.silver.qty * spot.silver)
    dash.junk.value = round2(dash.junk.qty * spot.silver)
    dash.junk_face_value = round2(dash.junk.qty / settings.effective_junk_multiplier)

    report = compute_cost_basis(transactions, settings)
    dash.cost_basis = report.total_cost_basis
    dash.unrealized_pnl = unrealized_pnl(report, spot)

    dash.unfiled_8300 = sum(1 for tx in transactions if needs_8300_review(tx))
    dash.unfiled_1099b = sum(1 for tx in transactions if needs_1099b_filing(tx))
    dash.reorder_alert_count = len(reorder_alerts(inventory, settings))

    logger.debug(f"Dashboard for {today}: {dash.today_count} transactions today")
    return dash


def customer_profile(transactions: List[Transaction], customer_id: str) -> CustomerProfile:
    profile = CustomerProfile(customer_id=customer_id)
    for tx in transactions:
        if tx.customer_id != customer_id:
            continue
        profile.transaction_count += 1
        profile.pnl += tx.profit or Decimal("0")
        if tx.type == TxType.BUY:
            profile.total_bought += tx.total
        elif tx.type in SOLD_TYPES:
            profile.total_sold += tx.total
        if tx.form_8300_flag:
            profile.form_8300_count += 1
        if tx.form_1099b_flag:
            profile.form_1099b_count += 1
    return profile
