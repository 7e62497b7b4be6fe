"""
bullionpos/services/compliance.py

Regulatory flags for the transaction history.

1099-B (dealer buys from a customer):
 - only type=buy is ever reportable, and only reportable products
 - per product key, a deal trips the threshold on its own ("Single ...") or
   together with the same customer's other buys of that key in the 24 hours
   ending at the deal's date ("Combined ...")
 - a combined trip flags the contributing prior transactions as well
 - anonymous buyers (no customer id) are only checked on their own

Form 8300 (cash >= $10,000):
 - cash deals only; amount is |total|, or |settlement| for trades
 - aggregated per customer over the same 24-hour window, independent of product

apply_compliance_rules() is the reducer used when logging a deal;
recompute_compliance() replays it over the whole history after an edit or a
delete. Both return new lists; Transaction objects are never mutated.
"""

import logging
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from bullionpos.constants import (
    AGGREGATION_WINDOW_HOURS,
    DEFAULT_JUNK_MULTIPLIER,
    EXEMPT_1099B_COIN_TYPES,
    FORM_8300_THRESHOLD,
    PRE33_COIN_TYPES,
    THRESHOLDS_1099B,
)
from bullionpos.errors import InvalidProductError
from bullionpos.schemas.compliance import ComplianceResult
from bullionpos.schemas.settings import Settings
from bullionpos.schemas.transaction import ComplianceFilter, Line, Transaction, TxType
from bullionpos.services.deal import get_lines
from bullionpos.services.normalizer import ProductKey, product_key

logger = logging.getLogger(__name__)

REASON_SINGLE = "Single transaction exceeds threshold"
REASON_COMBINED = "Combined with prior transaction(s) within 24 hours exceeds threshold"

WINDOW = timedelta(hours=AGGREGATION_WINDOW_HOURS)

# ---------------------------------------------------------------------
# Product classification
# ---------------------------------------------------------------------

def is_reportable_product(metal: str, form: str, coin_type: Optional[str] = None) -> bool:
    if form in ("bars", "rounds", "scrap"):
        return metal in ("gold", "silver")
    if form == "junk":
        return metal == "silver"
    if form == "coins" and metal == "gold":
        if coin_type in EXEMPT_1099B_COIN_TYPES or coin_type in PRE33_COIN_TYPES:
            return False
        return True
    return False


def get_threshold(metal: str, form: str, coin_type: Optional[str] = None) -> Optional[Decimal]:
    """
    Reportable quantity for a product in its own unit (troy oz, dollars of
    face value for junk). None for products that are never reportable.
    """
    if not is_reportable_product(metal, form, coin_type):
        return None
    key = product_key(metal, form, coin_type)
    if key in THRESHOLDS_1099B:
        return THRESHOLDS_1099B[key]
    # Unlisted gold coin types fall under the generic gold-coin threshold
    return THRESHOLDS_1099B.get((metal, form, None))


def reportable_quantity(line: Line, junk_multiplier: Decimal = DEFAULT_JUNK_MULTIPLIER) -> Decimal:
    """Line quantity in the unit its threshold is stated in."""
    if line.form == "junk":
        if line.raw_qty is not None and line.raw_qty > 0:
            return line.raw_qty
        return line.qty / junk_multiplier
    return line.qty


def exceeds_alert_threshold(metal: str, qty, settings: Settings) -> bool:
    """Dealer-configured large-quantity alert (threshGold/threshSilver, 0 disables)."""
    limit = settings.thresh_gold if metal == "gold" else settings.thresh_silver
    if not limit or limit <= 0:
        return False
    return Decimal(str(qty)) >= limit

# ---------------------------------------------------------------------
# 1099-B
# ---------------------------------------------------------------------

def _in_window(candidate: Transaction, other: Transaction) -> bool:
    return candidate.date - WINDOW <= other.date <= candidate.date


def _quantities_by_key(tx: Transaction, junk_multiplier: Decimal) -> Dict[ProductKey, Decimal]:
    totals: Dict[ProductKey, Decimal] = defaultdict(Decimal)
    for line in get_lines(tx):
        totals[product_key(line.metal, line.form, line.coin_type)] += reportable_quantity(line, junk_multiplier)
    return totals


def check_1099b(
    candidate: Transaction,
    history: Iterable[Transaction],
    settings: Optional[Settings] = None,
) -> ComplianceResult:
    """
    Evaluates one transaction against the history as it stood before it.
    Any reportable line makes the whole transaction reportable.
    """
    if candidate.type != TxType.BUY:
        return ComplianceResult()

    lines = get_lines(candidate)
    if not lines:
        raise InvalidProductError(f"Transaction {candidate.id} has no metal/form to classify")
    for line in lines:
        if not line.metal or not line.form:
            raise InvalidProductError(f"Transaction {candidate.id} has a line without metal/form")

    junk_multiplier = (settings or Settings()).effective_junk_multiplier
    candidate_qty = _quantities_by_key(candidate, junk_multiplier)

    priors: List[Transaction] = []
    if candidate.customer_id:
        priors = [
            tx for tx in history
            if tx.id != candidate.id
            and tx.type == TxType.BUY
            and tx.customer_id == candidate.customer_id
            and _in_window(candidate, tx)
        ]

    single = False
    contributing: List[str] = []
    for key, qty in candidate_qty.items():
        threshold = get_threshold(*key)
        if threshold is None:
            continue
        if qty >= threshold:
            single = True
            continue

        prior_qty = Decimal("0")
        prior_ids = []
        for tx in priors:
            prior_key_qty = _quantities_by_key(tx, junk_multiplier).get(key)
            if prior_key_qty:
                prior_qty += prior_key_qty
                prior_ids.append(tx.id)
        if prior_ids and qty + prior_qty >= threshold:
            logger.debug(f"1099-B aggregate for {candidate.customer_id} {key}: {qty} + {prior_qty} >= {threshold}")
            contributing.extend(i for i in prior_ids if i not in contributing)

    if single:
        return ComplianceResult(reportable=True, reason=REASON_SINGLE, contributing_ids=contributing)
    if contributing:
        return ComplianceResult(reportable=True, reason=REASON_COMBINED, contributing_ids=contributing)
    return ComplianceResult()

# ---------------------------------------------------------------------
# Form 8300
# ---------------------------------------------------------------------

def cash_amount(tx: Transaction) -> Decimal:
    if tx.payment != "cash":
        return Decimal("0")
    if tx.type == TxType.TRADE:
        return abs(tx.settlement or Decimal("0"))
    return abs(tx.total or Decimal("0"))


def check_8300(candidate: Transaction, history: Iterable[Transaction]) -> ComplianceResult:
    amount = cash_amount(candidate)
    if amount <= 0:
        return ComplianceResult()
    if amount >= FORM_8300_THRESHOLD:
        return ComplianceResult(reportable=True, reason=REASON_SINGLE)
    if not candidate.customer_id:
        return ComplianceResult()

    priors = [
        tx for tx in history
        if tx.id != candidate.id
        and tx.customer_id == candidate.customer_id
        and cash_amount(tx) > 0
        and _in_window(candidate, tx)
    ]
    combined = amount + sum((cash_amount(tx) for tx in priors), Decimal("0"))
    if priors and combined >= FORM_8300_THRESHOLD:
        return ComplianceResult(
            reportable=True,
            reason=REASON_COMBINED,
            contributing_ids=[tx.id for tx in priors],
        )
    return ComplianceResult()

# ---------------------------------------------------------------------
# Reducers
# ---------------------------------------------------------------------

def apply_compliance_rules(
    history: List[Transaction],
    new_tx: Transaction,
    settings: Optional[Settings] = None,
) -> List[Transaction]:
    """
    Evaluates new_tx against history (before it is appended), then returns
    history + [new_tx] with new_tx flagged and every contributing prior
    transaction flagged retroactively.
    """
    result_1099b = check_1099b(new_tx, history, settings)
    result_8300 = check_8300(new_tx, history)

    update = {}
    if result_1099b.reportable:
        update["form_1099b_flag"] = True
        update["form_1099b_reason"] = result_1099b.reason
    if result_8300.reportable:
        update["form_8300_flag"] = True
    flagged_tx = new_tx.model_copy(update=update) if update else new_tx

    retro_1099b = set(result_1099b.contributing_ids)
    retro_8300 = set(result_8300.contributing_ids)
    updated: List[Transaction] = []
    for tx in history:
        patch = {}
        if tx.id in retro_1099b and not tx.form_1099b_flag:
            patch["form_1099b_flag"] = True
            patch["form_1099b_reason"] = REASON_COMBINED
        if tx.id in retro_8300 and not tx.form_8300_flag:
            patch["form_8300_flag"] = True
        if patch:
            logger.info(f"Retroactively flagged transaction {tx.id}: {sorted(patch)}")
            tx = tx.model_copy(update=patch)
        updated.append(tx)

    if update:
        logger.info(f"Transaction {new_tx.id} flagged: {sorted(update)}")
    updated.append(flagged_tx)
    return updated


def clear_derived_flags(tx: Transaction) -> Transaction:
    """Drops the derived flags; filed/reviewed review state is kept."""
    return tx.model_copy(update={
        "form_1099b_flag": None,
        "form_1099b_reason": None,
        "form_8300_flag": None,
    })


def recompute_compliance(
    transactions: List[Transaction],
    settings: Optional[Settings] = None,
) -> List[Transaction]:
    """
    Rebuilds every derived flag from scratch by replaying the history in date
    order. The returned list keeps the input order.
    """
    replay = sorted((clear_derived_flags(tx) for tx in transactions), key=lambda t: t.date)
    history: List[Transaction] = []
    for tx in replay:
        history = apply_compliance_rules(history, tx, settings)

    by_id = {tx.id: tx for tx in history}
    return [by_id[tx.id] for tx in transactions]

# ---------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------

def needs_1099b_filing(tx: Transaction) -> bool:
    return bool(tx.form_1099b_flag) and not tx.form_1099b_filed


def needs_8300_review(tx: Transaction) -> bool:
    return bool(tx.form_8300_flag) and not tx.form_8300_reviewed


COMPLIANCE_FILTERS = {
    ComplianceFilter.FLAGGED_1099B: lambda tx: bool(tx.form_1099b_flag),
    ComplianceFilter.NEEDS_FILING_1099B: needs_1099b_filing,
    ComplianceFilter.FILED_1099B: lambda tx: bool(tx.form_1099b_filed),
    ComplianceFilter.FLAGGED_8300: lambda tx: bool(tx.form_8300_flag),
    ComplianceFilter.NEEDS_REVIEW: needs_8300_review,
    ComplianceFilter.REVIEWED_8300: lambda tx: bool(tx.form_8300_flag) and bool(tx.form_8300_reviewed),
    ComplianceFilter.ANY: lambda tx: bool(tx.form_1099b_flag) or bool(tx.form_8300_flag),
}


def filter_transactions(transactions: List[Transaction], compliance: Optional[ComplianceFilter]) -> List[Transaction]:
    if compliance is None:
        return list(transactions)
    predicate = COMPLIANCE_FILTERS[ComplianceFilter(compliance)]
    return [tx for tx in transactions if predicate(tx)]
