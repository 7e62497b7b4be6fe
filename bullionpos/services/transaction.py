"""
bullionpos/services/transaction.py

Ledger operations on the transaction history: log a new deal, edit one
(full overwrite of the editable fields) and delete one. Each returns a new
history list with compliance flags brought up to date; persisting it is the
caller's job (services/store.py).

Ordering on log: compliance is evaluated against the history as it was
before the new deal, then the deal is appended, then retroactive flags are
applied, all inside apply_compliance_rules(). A deal dated before the newest
record is instead logged through recompute_compliance(), the same replay
edits and deletes use.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from bullionpos.errors import (
    EmptyDealError,
    InvalidProductError,
    InvalidQuantityError,
    TransactionNotFoundError,
    UnavailablePriceError,
)
from bullionpos.schemas.settings import Settings
from bullionpos.schemas.transaction import (
    Line,
    Transaction,
    TransactionUpdate,
    TxType,
)
from bullionpos.services.compliance import apply_compliance_rules, recompute_compliance
from bullionpos.services.deal import FLAT_LINE_FIELDS, apply_tax, get_lines
from bullionpos.services.normalizer import to_decimal, validate_product
from bullionpos.services.pricing import line_profit, line_total

logger = logging.getLogger(__name__)

HEADER_FIELDS = ("date", "type", "payment", "customer_id", "notes")
REVIEW_FIELDS = ("form_1099b_filed", "form_8300_reviewed")


def find_transaction(transactions: List[Transaction], transaction_id: str) -> Transaction:
    for tx in transactions:
        if tx.id == transaction_id:
            return tx
    raise TransactionNotFoundError(transaction_id)


def log_deal(history: List[Transaction], new_tx: Transaction, settings: Optional[Settings] = None) -> List[Transaction]:
    """
    Appends new_tx with its compliance flags. A backdated deal can fall into
    the window of records logged after it, so it triggers a full replay.
    """
    if any(tx.id == new_tx.id for tx in history):
        raise InvalidProductError(f"Transaction {new_tx.id} already exists")
    if history and new_tx.date < max(tx.date for tx in history):
        logger.info(f"Transaction {new_tx.id} is backdated, recomputing compliance flags")
        updated = recompute_compliance(history + [new_tx], settings)
    else:
        updated = apply_compliance_rules(history, new_tx, settings)
    logger.info(
        f"Logged {new_tx.type.value} {new_tx.id}: total={new_tx.total} "
        f"profit={new_tx.profit} customer={new_tx.customer_id}"
    )
    return updated

# ---------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------

def _edited_line(base: Optional[Line], edit: dict) -> Line:
    """
    Applies edited metal/form/coin_type/qty/spot/price over a line and
    recomputes its total and profit.
    """
    fields = base.model_dump() if base is not None else {}
    fields.update({k: v for k, v in edit.items() if v is not None or k == "coin_type"})
    if edit.get("qty") is not None:
        # entered quantity no longer matches the edited fine oz
        fields["raw_qty"] = None

    metal, form = fields.get("metal"), fields.get("form")
    if not metal or not form:
        raise InvalidProductError("A line needs a metal and a form")
    _, _, coin_type = validate_product(metal, form, fields.get("coin_type"))

    qty = to_decimal(fields.get("qty", 0), "Quantity")
    if qty <= 0:
        raise InvalidQuantityError("Quantity must be greater than zero")
    spot = to_decimal(fields.get("spot") or 0, "Spot price")
    if spot <= 0:
        raise UnavailablePriceError("Spot price must be greater than zero")
    price = to_decimal(fields.get("price") or 0, "Price")
    if price <= 0:
        raise InvalidQuantityError("Price must be greater than zero")

    fields.update(
        coin_type=coin_type,
        qty=qty,
        spot=spot,
        price=price,
        total=line_total(price, qty),
        profit=line_profit(price, spot, qty),
    )
    return Line(**fields)


def _apply_edit(tx: Transaction, changes: TransactionUpdate) -> Transaction:
    data = changes.model_dump(exclude_unset=True)
    new_type = data.get("type", tx.type)

    if (tx.type == TxType.TRADE) != (new_type == TxType.TRADE):
        raise InvalidProductError("A trade cannot be converted to or from another transaction type")

    update = {name: data[name] for name in HEADER_FIELDS + REVIEW_FIELDS if name in data}

    if tx.type == TxType.TRADE:
        return tx.model_copy(update=update)

    line_edits = data.get("lines")
    flat_edit = {name: data[name] for name in ("metal", "form", "coin_type", "qty", "spot", "price") if name in data}
    current = get_lines(tx)

    if line_edits is not None:
        if not line_edits:
            raise EmptyDealError("Deal has no priced lines")
        lines = [_edited_line(None, edit) for edit in line_edits]
    elif flat_edit or len(current) <= 1:
        if len(current) > 1:
            raise InvalidProductError("Edit a multi-line deal through its lines")
        lines = [_edited_line(current[0] if current else None, flat_edit)]
    else:
        lines = [_edited_line(line, {}) for line in current]

    subtotal = sum((line.total for line in lines), Decimal("0"))
    profit = sum((line.profit for line in lines), Decimal("0"))
    update.update(lines=lines, subtotal=subtotal, total=subtotal, profit=profit,
                  tax_rate=None, tax_amount=None)

    if new_type == TxType.SELL:
        # Keep the rate charged at sale time
        rate = tx.tax_rate if tx.type == TxType.SELL and tx.tax_rate is not None else Decimal("0")
        tax_amount, total = apply_tax(subtotal, rate)
        update.update(tax_rate=rate, tax_amount=tax_amount, total=total)

    if len(lines) == 1:
        update.update({name: getattr(lines[0], name) for name in FLAT_LINE_FIELDS})
    else:
        update.update({name: None for name in FLAT_LINE_FIELDS})

    return tx.model_copy(update=update)


def edit_transaction(
    transactions: List[Transaction],
    transaction_id: str,
    changes: TransactionUpdate,
    settings: Optional[Settings] = None,
) -> List[Transaction]:
    """
    Overwrites the editable fields and recomputes every derived compliance
    flag, so changing a buy into a sell drops its 1099-B flag.
    """
    original = find_transaction(transactions, transaction_id)
    edited = _apply_edit(original, changes)
    replaced = [edited if tx.id == transaction_id else tx for tx in transactions]
    logger.info(f"Edited transaction {transaction_id}: total {original.total} -> {edited.total}")
    return recompute_compliance(replaced, settings)


def delete_transaction(
    transactions: List[Transaction],
    transaction_id: str,
    settings: Optional[Settings] = None,
) -> List[Transaction]:
    find_transaction(transactions, transaction_id)
    remaining = [tx for tx in transactions if tx.id != transaction_id]
    logger.info(f"Deleted transaction {transaction_id}")
    return recompute_compliance(remaining, settings)
