"""
Ledger operations: logging a deal, full-overwrite edits with compliance
re-evaluation, and deletes that retract retroactive flags.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from bullionpos.errors import (
    InvalidProductError,
    InvalidQuantityError,
    TransactionNotFoundError,
    UnavailablePriceError,
)
from bullionpos.schemas.transaction import DealCreate, LineInput, TransactionUpdate, TxType
from bullionpos.services.compliance import recompute_compliance
from bullionpos.services.deal import build_deal
from bullionpos.services.transaction import delete_transaction, edit_transaction, log_deal

NOON = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def aggregated_pair(make_tx):
    prior = make_tx("p", qty=20, customer_id="C", date=NOON)
    new = make_tx("n", qty=15, customer_id="C", date=NOON + timedelta(hours=2))
    return log_deal(log_deal([], prior), new)


def test_log_deal_appends_and_flags(settings, spot):
    deal = DealCreate(
        type="buy", customerId="C",
        lines=[LineInput(metal="gold", form="bars", raw_qty=35)],
    )
    tx = build_deal(deal, spot, settings)
    history = log_deal([], tx, settings)
    assert [t.id for t in history] == [tx.id]
    assert history[0].form_1099b_flag is True
    assert history[0].form_8300_flag is True  # 83,125 cash


def test_log_deal_rejects_duplicate_id(make_tx):
    tx = make_tx("dup")
    with pytest.raises(InvalidProductError):
        log_deal([tx], tx)


def test_edit_recomputes_line_totals(make_tx):
    history = [make_tx("t", qty=2, price=2375, spot=2500)]
    updated = edit_transaction(history, "t", TransactionUpdate(qty=Decimal("3"), price=Decimal("2400")))
    tx = updated[0]
    assert tx.qty == Decimal("3")
    assert tx.total == Decimal("7200")
    assert tx.profit == Decimal("300")
    assert tx.lines[0].total == Decimal("7200")


def test_edit_type_away_from_buy_clears_1099b_flag(make_tx):
    history = aggregated_pair(make_tx)
    assert all(tx.form_1099b_flag for tx in history)

    updated = edit_transaction(history, "n", TransactionUpdate(type=TxType.SELL))
    by_id = {tx.id: tx for tx in updated}
    assert by_id["n"].type == TxType.SELL
    assert not by_id["n"].form_1099b_flag
    assert not by_id["p"].form_1099b_flag


def test_edit_into_aggregation_flags_prior(make_tx):
    history = [
        make_tx("p", qty=20, customer_id="C", date=NOON),
        make_tx("n", qty=5, customer_id="C", date=NOON + timedelta(hours=2)),
    ]
    updated = edit_transaction(history, "n", TransactionUpdate(qty=Decimal("15")))
    assert all(tx.form_1099b_flag for tx in updated)


def test_edit_keeps_filed_state(make_tx):
    history = [make_tx("t", qty=40)]
    history = edit_transaction(history, "t", TransactionUpdate(form_1099b_filed=True))
    assert history[0].form_1099b_flag is True
    assert history[0].form_1099b_filed is True
    history = edit_transaction(history, "t", TransactionUpdate(notes="checked ID"))
    assert history[0].form_1099b_filed is True
    assert history[0].notes == "checked ID"


@pytest.mark.parametrize("changes,error", [
    ({"qty": Decimal("0")}, InvalidQuantityError),
    ({"qty": Decimal("-1")}, InvalidQuantityError),
    ({"spot": Decimal("0")}, UnavailablePriceError),
    ({"price": Decimal("0")}, InvalidQuantityError),
    ({"form": "ingots"}, InvalidProductError),
])
def test_edit_validation(make_tx, changes, error):
    history = [make_tx("t", qty=2)]
    with pytest.raises(error):
        edit_transaction(history, "t", TransactionUpdate(**changes))


def test_zero_price_message(make_tx):
    with pytest.raises(InvalidQuantityError, match="Price"):
        edit_transaction([make_tx("t")], "t", TransactionUpdate(price=Decimal("0")))


def test_edit_sell_keeps_tax_rate(settings, spot):
    settings.tax_enabled = True
    settings.tax_state = "NY"
    deal = DealCreate(type="sell", lines=[LineInput(metal="gold", form="bars", raw_qty="0.2")])
    tx = build_deal(deal, spot, settings)
    updated = edit_transaction([tx], tx.id, TransactionUpdate(price=Decimal("2700")))
    edited = updated[0]
    assert edited.subtotal == Decimal("540.00")
    assert edited.tax_rate == Decimal("4.0")
    assert edited.tax_amount == Decimal("21.60")
    assert edited.total == Decimal("561.60")


def test_edit_multi_line_through_lines(settings, spot):
    deal = DealCreate(type="buy", lines=[
        LineInput(metal="gold", form="bars", raw_qty=1),
        LineInput(metal="silver", form="bars", raw_qty=10),
    ])
    tx = build_deal(deal, spot, settings)

    with pytest.raises(InvalidProductError):
        edit_transaction([tx], tx.id, TransactionUpdate(qty=Decimal("2")))

    updated = edit_transaction([tx], tx.id, TransactionUpdate(lines=[
        {"metal": "gold", "form": "bars", "qty": 2, "spot": 2500, "price": 2375},
        {"metal": "silver", "form": "bars", "qty": 10, "spot": 32, "price": 30},
    ]))
    assert updated[0].total == Decimal("4750") + Decimal("300")
    assert updated[0].metal is None


def test_trade_type_cannot_change(make_tx):
    trade = make_tx("t", type="trade", metal=None, form=None, qty=None, price=None, total=0)
    with pytest.raises(InvalidProductError):
        edit_transaction([trade], "t", TransactionUpdate(type=TxType.BUY))


def test_delete_retracts_retroactive_flags(make_tx):
    history = aggregated_pair(make_tx)
    remaining = delete_transaction(history, "n")
    assert [tx.id for tx in remaining] == ["p"]
    assert not remaining[0].form_1099b_flag


def test_unknown_id(make_tx):
    with pytest.raises(TransactionNotFoundError):
        delete_transaction([make_tx("a")], "zzz")
    with pytest.raises(TransactionNotFoundError):
        edit_transaction([make_tx("a")], "zzz", TransactionUpdate(notes="x"))


def flags(history):
    return {tx.id: (tx.form_1099b_flag, tx.form_8300_flag) for tx in history}


def test_backdated_buy_joins_later_window(make_tx):
    later = make_tx("later", qty=20, customer_id="C", date=NOON)
    back = make_tx("back", qty=15, customer_id="C", date=NOON - timedelta(hours=1))

    logged = log_deal(log_deal([], later), back)
    assert [tx.id for tx in logged] == ["later", "back"]
    assert logged[0].form_1099b_flag is True
    assert logged[1].form_1099b_flag is True
    assert flags(logged) == flags(recompute_compliance(logged))


def test_backdated_cash_deal_trips_8300(make_tx):
    later = make_tx("later", qty=2, price=3000, payment="cash", customer_id="C", date=NOON)
    back = make_tx("back", qty=2, price=2500, payment="cash", customer_id="C",
                   date=NOON - timedelta(hours=3))

    logged = log_deal(log_deal([], later), back)
    assert all(tx.form_8300_flag for tx in logged)
    assert not any(tx.form_1099b_flag for tx in logged)
    assert flags(logged) == flags(recompute_compliance(logged))


def test_backdated_deal_keeps_review_state(make_tx):
    later = make_tx("later", qty=40, customer_id="C", date=NOON)
    history = edit_transaction(log_deal([], later), "later", TransactionUpdate(form_1099b_filed=True))
    logged = log_deal(history, make_tx("back", qty=1, customer_id="D", date=NOON - timedelta(days=1)))
    assert logged[0].form_1099b_flag is True
    assert logged[0].form_1099b_filed is True
