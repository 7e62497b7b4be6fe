"""
bullionpos/routers/transaction.py

Router for the transaction history.

 - GET    /                 list, optionally filtered by compliance state
 - POST   /                 price + assemble a deal, run compliance, append
 - PUT    /{id}             full overwrite of the editable fields
 - DELETE /{id}             remove, then recompute compliance flags

Business rules live in services/deal.py, services/compliance.py and
services/transaction.py; this layer loads, calls and saves.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from bullionpos.database import get_db
from bullionpos.schemas.pricing import SpotPrices
from bullionpos.schemas.transaction import (
    ComplianceFilter,
    DealCreate,
    Transaction,
    TransactionUpdate,
)
from bullionpos.services import store
from bullionpos.services import transaction as tx_service
from bullionpos.services.compliance import filter_transactions
from bullionpos.services.deal import build_deal
from bullionpos.services.spot import get_spot_prices

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transactions"])


@router.get("", response_model=List[Transaction], response_model_by_alias=True,
            response_model_exclude_none=True)
def list_transactions(
    compliance: Optional[ComplianceFilter] = Query(default=None),
    db: Session = Depends(get_db),
):
    """All transactions, newest first."""
    transactions = filter_transactions(store.load_transactions(db), compliance)
    return sorted(transactions, key=lambda tx: tx.date, reverse=True)


def _log_new_deal(db: Session, deal: DealCreate, spot: SpotPrices) -> Transaction:
    settings = store.load_settings(db)
    new_tx = build_deal(deal, spot, settings)

    updated = tx_service.log_deal(store.load_transactions(db), new_tx, settings)
    store.save_transactions(db, updated)
    return tx_service.find_transaction(updated, new_tx.id)


@router.post("", response_model=Transaction, response_model_by_alias=True,
             response_model_exclude_none=True, status_code=201)
async def create_transaction(deal: DealCreate, db: Session = Depends(get_db)):
    """
    Logs a new deal. Spot prices come from the request, or from the price
    source when omitted. Returns the stored record including any compliance
    flags; prior transactions may have been flagged retroactively.
    """
    spot = deal.spot if deal.spot is not None else await get_spot_prices()
    # Session work is blocking; keep it off the event loop
    return await run_in_threadpool(_log_new_deal, db, deal, spot)


@router.put("/{transaction_id}", response_model=Transaction, response_model_by_alias=True,
            response_model_exclude_none=True)
def update_transaction(transaction_id: str, changes: TransactionUpdate, db: Session = Depends(get_db)):
    settings = store.load_settings(db)
    updated = tx_service.edit_transaction(store.load_transactions(db), transaction_id, changes, settings)
    store.save_transactions(db, updated)
    return tx_service.find_transaction(updated, transaction_id)


@router.delete("/{transaction_id}")
def delete_transaction(transaction_id: str, db: Session = Depends(get_db)):
    settings = store.load_settings(db)
    updated = tx_service.delete_transaction(store.load_transactions(db), transaction_id, settings)
    store.save_transactions(db, updated)
    return {"detail": "Transaction deleted successfully"}
