"""
bullionpos/routers/compliance.py

Dry-run compliance check: prices a prospective deal and reports whether it
would be 1099-B reportable or trip Form 8300, without storing anything.
"""

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from bullionpos.database import get_db
from bullionpos.schemas.compliance import ComplianceCheckResponse
from bullionpos.schemas.pricing import SpotPrices
from bullionpos.schemas.transaction import DealCreate
from bullionpos.services import store
from bullionpos.services.compliance import check_1099b, check_8300
from bullionpos.services.deal import build_deal
from bullionpos.services.spot import get_spot_prices

router = APIRouter(tags=["compliance"])


def _check(db: Session, deal: DealCreate, spot: SpotPrices) -> ComplianceCheckResponse:
    settings = store.load_settings(db)
    candidate = build_deal(deal, spot, settings)
    history = store.load_transactions(db)
    return ComplianceCheckResponse(
        form_1099b=check_1099b(candidate, history, settings),
        form_8300=check_8300(candidate, history),
    )


@router.post("/check-1099b", response_model=ComplianceCheckResponse, response_model_by_alias=True)
async def check_deal(deal: DealCreate, db: Session = Depends(get_db)):
    spot = deal.spot if deal.spot is not None else await get_spot_prices()
    return await run_in_threadpool(_check, db, deal, spot)
