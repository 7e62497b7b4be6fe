"""
bullionpos/routers/pricing.py

Calculator endpoint: normalise one item and quote it for a deal type.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from bullionpos.database import get_db
from bullionpos.schemas.pricing import QuoteRequest, QuoteResponse, SpotPrices
from bullionpos.services import store
from bullionpos.services.compliance import exceeds_alert_threshold
from bullionpos.services.normalizer import normalize, reconcile_purity, validate_product
from bullionpos.services.pricing import line_total, resolve_price
from bullionpos.services.spot import get_spot_prices

router = APIRouter(tags=["pricing"])


def _quote(db: Session, req: QuoteRequest, spot_prices: Optional[SpotPrices]) -> QuoteResponse:
    settings = store.load_settings(db)
    _, _, coin_type = validate_product(req.metal, req.form, req.coin_type)
    purity = reconcile_purity(req.metal, req.scrap_purity) if req.form == "scrap" else None
    qty = normalize(
        req.form, req.metal, req.raw_qty,
        weight_unit=req.weight_unit,
        scrap_purity=purity,
        junk_multiplier=settings.effective_junk_multiplier,
    )

    spot = req.spot if req.spot is not None else spot_prices.for_metal(req.metal)
    result = resolve_price(req.type, req.metal, req.form, coin_type, spot, settings)
    return QuoteResponse(
        type=req.type,
        metal=req.metal,
        form=req.form,
        coin_type=coin_type,
        scrap_purity=purity,
        qty=qty,
        spot=spot,
        price_per_oz=result.price_per_oz,
        unit_price=result.unit_price,
        margin_fraction=result.margin_fraction,
        total=line_total(result.price_per_oz, qty),
        exceeds_alert_threshold=exceeds_alert_threshold(req.metal, qty, settings),
    )


@router.post("/quote", response_model=QuoteResponse, response_model_by_alias=True)
async def quote(req: QuoteRequest, db: Session = Depends(get_db)):
    """
    Prices `raw_qty` of one product. When `spot` is omitted the current spot
    price is fetched. Large quantities (threshGold/threshSilver) are flagged.
    """
    spot_prices = await get_spot_prices() if req.spot is None else None
    return await run_in_threadpool(_quote, db, req, spot_prices)
