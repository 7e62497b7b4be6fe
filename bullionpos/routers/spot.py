"""
bullionpos/routers/spot.py

Current spot prices, proxied from the external price source.
"""

from fastapi import APIRouter

from bullionpos.schemas.pricing import SpotPrices
from bullionpos.services.spot import get_spot_prices

router = APIRouter(tags=["spot"])


@router.get("", response_model=SpotPrices)
async def read_spot_prices():
    """Returns {gold, silver}; a metal the source could not price is 0."""
    return await get_spot_prices()
