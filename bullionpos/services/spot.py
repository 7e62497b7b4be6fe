"""
bullionpos/services/spot.py

Spot price source: current gold (XAU) and silver (XAG) prices in USD per
troy ounce from the gold-api.com style endpoint `{SPOT_PRICE_URL}/{symbol}`,
which answers {"price": <float>}.

A metal whose fetch fails comes back as 0; deal assembly refuses to price
against a zero spot.
"""

import os
import logging
from decimal import Decimal, InvalidOperation

import httpx

from bullionpos.schemas.pricing import SpotPrices

logger = logging.getLogger(__name__)

SPOT_PRICE_URL = os.getenv("SPOT_PRICE_URL", "https://api.gold-api.com/price")
SYMBOLS = {"gold": "XAU", "silver": "XAG"}


async def _fetch_price(client: httpx.AsyncClient, symbol: str) -> Decimal:
    url = f"{SPOT_PRICE_URL.rstrip('/')}/{symbol}"
    try:
        resp = await client.get(url)
        resp.raise_for_status()
        price = Decimal(str(resp.json()["price"]))
    except (httpx.HTTPError, KeyError, TypeError, ValueError, InvalidOperation) as e:
        logger.warning(f"Spot price for {symbol} unavailable from {url}: {e}")
        return Decimal("0")
    if not price.is_finite() or price <= 0:
        logger.warning(f"Spot price for {symbol} from {url} is not positive: {price}")
        return Decimal("0")
    return price


async def get_spot_prices() -> SpotPrices:
    async with httpx.AsyncClient(timeout=10.0) as client:
        prices = {metal: await _fetch_price(client, symbol) for metal, symbol in SYMBOLS.items()}
    logger.debug(f"Spot prices: {prices}")
    return SpotPrices(**prices)
