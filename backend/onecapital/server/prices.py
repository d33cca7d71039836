"""REST endpoints for current prices."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from ..config import PRICES_PATH
from ..market.cache import PriceCache

logger = logging.getLogger(__name__)


def create_prices_router(price_cache: PriceCache) -> APIRouter:
    """REST router backing the client's polling fallback."""
    router = APIRouter(prefix=PRICES_PATH, tags=["prices"])

    @router.get("")
    async def get_prices() -> dict[str, dict]:
        """Full ``{symbol: entry}`` map. 503 until the data source has written."""
        prices = price_cache.get_all()
        if not prices:
            logger.warning("Price request with empty cache")
            raise HTTPException(status_code=503, detail="Price feed unavailable")
        return {symbol: entry.to_dict() for symbol, entry in prices.items()}

    @router.get("/{symbol}")
    async def get_price(symbol: str) -> dict:
        entry = price_cache.get(symbol.upper())
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Price not found for symbol: {symbol}")
        return {"symbol": entry.symbol, "price": entry.current, **entry.to_dict()}

    return router
