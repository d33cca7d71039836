"""Factory for creating market data sources."""

from __future__ import annotations

import logging

from ..config import Settings
from .cache import PriceCache
from .interface import MarketDataSource

logger = logging.getLogger(__name__)


def create_market_data_source(
    price_cache: PriceCache, settings: Settings | None = None
) -> MarketDataSource:
    """Create the appropriate market data source based on settings.

    - PRICE_SOURCE=coingecko → CoinGeckoDataSource (live prices)
    - Otherwise → SimulatorDataSource (simulated crypto prices for demo vaults)

    Returns an unstarted source. Caller must await source.start(symbols).
    """
    settings = settings or Settings.from_env()

    if settings.price_source == "coingecko":
        from .coingecko import CoinGeckoDataSource

        logger.info("Market data source: CoinGecko API (live data)")
        return CoinGeckoDataSource(price_cache=price_cache, api_url=settings.coingecko_api_url)
    else:
        from .simulator import SimulatorDataSource

        logger.info("Market data source: crypto simulator")
        return SimulatorDataSource(price_cache=price_cache)
