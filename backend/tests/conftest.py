"""Pytest configuration and shared fixtures."""

import pytest

from onecapital.market.cache import PriceCache


@pytest.fixture
def price_cache():
    """Cache seeded with two symbols at fixed timestamps."""
    cache = PriceCache()
    cache.update("BTC", 64000.0, previous_24h=60000.0, timestamp=1700000000.0)
    cache.update("ETH", 3100.0, previous_24h=3200.0, timestamp=1700000000.0)
    return cache
