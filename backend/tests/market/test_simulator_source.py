"""Integration tests for SimulatorDataSource."""

import asyncio

import pytest

from onecapital.market.cache import PriceCache
from onecapital.market.seed_prices import SEED_PRICES
from onecapital.market.simulator import SimulatorDataSource


@pytest.mark.asyncio
class TestSimulatorDataSource:
    """Integration tests for the SimulatorDataSource."""

    async def test_start_populates_cache(self):
        """Test that start() immediately populates the cache."""
        cache = PriceCache()
        source = SimulatorDataSource(price_cache=cache, update_interval=0.1)
        await source.start(["BTC", "ETH"])

        assert cache.get("BTC") is not None
        assert cache.get("ETH") is not None

        await source.stop()

    async def test_seed_is_the_24h_reference(self):
        """The seed write fixes previous_24h; later writes keep it."""
        cache = PriceCache()
        source = SimulatorDataSource(price_cache=cache, update_interval=0.01)
        await source.start(["BTC"])

        seeded = cache.get("BTC")
        assert seeded.previous_24h == SEED_PRICES["BTC"]
        assert seeded.change_24h == 0.0

        await asyncio.sleep(0.05)
        assert cache.get("BTC").previous_24h == SEED_PRICES["BTC"]

        await source.stop()

    async def test_prices_update_over_time(self):
        """Test that prices are updated periodically."""
        cache = PriceCache()
        source = SimulatorDataSource(price_cache=cache, update_interval=0.05)
        await source.start(["BTC"])

        initial_version = cache.version
        await asyncio.sleep(0.3)

        assert cache.version > initial_version

        await source.stop()

    async def test_stop_is_clean(self):
        """Test that stop() is clean and idempotent."""
        cache = PriceCache()
        source = SimulatorDataSource(price_cache=cache, update_interval=0.1)
        await source.start(["BTC"])
        await source.stop()
        await source.stop()

    async def test_add_symbol(self):
        """Test adding a symbol dynamically."""
        cache = PriceCache()
        source = SimulatorDataSource(price_cache=cache, update_interval=0.1)
        await source.start(["BTC"])

        await source.add_symbol("SOL")
        assert "SOL" in source.get_symbols()
        assert cache.get("SOL") is not None

        await source.stop()

    async def test_remove_symbol(self):
        """Test removing a symbol."""
        cache = PriceCache()
        source = SimulatorDataSource(price_cache=cache, update_interval=0.1)
        await source.start(["BTC", "SOL"])

        await source.remove_symbol("SOL")
        assert "SOL" not in source.get_symbols()
        assert cache.get("SOL") is None

        await source.stop()

    async def test_empty_start(self):
        """Test starting with no symbols."""
        cache = PriceCache()
        source = SimulatorDataSource(price_cache=cache, update_interval=0.1)
        await source.start([])

        assert cache.get_all() == {}
        assert source.get_symbols() == []

        await source.stop()

    async def test_get_symbols_before_start(self):
        """Test that an unstarted source tracks nothing."""
        source = SimulatorDataSource(price_cache=PriceCache())
        assert source.get_symbols() == []

    async def test_custom_event_probability(self):
        """Test creating source with custom event probability."""
        cache = PriceCache()
        source = SimulatorDataSource(price_cache=cache, update_interval=0.05, event_probability=1.0)
        await source.start(["BTC"])

        await asyncio.sleep(0.15)
        assert source._task is not None
        assert not source._task.done()

        await source.stop()
