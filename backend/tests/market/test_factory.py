"""Tests for market data source factory."""

import os
from unittest.mock import patch

from onecapital.config import Settings
from onecapital.market.cache import PriceCache
from onecapital.market.coingecko import CoinGeckoDataSource
from onecapital.market.factory import create_market_data_source
from onecapital.market.simulator import SimulatorDataSource


class TestFactory:
    """Tests for create_market_data_source factory."""

    def test_creates_simulator_by_default(self):
        """Test that simulator is created when PRICE_SOURCE is not set."""
        cache = PriceCache()

        with patch.dict(os.environ, {}, clear=True):
            source = create_market_data_source(cache)

        assert isinstance(source, SimulatorDataSource)

    def test_creates_simulator_for_unknown_source(self):
        """Test that an unrecognized PRICE_SOURCE falls back to the simulator."""
        cache = PriceCache()

        with patch.dict(os.environ, {"PRICE_SOURCE": "oracle"}, clear=True):
            source = create_market_data_source(cache)

        assert isinstance(source, SimulatorDataSource)

    def test_creates_coingecko_when_selected(self):
        """Test that PRICE_SOURCE=coingecko selects the live source."""
        cache = PriceCache()

        with patch.dict(os.environ, {"PRICE_SOURCE": " CoinGecko "}, clear=True):
            source = create_market_data_source(cache)

        assert isinstance(source, CoinGeckoDataSource)

    def test_coingecko_receives_api_url(self):
        """Test that the configured API URL reaches the source."""
        cache = PriceCache()
        settings = Settings(price_source="coingecko", coingecko_api_url="https://cg.test/api/v3")

        source = create_market_data_source(cache, settings)

        assert isinstance(source, CoinGeckoDataSource)
        assert source._api_url == "https://cg.test/api/v3"

    def test_sources_receive_cache(self):
        """Test that both sources receive the cache reference."""
        cache = PriceCache()

        simulator = create_market_data_source(cache, Settings())
        live = create_market_data_source(cache, Settings(price_source="coingecko"))

        assert simulator._cache is cache
        assert live._cache is cache
