"""Tests for PriceCache."""

import pytest

from onecapital.market.cache import PriceCache
from onecapital.market.models import PriceEntry


class TestPriceCache:
    """Unit tests for the PriceCache."""

    def test_update_and_get(self):
        """Test updating and getting a price."""
        cache = PriceCache()
        entry = cache.update("BTC", 64000.0, previous_24h=60000.0)
        assert entry.symbol == "BTC"
        assert entry.current == 64000.0
        assert cache.get("BTC") == entry

    def test_update_derives_change(self):
        """Test that change fields are derived when omitted."""
        cache = PriceCache()
        entry = cache.update("BTC", 110.0, previous_24h=100.0)
        assert entry.change_24h == 10.0
        assert entry.change_percentage_24h == pytest.approx(10.0)

    def test_update_keeps_previous_reference(self):
        """Test that an omitted previous_24h keeps the existing reference."""
        cache = PriceCache()
        cache.update("BTC", 100.0, previous_24h=100.0)
        entry = cache.update("BTC", 110.0)
        assert entry.previous_24h == 100.0
        assert entry.change_24h == 10.0

    def test_new_symbol_without_reference(self):
        """Test that a new symbol without a reference gets 0 and 0%."""
        cache = PriceCache()
        entry = cache.update("BTC", 110.0)
        assert entry.previous_24h == 0.0
        assert entry.change_percentage_24h == 0.0

    def test_explicit_change_fields_win(self):
        """Test that provided change fields are not recomputed."""
        cache = PriceCache()
        entry = cache.update("BTC", 110.0, previous_24h=100.0, change_24h=1.0, change_percentage_24h=2.0)
        assert entry.change_24h == 1.0
        assert entry.change_percentage_24h == 2.0

    def test_replace_all_drops_missing_symbols(self, price_cache):
        """Test that replace_all swaps the whole map."""
        price_cache.replace_all({"SOL": PriceEntry.derive("SOL", 150.0, 140.0)})
        assert set(price_cache.get_all()) == {"SOL"}
        assert price_cache.get("BTC") is None

    def test_remove(self):
        """Test removing a symbol from cache."""
        cache = PriceCache()
        cache.update("BTC", 100.0)
        cache.remove("BTC")
        assert cache.get("BTC") is None

    def test_remove_nonexistent(self):
        """Test removing a symbol that doesn't exist."""
        cache = PriceCache()
        v0 = cache.version
        cache.remove("BTC")  # Should not raise
        assert cache.version == v0

    def test_get_all_is_a_copy(self, price_cache):
        """Test that get_all() returns a snapshot."""
        snapshot = price_cache.get_all()
        snapshot.pop("BTC")
        assert price_cache.get("BTC") is not None

    def test_version_increments(self):
        """Test that version counter increments on every write."""
        cache = PriceCache()
        v0 = cache.version
        cache.update("BTC", 100.0)
        assert cache.version == v0 + 1
        cache.replace_all({})
        assert cache.version == v0 + 2

    def test_custom_timestamp(self):
        """Test updating with a custom timestamp."""
        cache = PriceCache()
        entry = cache.update("BTC", 100.0, timestamp=1234567890.0)
        assert entry.timestamp == 1234567890.0
        assert cache.last_updated == 1234567890.0

    def test_zero_timestamp_is_kept(self):
        """An explicit epoch timestamp is a real value, not a missing one."""
        cache = PriceCache()
        entry = cache.update("BTC", 100.0, timestamp=0.0)
        assert entry.timestamp == 0.0
        assert cache.last_updated == 0.0

        cache.replace_all({"BTC": entry}, timestamp=0.0)
        assert cache.last_updated == 0.0

    def test_empty_cache_is_not_fresh(self):
        """Test that a never-written cache is stale."""
        assert not PriceCache().is_fresh(60.0)

    def test_is_fresh_respects_max_age(self):
        """Test the TTL check against an explicit clock."""
        cache = PriceCache()
        cache.update("BTC", 100.0, timestamp=1000.0)
        assert cache.is_fresh(60.0, now=1030.0)
        assert not cache.is_fresh(60.0, now=1060.0)

    def test_invalidate_keeps_entries(self, price_cache):
        """Test that invalidate() marks stale without clearing."""
        price_cache.invalidate()
        assert not price_cache.is_fresh(1e9)
        assert price_cache.last_updated is None
        assert set(price_cache.get_all()) == {"BTC", "ETH"}
