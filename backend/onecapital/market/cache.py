"""Thread-safe in-memory price cache."""

from __future__ import annotations

import time
from threading import Lock

from .models import PriceEntry, percentage_change


class PriceCache:
    """Thread-safe in-memory cache of the latest price entry for each symbol.

    Server side, a MarketDataSource writes and the REST/socket routers read.
    Client side, each LivePriceFeed owns one instance; nothing is shared
    between feeds unless the caller passes the same cache to both.

    Entries are never expired implicitly. ``is_fresh`` / ``invalidate`` give
    callers an explicit TTL check over the time of the last write.
    """

    def __init__(self) -> None:
        self._prices: dict[str, PriceEntry] = {}
        self._lock = Lock()
        self._version: int = 0  # Monotonically increasing; bumped on every write
        self._last_updated: float | None = None

    def update(
        self,
        symbol: str,
        current: float,
        previous_24h: float | None = None,
        change_24h: float | None = None,
        change_percentage_24h: float | None = None,
        timestamp: float | None = None,
    ) -> PriceEntry:
        """Merge a price for one symbol into the cache. Returns the new entry.

        Omitted ``previous_24h`` keeps the existing entry's reference (or 0.0
        when the symbol is new). Omitted change fields are derived from
        ``current`` and that reference.
        """
        with self._lock:
            ts = timestamp if timestamp is not None else time.time()
            prev = self._prices.get(symbol)
            if previous_24h is None:
                previous_24h = prev.previous_24h if prev else 0.0
            if change_24h is None:
                change_24h = current - previous_24h
            if change_percentage_24h is None:
                change_percentage_24h = percentage_change(current, previous_24h)

            entry = PriceEntry(
                symbol=symbol,
                current=current,
                previous_24h=previous_24h,
                change_24h=change_24h,
                change_percentage_24h=change_percentage_24h,
                timestamp=ts,
            )
            self._prices[symbol] = entry
            self._touch(ts)
            return entry

    def replace_all(self, entries: dict[str, PriceEntry], timestamp: float | None = None) -> None:
        """Swap the whole map. Symbols absent from ``entries`` are dropped."""
        with self._lock:
            self._prices = dict(entries)
            self._touch(timestamp if timestamp is not None else time.time())

    def get(self, symbol: str) -> PriceEntry | None:
        """Get the latest entry for a single symbol, or None if unknown."""
        with self._lock:
            return self._prices.get(symbol)

    def get_all(self) -> dict[str, PriceEntry]:
        """Snapshot of all current entries. Returns a shallow copy."""
        with self._lock:
            return dict(self._prices)

    def remove(self, symbol: str) -> None:
        """Remove a symbol from the cache (e.g., when a source stops tracking it)."""
        with self._lock:
            if self._prices.pop(symbol, None) is not None:
                self._version += 1

    def is_fresh(self, max_age: float, now: float | None = None) -> bool:
        """True if the cache was written within ``max_age`` seconds."""
        with self._lock:
            if self._last_updated is None:
                return False
            now = time.time() if now is None else now
            return now - self._last_updated < max_age

    def invalidate(self) -> None:
        """Mark the contents stale without dropping them."""
        with self._lock:
            self._last_updated = None

    @property
    def last_updated(self) -> float | None:
        """Unix time of the last write, or None if never written / invalidated."""
        return self._last_updated

    @property
    def version(self) -> int:
        """Current version counter. Used by the socket router for change detection."""
        return self._version

    def _touch(self, ts: float) -> None:
        self._version += 1
        self._last_updated = ts
