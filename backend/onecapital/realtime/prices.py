"""Live price map fed by the socket, with REST polling as a fallback."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

import httpx

from ..market.cache import PriceCache
from ..market.models import PriceEntry
from .connection import ConnectionManager
from .protocol import FullUpdate, InboundMessage, PatchUpdate, decode_price_map

logger = logging.getLogger(__name__)

PriceFetcher = Callable[[], Awaitable[dict[str, PriceEntry]]]
Observer = Callable[["PriceFeedState"], None]


class PriceFetchError(RuntimeError):
    """The REST price endpoint returned nothing usable."""


@dataclass(frozen=True)
class PriceFeedState:
    """Immutable view handed to presentation code."""

    prices: Mapping[str, PriceEntry]
    loading: bool
    error: Exception | None
    connected: bool
    stale: bool


def http_price_fetcher(client: httpx.AsyncClient, url: str) -> PriceFetcher:
    """Build a PriceFetcher that GETs the full ``{symbol: entry}`` map from ``url``."""

    async def fetch_prices() -> dict[str, PriceEntry]:
        response = await client.get(url)
        response.raise_for_status()
        prices = decode_price_map(response.json())
        if not prices:
            raise PriceFetchError("No price data received from API")
        return prices

    return fetch_prices


class LivePriceFeed:
    """Best-effort symbol → price map for one view.

    Push updates from the ConnectionManager's ``prices`` channel are applied in
    receipt order. While the connection is down, the REST fetcher is polled
    every ``poll_interval`` seconds instead. A failed fetch only sets
    ``error``; the last good prices stay in place.

    Lifecycle:
        feed = LivePriceFeed(connection, http_price_fetcher(client, url))
        await feed.start()
        ...
        await feed.stop()
    """

    def __init__(
        self,
        connection: ConnectionManager,
        fetch_prices: PriceFetcher,
        cache: PriceCache | None = None,
        poll_interval: float = 60.0,
        stale_after: float = 120.0,
    ) -> None:
        self._connection = connection
        self._fetch_prices = fetch_prices
        self._cache = cache if cache is not None else PriceCache()
        self._interval = poll_interval
        self._stale_after = stale_after

        self._loading = False
        self._error: Exception | None = None
        self._active = False
        self._task: asyncio.Task | None = None
        self._remove_listener: Callable[[], None] | None = None
        self._observers: list[Observer] = []

    # --- Lifecycle ---

    async def start(self) -> None:
        """Subscribe to pushes, do the initial fetch, then start the fallback poller."""
        self._active = True
        self._remove_listener = self._connection.add_listener(self._on_message)

        self._loading = True
        self._notify()
        try:
            await self._fetch()
        finally:
            self._loading = False
            self._notify()

        if self._active:
            self._task = asyncio.create_task(self._poll_loop(), name="price-fallback-poller")
        logger.info("Price feed started (fallback every %.0fs)", self._interval)

    async def stop(self) -> None:
        """Release the subscription and the poller. Later fetch results are discarded."""
        self._active = False
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Price feed stopped")

    # --- Public API ---

    @property
    def prices(self) -> dict[str, PriceEntry]:
        return self._cache.get_all()

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Exception | None:
        return self._error

    @property
    def connected(self) -> bool:
        return self._connection.is_connected

    @property
    def stale(self) -> bool:
        return not self._cache.is_fresh(self._stale_after)

    def snapshot(self) -> PriceFeedState:
        return PriceFeedState(
            prices=MappingProxyType(self._cache.get_all()),
            loading=self._loading,
            error=self._error,
            connected=self.connected,
            stale=self.stale,
        )

    def add_observer(self, observer: Observer) -> Callable[[], None]:
        """Call ``observer`` with a fresh snapshot after every change."""
        self._observers.append(observer)

        def remove() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return remove

    async def refetch(self) -> None:
        """Manual refresh through REST, regardless of the socket."""
        await self._fetch()

    # --- Internal ---

    def _on_message(self, message: InboundMessage) -> None:
        if not self._active:
            return
        if isinstance(message, FullUpdate):
            self._cache.replace_all(message.prices)
        elif isinstance(message, PatchUpdate):
            patch = message.patch
            self._cache.update(
                symbol=message.symbol,
                current=patch.current,
                previous_24h=patch.previous_24h,
                change_24h=patch.change_24h,
                change_percentage_24h=patch.change_percentage_24h,
            )
        else:
            return
        self._notify()

    async def _poll_loop(self) -> None:
        """Fallback loop. Ticks keep running while connected but do nothing."""
        while True:
            await asyncio.sleep(self._interval)
            await self._poll_once()

    async def _poll_once(self) -> None:
        if self._connection.is_connected:
            return
        logger.debug("Socket down, polling prices over REST")
        await self._fetch()

    async def _fetch(self) -> None:
        try:
            prices = await self._fetch_prices()
        except Exception as e:
            if not self._active:
                return
            logger.error("Error fetching prices: %s", e)
            self._error = e
            self._notify()
            return
        if not self._active:
            logger.debug("Discarding price fetch that finished after stop()")
            return
        self._cache.replace_all(prices)
        self._error = None
        logger.debug("Fetched %d prices", len(prices))
        self._notify()

    def _notify(self) -> None:
        if not self._observers:
            return
        state = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception:
                logger.exception("Price feed observer failed")
