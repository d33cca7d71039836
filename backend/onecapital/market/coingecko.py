"""CoinGecko API client for live crypto prices."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from .cache import PriceCache
from .interface import MarketDataSource
from .seed_prices import COINGECKO_IDS

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.coingecko.com/api/v3"


class CoinGeckoDataSource(MarketDataSource):
    """MarketDataSource backed by the CoinGecko ``simple/price`` endpoint.

    One request per poll covers every watched symbol. The response carries the
    current USD price and the 24h percent change, from which the 24h reference
    price is recovered: previous = current / (1 + pct / 100).

    Rate limits:
      - Public API: ~10-30 req/min → poll every 30s (default)
    """

    def __init__(
        self,
        price_cache: PriceCache,
        api_url: str = DEFAULT_API_URL,
        poll_interval: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._cache = price_cache
        self._interval = poll_interval
        self._symbols: list[str] = []
        self._task: asyncio.Task | None = None
        self._client = client
        self._owns_client = client is None

    async def start(self, symbols: list[str]) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)
        self._symbols = [s.upper().strip() for s in symbols]

        # Do an immediate first poll so the cache has data right away
        await self._poll_once()

        self._task = asyncio.create_task(self._poll_loop(), name="coingecko-poller")
        logger.info(
            "CoinGecko poller started: %d symbols, %.1fs interval",
            len(self._symbols),
            self._interval,
        )

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        logger.info("CoinGecko poller stopped")

    async def add_symbol(self, symbol: str) -> None:
        symbol = symbol.upper().strip()
        if symbol not in self._symbols:
            self._symbols.append(symbol)
            logger.info("CoinGecko: added symbol %s (will appear on next poll)", symbol)

    async def remove_symbol(self, symbol: str) -> None:
        symbol = symbol.upper().strip()
        self._symbols = [s for s in self._symbols if s != symbol]
        self._cache.remove(symbol)
        logger.info("CoinGecko: removed symbol %s", symbol)

    def get_symbols(self) -> list[str]:
        return list(self._symbols)

    # --- Internal ---

    async def _poll_loop(self) -> None:
        """Poll on interval. First poll already happened in start()."""
        while True:
            await asyncio.sleep(self._interval)
            await self._poll_once()

    async def _poll_once(self) -> None:
        """Execute one poll cycle: fetch quotes, update cache."""
        ids = {}
        for symbol in self._symbols:
            coin_id = COINGECKO_IDS.get(symbol)
            if coin_id is None:
                logger.warning("No CoinGecko id mapping for symbol: %s", symbol)
                continue
            ids[coin_id] = symbol
        if not ids or self._client is None:
            return

        try:
            quotes = await self._fetch_quotes(list(ids))
        except Exception as e:
            # Retried on the next interval: rate limits (429) and network errors are common
            logger.error("CoinGecko poll failed: %s", e)
            return

        processed = 0
        for coin_id, symbol in ids.items():
            quote = quotes.get(coin_id)
            try:
                current = float(quote["usd"])
                change_pct = float(quote.get("usd_24h_change") or 0.0)
                previous = current / (1 + change_pct / 100) if change_pct > -100 else 0.0
                updated_at = quote.get("last_updated_at")
                self._cache.update(
                    symbol=symbol,
                    current=current,
                    previous_24h=previous,
                    change_percentage_24h=change_pct,
                    timestamp=float(updated_at) if updated_at else None,
                )
                processed += 1
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping quote for %s: %s", symbol, e)
        logger.debug("CoinGecko poll: updated %d/%d symbols", processed, len(ids))

    async def _fetch_quotes(self, coin_ids: list[str]) -> dict[str, Any]:
        response = await self._client.get(
            f"{self._api_url}/simple/price",
            params={
                "ids": ",".join(coin_ids),
                "vs_currencies": "usd",
                "include_24hr_change": "true",
                "include_last_updated_at": "true",
            },
        )
        response.raise_for_status()
        return response.json()
