"""Abstract interface for market data sources."""

from __future__ import annotations

from abc import ABC, abstractmethod


class MarketDataSource(ABC):
    """Contract for server-side price providers.

    Implementations push price entries into a shared PriceCache on their own
    schedule. The REST and socket routers never call the data source directly
    for prices; they read from the cache.

    Lifecycle:
        source = create_market_data_source(cache, settings)
        await source.start(["BTC", "ETH", ...])
        # ... app runs ...
        await source.add_symbol("SOL")
        await source.remove_symbol("ETH")
        # ... app shutting down ...
        await source.stop()
    """

    @abstractmethod
    async def start(self, symbols: list[str]) -> None:
        """Begin producing price updates for the given symbols.

        Starts a background task that periodically writes to the PriceCache.
        Must be called exactly once.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Stop the background task and release resources.

        Safe to call multiple times. After stop(), the source will not write
        to the cache again.
        """

    @abstractmethod
    async def add_symbol(self, symbol: str) -> None:
        """Add a symbol to the active set. No-op if already present."""

    @abstractmethod
    async def remove_symbol(self, symbol: str) -> None:
        """Remove a symbol from the active set and from the PriceCache."""

    @abstractmethod
    def get_symbols(self) -> list[str]:
        """Return the current list of actively tracked symbols."""
