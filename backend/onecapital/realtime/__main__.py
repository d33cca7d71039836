"""Watch live prices from a running One Capital server.

    python -m onecapital.realtime

Uses ONECAPITAL_BASE_URL (default http://localhost:8000) and the reconnect
settings from the environment. Ctrl+C to stop.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from ..config import Settings, configure_logging
from .connection import ConnectionManager, ReconnectPolicy
from .prices import LivePriceFeed, PriceFeedState, http_price_fetcher

logger = logging.getLogger("onecapital.watch")


def _log_state(state: PriceFeedState) -> None:
    if state.loading:
        return
    if state.error is not None:
        logger.warning("Price error: %s (showing %d cached)", state.error, len(state.prices))
    quotes = "  ".join(
        f"{symbol} {entry.current:,.6g} ({entry.change_percentage_24h:+.2f}%)"
        for symbol, entry in sorted(state.prices.items())
    )
    logger.info("[%s] %s", "live" if state.connected else "polling", quotes)


async def watch(settings: Settings) -> None:
    connection = ConnectionManager(
        settings.socket_url,
        channels=["prices"],
        policy=ReconnectPolicy(
            base_interval=settings.reconnect_base,
            multiplier=settings.reconnect_multiplier,
            max_attempts=settings.reconnect_max_attempts,
        ),
    )
    async with httpx.AsyncClient(timeout=10.0) as client:
        feed = LivePriceFeed(
            connection,
            http_price_fetcher(client, settings.prices_url),
            poll_interval=settings.poll_interval,
        )
        feed.add_observer(_log_state)
        connection.connect()
        await feed.start()
        try:
            await asyncio.Event().wait()
        finally:
            await feed.stop()
            await connection.close()


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    try:
        asyncio.run(watch(settings))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
