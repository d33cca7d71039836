"""Realtime price delivery for the One Capital dashboard.

Public API:
    ConnectionManager   - Reconnecting socket with channel subscription
    ConnectionState     - disconnected / connecting / connected / closing
    ReconnectPolicy     - Exponential backoff settings
    LivePriceFeed       - Price map fed by pushes, REST polling as fallback
    http_price_fetcher  - REST fetch function for LivePriceFeed
"""

from .connection import ConnectionManager, ConnectionState, ReconnectPolicy
from .prices import LivePriceFeed, PriceFeedState, PriceFetchError, http_price_fetcher
from .protocol import MessageDecodeError

__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "ReconnectPolicy",
    "LivePriceFeed",
    "PriceFeedState",
    "PriceFetchError",
    "MessageDecodeError",
    "http_price_fetcher",
]
