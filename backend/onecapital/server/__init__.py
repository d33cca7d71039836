"""HTTP and socket routers of the price service."""

from .prices import create_prices_router
from .stream import create_stream_router

__all__ = ["create_prices_router", "create_stream_router"]
