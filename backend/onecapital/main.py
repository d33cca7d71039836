"""FastAPI application for the One Capital price service.

    python -m onecapital.main
    uvicorn --factory onecapital.main:create_app
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .config import Settings, configure_logging
from .market import PriceCache, create_market_data_source
from .server import create_prices_router, create_stream_router

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, price_cache: PriceCache | None = None) -> FastAPI:
    """Build the app. The data source starts and stops with the app lifespan."""
    settings = settings or Settings.from_env()
    price_cache = price_cache if price_cache is not None else PriceCache()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        source = create_market_data_source(price_cache, settings)
        await source.start(settings.symbols)
        app.state.market_source = source
        logger.info("Price service ready: %s", ", ".join(settings.symbols))
        try:
            yield
        finally:
            await source.stop()

    app = FastAPI(title="One Capital", lifespan=lifespan)
    app.state.price_cache = price_cache
    app.include_router(create_prices_router(price_cache))
    app.include_router(create_stream_router(price_cache))
    return app


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
