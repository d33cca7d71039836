"""Socket endpoint for live price updates."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..config import SOCKET_PATH
from ..market.cache import PriceCache
from ..realtime.protocol import (
    KNOWN_CHANNELS,
    PRICES_CHANNEL,
    MessageDecodeError,
    Ping,
    Subscribe,
    decode_client_message,
    encode_message,
    encode_price_map,
)

logger = logging.getLogger(__name__)


class _SocketSession:
    """Per-socket subscription state."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.channels: set[str] = set()
        self.vault_id: int | None = None
        self.client = (
            f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
        )


def create_stream_router(price_cache: PriceCache, push_interval: float = 0.5) -> APIRouter:
    """Create the socket router with a reference to the price cache.

    This factory pattern lets us inject the PriceCache without globals.
    """
    router = APIRouter(tags=["streaming"])

    @router.websocket(SOCKET_PATH)
    async def price_socket(websocket: WebSocket) -> None:
        """Socket endpoint for channel subscriptions.

        Clients declare interest with

            {"type": "subscribe", "channels": ["prices"], "vaultId": 1}

        and receive one ack/nack per channel. Subscribers of ``prices`` then
        get the full price map whenever the cache changes:

            {"type": "update", "channel": "prices", "data": {"prices": {...}}, ...}
        """
        await websocket.accept()
        session = _SocketSession(websocket)
        logger.info("Socket client connected: %s", session.client)

        pusher = asyncio.create_task(
            _push_prices(session, price_cache, push_interval), name="price-pusher"
        )
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info(
                        "Socket client disconnected: %s (code %s)", session.client, message.get("code")
                    )
                    break
                await _handle_frame(session, message.get("text"))
        except WebSocketDisconnect as e:
            logger.info("Socket client disconnected: %s (code %s)", session.client, e.code)
        finally:
            pusher.cancel()
            try:
                await pusher
            except asyncio.CancelledError:
                pass

    return router


async def _handle_frame(session: _SocketSession, frame: str | None) -> None:
    if frame is None:
        logger.warning("Binary frame from %s", session.client)
        await session.websocket.send_text(
            encode_message("error", {"message": "binary frames are not supported"})
        )
        return
    try:
        message = decode_client_message(frame)
    except MessageDecodeError as e:
        logger.warning("Bad frame from %s: %s", session.client, e)
        await session.websocket.send_text(encode_message("error", {"message": str(e)}))
        return

    if isinstance(message, Ping):
        await session.websocket.send_text(encode_message("pong"))
    elif isinstance(message, Subscribe):
        session.vault_id = message.vault_id
        for channel in message.channels:
            if channel in KNOWN_CHANNELS:
                # Ack goes out before the channel is live so it precedes the first push
                await session.websocket.send_text(
                    encode_message("subscribe-ack", {"channel": channel})
                )
                session.channels.add(channel)
            else:
                await session.websocket.send_text(
                    encode_message(
                        "subscribe-nack", {"channel": channel, "reason": "unknown channel"}
                    )
                )
        logger.info(
            "Client %s subscribed to %s (vault %s)",
            session.client,
            sorted(session.channels),
            session.vault_id,
        )


async def _push_prices(session: _SocketSession, price_cache: PriceCache, interval: float) -> None:
    """Send the full price map to the session whenever the cache version changes."""
    last_version = -1
    while True:
        if PRICES_CHANNEL in session.channels:
            current_version = price_cache.version
            if current_version != last_version:
                last_version = current_version
                prices = price_cache.get_all()
                if prices:
                    try:
                        await session.websocket.send_text(encode_price_map(prices))
                    except (WebSocketDisconnect, RuntimeError) as e:
                        # The receive loop notices the disconnect and tears the session down
                        logger.debug("Push to %s stopped: %s", session.client, e)
                        return
        await asyncio.sleep(interval)
