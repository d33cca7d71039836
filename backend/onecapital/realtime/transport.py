"""Transport primitive wrapped by the connection manager."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from .protocol import ABNORMAL_CLOSURE, NORMAL_CLOSURE


class Transport(ABC):
    """A single open text-frame connection.

    ``frames()`` yields inbound text frames until the peer or the network ends
    the connection; it never raises for a close. After it finishes,
    ``close_code`` / ``close_reason`` describe how the connection ended.
    """

    @abstractmethod
    async def send(self, text: str) -> None:
        """Transmit one frame. Raises if the connection is gone."""

    @abstractmethod
    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Close the connection. Safe to call multiple times."""

    @abstractmethod
    def frames(self) -> AsyncIterator[str]:
        """Inbound frames in delivery order."""

    @property
    @abstractmethod
    def close_code(self) -> int:
        """Close code once closed; ABNORMAL_CLOSURE when none was received."""

    @property
    def close_reason(self) -> str:
        return ""


TransportFactory = Callable[[str], Awaitable[Transport]]


class WebsocketTransport(Transport):
    """Transport over a ``websockets`` client connection."""

    def __init__(self, connection: ClientConnection) -> None:
        self._ws = connection

    @classmethod
    async def open(cls, url: str, open_timeout: float = 10.0) -> WebsocketTransport:
        # Keepalive pings are left to the library defaults
        connection = await connect(url, open_timeout=open_timeout, close_timeout=5)
        return cls(connection)

    async def send(self, text: str) -> None:
        await self._ws.send(text)

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        await self._ws.close(code, reason)

    async def frames(self) -> AsyncIterator[str]:
        try:
            async for message in self._ws:
                yield message if isinstance(message, str) else message.decode("utf-8", "replace")
        except ConnectionClosed:
            return

    @property
    def close_code(self) -> int:
        code = self._ws.close_code
        return code if code is not None else ABNORMAL_CLOSURE

    @property
    def close_reason(self) -> str:
        return self._ws.close_reason or ""


async def open_websocket(url: str) -> Transport:
    """Default TransportFactory."""
    return await WebsocketTransport.open(url)
