"""Fakes for driving the connection manager without a network."""

import asyncio
import json

import pytest

from onecapital.realtime.protocol import ABNORMAL_CLOSURE, NORMAL_CLOSURE
from onecapital.realtime.transport import Transport

_CLOSED = object()


class FakeTransport(Transport):
    """In-memory transport. Tests push frames in and close it from the 'server' side."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed_with: int | None = None
        self.fail_sends = False
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._close_code: int | None = None

    def feed(self, frame: str) -> None:
        self._inbox.put_nowait(frame)

    def drop(self, code: int = ABNORMAL_CLOSURE) -> None:
        """Server-side close with ``code``."""
        if self._close_code is None:
            self._close_code = code
        self._inbox.put_nowait(_CLOSED)

    @property
    def sent_messages(self) -> list[dict]:
        return [json.loads(frame) for frame in self.sent]

    async def send(self, text: str) -> None:
        if self.fail_sends or self._close_code is not None:
            raise ConnectionError("socket is closed")
        self.sent.append(text)

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        if self.closed_with is None:
            self.closed_with = code
        self.drop(code)

    async def frames(self):
        while True:
            frame = await self._inbox.get()
            if frame is _CLOSED:
                return
            yield frame

    @property
    def close_code(self) -> int:
        return self._close_code if self._close_code is not None else ABNORMAL_CLOSURE


class FakeTransportFactory:
    """TransportFactory that hands out FakeTransports, or fails on demand."""

    def __init__(self) -> None:
        self.transports: list[FakeTransport] = []
        self.urls: list[str] = []
        self.fail = False

    async def __call__(self, url: str) -> Transport:
        self.urls.append(url)
        if self.fail:
            raise ConnectionRefusedError("connection refused")
        transport = FakeTransport()
        self.transports.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


class FakeTimer:
    def __init__(self, delay: float, callback) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class RecordingScheduler:
    """Scheduler that records timers instead of running them."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, delay: float, callback) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def delays(self) -> list[float]:
        return [timer.delay for timer in self.timers]

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def fire_last(self) -> None:
        timer = self.timers[-1]
        assert not timer.cancelled
        timer.callback()


async def wait_for(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""

    async def _poll():
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def transport_factory():
    return FakeTransportFactory()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def wait_until():
    return wait_for
