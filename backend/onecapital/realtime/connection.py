"""Reconnecting socket connection with channel subscription."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .protocol import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    ChannelUpdate,
    ErrorMessage,
    FullUpdate,
    InboundMessage,
    MessageDecodeError,
    PatchUpdate,
    SubscribeAck,
    SubscribeNack,
    decode_message,
    encode_message,
    encode_subscribe,
)
from .transport import Transport, TransportFactory, open_websocket

logger = logging.getLogger(__name__)

MessageListener = Callable[[InboundMessage], None]
HISTORY_SIZE = 20


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


@dataclass(frozen=True)
class ReconnectPolicy:
    """Exponential backoff: delay = base_interval * multiplier ** attempt."""

    base_interval: float = 5.0
    multiplier: float = 1.5
    max_attempts: int = 5

    def delay_for(self, attempt: int) -> float:
        return self.base_interval * self.multiplier**attempt


class ConnectionManager:
    """Owns one socket to the price server and keeps it alive.

    On every successful open the configured channels are (re)declared with a
    single ``subscribe`` frame. Abnormal closes schedule a reconnect with
    exponential backoff until ``policy.max_attempts`` is reached; then the
    manager stays disconnected with ``retries_exhausted`` set until
    ``reconnect()`` or ``on_foreground()`` is called. A normal closure (1000)
    never reconnects.

    Transport failures never raise to callers. They show up as ``state``,
    ``reconnect_attempt`` and ``last_error``.

    All methods must be called from the event loop thread.
    """

    def __init__(
        self,
        url: str,
        channels: list[str] | None = None,
        vault_id: int | None = None,
        policy: ReconnectPolicy | None = None,
        transport_factory: TransportFactory = open_websocket,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._url = url
        self._channels = list(channels) if channels is not None else ["prices"]
        self._vault_id = vault_id
        self._policy = policy or ReconnectPolicy()
        self._transport_factory = transport_factory
        self._scheduler = scheduler

        self._state = ConnectionState.DISCONNECTED
        self._subscribed: set[str] = set()
        self._reconnect_attempt = 0
        self._retries_exhausted = False
        self._last_error: str | None = None
        self._foreground = True

        self._transport: Transport | None = None
        self._task: asyncio.Task | None = None
        self._generation = 0  # Bumped per session; stale sessions drop their events
        self._reconnect_timer: TimerHandle | None = None
        self._scheduled_delay: float | None = None

        self._listeners: list[MessageListener] = []
        self._history: deque[InboundMessage] = deque(maxlen=HISTORY_SIZE)

    # --- Public API ---

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def subscribed_channels(self) -> frozenset[str]:
        return frozenset(self._subscribed)

    @property
    def reconnect_attempt(self) -> int:
        return self._reconnect_attempt

    @property
    def retries_exhausted(self) -> bool:
        """True once automatic retries paused at ``policy.max_attempts``."""
        return self._retries_exhausted

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def scheduled_delay(self) -> float | None:
        """Delay of the pending reconnect timer, or None when none is pending."""
        return self._scheduled_delay

    @property
    def last_message(self) -> InboundMessage | None:
        return self._history[-1] if self._history else None

    @property
    def messages(self) -> list[InboundMessage]:
        """The most recent inbound messages, oldest first."""
        return list(self._history)

    def connect(self) -> None:
        """Start a new session, replacing any existing one."""
        self._teardown()
        self._generation += 1
        self._set_state(ConnectionState.CONNECTING)
        logger.info("Connecting to %s", self._url)
        self._task = asyncio.create_task(
            self._run_session(self._generation), name=f"socket-session-{self._generation}"
        )

    def reconnect(self) -> None:
        """Manual retry: reset the attempt counter and connect now."""
        self._reconnect_attempt = 0
        self._retries_exhausted = False
        self.connect()

    def on_foreground(self) -> None:
        """Resume trigger for the host coming back to the foreground."""
        self._foreground = True
        if self._state not in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            logger.info("Foreground resume, reconnecting")
            self.reconnect()

    def on_background(self) -> None:
        """Pending reconnect timers are skipped while in the background."""
        self._foreground = False

    async def close(self) -> None:
        """Shut down: cancel timers, close with a normal closure, no reconnect."""
        self._set_state(ConnectionState.CLOSING)
        self._generation += 1
        transport, task = self._transport, self._task
        self._teardown()
        if transport is not None:
            try:
                await transport.close(NORMAL_CLOSURE)
            except Exception as e:
                logger.debug("Error closing transport: %s", e)
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._subscribed.clear()
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("Connection closed")

    async def send(self, type_: str, data: dict[str, Any] | None = None) -> bool:
        """Send ``{"type": type_, **data}``. Returns False instead of raising."""
        if self._state is not ConnectionState.CONNECTED or self._transport is None:
            return False
        try:
            await self._transport.send(encode_message(type_, data))
            return True
        except Exception as e:
            logger.error("Error sending %s message: %s", type_, e)
            return False

    def add_listener(self, listener: MessageListener) -> Callable[[], None]:
        """Register a callback for decoded messages. Returns its removal function."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # --- Session ---

    async def _run_session(self, generation: int) -> None:
        try:
            transport = await self._transport_factory(self._url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error opening socket to %s: %s", self._url, e)
            self._last_error = str(e)
            self._on_closed(generation, ABNORMAL_CLOSURE, "")
            return

        if generation != self._generation:
            await transport.close(NORMAL_CLOSURE)
            return

        self._transport = transport
        failed = False
        try:
            await self._on_open(transport)
            async for frame in transport.frames():
                if generation != self._generation:
                    break
                self._on_frame(frame)
        except Exception as e:
            logger.exception("Socket session failed")
            self._last_error = str(e)
            failed = True
        finally:
            if self._transport is transport:
                self._transport = None
            await transport.close()
        # Our own close after a failure is not a clean shutdown
        code = ABNORMAL_CLOSURE if failed else transport.close_code
        self._on_closed(generation, code, transport.close_reason)

    async def _on_open(self, transport: Transport) -> None:
        self._reconnect_attempt = 0
        self._retries_exhausted = False
        self._last_error = None
        self._subscribed = set(self._channels)
        self._set_state(ConnectionState.CONNECTED)
        logger.info("Socket connected, subscribing to %s", ", ".join(self._channels))
        try:
            await transport.send(encode_subscribe(self._channels, self._vault_id))
        except Exception as e:
            logger.error("Error sending subscription message: %s", e)

    def _on_frame(self, frame: str) -> None:
        try:
            message = decode_message(frame)
        except MessageDecodeError as e:
            logger.error("Error parsing socket message: %s", e)
            return

        if isinstance(message, (ChannelUpdate, FullUpdate, PatchUpdate)):
            if message.channel not in self._subscribed:
                logger.debug("Ignoring update on unsubscribed channel %s", message.channel)
                return
        elif isinstance(message, SubscribeNack):
            logger.warning("Subscription to %s rejected: %s", message.channel, message.reason)
            self._subscribed.discard(message.channel)
            self._last_error = f"subscription to {message.channel} rejected: {message.reason}"
        elif isinstance(message, ErrorMessage):
            logger.warning("Server error: %s", message.message)
            self._last_error = message.message
        elif isinstance(message, SubscribeAck):
            logger.debug("Subscribed to %s", message.channel)

        self._history.append(message)
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception:
                logger.exception("Socket message listener failed")

    def _on_closed(self, generation: int, code: int, reason: str) -> None:
        if generation != self._generation:
            return
        self._task = None
        self._subscribed.clear()
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("Socket closed with code %d %s", code, reason)

        if code == NORMAL_CLOSURE:
            return

        if self._reconnect_attempt >= self._policy.max_attempts:
            self._retries_exhausted = True
            self._last_error = (
                f"reconnect attempts exhausted after {self._policy.max_attempts} tries"
            )
            logger.warning(
                "Maximum reconnection attempts (%d) reached. Stopping automatic reconnection.",
                self._policy.max_attempts,
            )
            return

        delay = self._policy.delay_for(self._reconnect_attempt)
        self._reconnect_attempt += 1
        logger.info(
            "Scheduling reconnect attempt %d in %.1fs", self._reconnect_attempt, delay
        )
        self._scheduled_delay = delay
        self._reconnect_timer = self._call_later(delay, self._reconnect_due)

    def _reconnect_due(self) -> None:
        self._reconnect_timer = None
        self._scheduled_delay = None
        if not self._foreground:
            logger.info("In background, deferring reconnect until foreground")
            return
        logger.info("Attempting to reconnect (attempt %d)", self._reconnect_attempt)
        self.connect()

    # --- Internals ---

    def _call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        if self._scheduler is not None:
            return self._scheduler(delay, callback)
        return asyncio.get_running_loop().call_later(delay, callback)

    def _teardown(self) -> None:
        """Cancel the pending reconnect and the current session task."""
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None
        self._scheduled_delay = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._transport = None

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug("Connection state %s -> %s", self._state.value, state.value)
            self._state = state
