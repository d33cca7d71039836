"""JSON wire protocol shared by the socket router and the connection manager.

Every frame is a JSON object with a ``type`` field. Server frames are decoded
into one of the message dataclasses below; the price payload shape (full map
or single-symbol patch) is resolved here, once, so consumers only match on the
message class.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Union

from ..market.models import PriceEntry

PRICES_CHANNEL = "prices"
TRANSACTIONS_CHANNEL = "transactions"
KNOWN_CHANNELS = frozenset({PRICES_CHANNEL, TRANSACTIONS_CHANNEL})

# WebSocket close codes
NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006


class MessageDecodeError(ValueError):
    """A frame could not be decoded into a known message."""


@dataclass(frozen=True, slots=True)
class PricePatch:
    """Partial price fields for one symbol. Only ``current`` is mandatory."""

    current: float
    previous_24h: float | None = None
    change_24h: float | None = None
    change_percentage_24h: float | None = None


@dataclass(frozen=True, slots=True)
class SubscribeAck:
    channel: str


@dataclass(frozen=True, slots=True)
class SubscribeNack:
    channel: str
    reason: str = ""


@dataclass(frozen=True, slots=True)
class ErrorMessage:
    message: str
    channel: str | None = None


@dataclass(frozen=True, slots=True)
class ChannelUpdate:
    """Update on a channel without a dedicated payload type."""

    channel: str
    data: dict[str, Any]
    timestamp: str | None = None


@dataclass(frozen=True, slots=True)
class FullUpdate:
    """Replace-everything price update."""

    prices: dict[str, PriceEntry]
    timestamp: str | None = None
    channel: str = PRICES_CHANNEL


@dataclass(frozen=True, slots=True)
class PatchUpdate:
    """Merge-one-symbol price update."""

    symbol: str
    patch: PricePatch
    timestamp: str | None = None
    channel: str = PRICES_CHANNEL


InboundMessage = Union[SubscribeAck, SubscribeNack, ErrorMessage, ChannelUpdate, FullUpdate, PatchUpdate]


@dataclass(frozen=True, slots=True)
class Subscribe:
    """Client subscription declaration, as seen by the server."""

    channels: list[str]
    vault_id: int | None = None


@dataclass(frozen=True, slots=True)
class Ping:
    pass


ClientMessage = Union[Subscribe, Ping]


# --- Encoding ---


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def encode_message(type_: str, data: dict[str, Any] | None = None) -> str:
    """Serialize ``{"type": type_, **data}``."""
    return json.dumps({"type": type_, **(data or {})})


def encode_subscribe(channels: list[str], vault_id: int | None = None) -> str:
    payload: dict[str, Any] = {"channels": list(channels)}
    if vault_id is not None:
        payload["vaultId"] = vault_id
    return encode_message("subscribe", payload)


def encode_price_map(prices: dict[str, PriceEntry], timestamp: str | None = None) -> str:
    """Full-map ``prices`` update, as pushed by the socket router."""
    return encode_message(
        "update",
        {
            "channel": PRICES_CHANNEL,
            "data": {"prices": {symbol: entry.to_dict() for symbol, entry in prices.items()}},
            "timestamp": timestamp or utc_timestamp(),
        },
    )


# --- Decoding ---


def _load_object(raw: str | bytes) -> dict[str, Any]:
    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MessageDecodeError(f"invalid JSON frame: {e}") from e
    except RecursionError as e:
        raise MessageDecodeError("JSON frame nested too deeply") from e
    if not isinstance(message, dict):
        raise MessageDecodeError("frame must be a JSON object")
    return message


def _optional_float(data: dict[str, Any], key: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    return float(value)


def decode_price_map(data: Any) -> dict[str, PriceEntry]:
    """Parse a ``{symbol: entry}`` map (REST body or full-map payload).

    Raises:
        MessageDecodeError: if the map or any entry is malformed.
    """
    if not isinstance(data, dict):
        raise MessageDecodeError("price map must be an object")
    try:
        return {symbol: PriceEntry.from_dict(symbol, entry) for symbol, entry in data.items()}
    except ValueError as e:
        raise MessageDecodeError(str(e)) from e


def decode_price_payload(data: Any, timestamp: str | None = None) -> FullUpdate | PatchUpdate:
    """Resolve a ``prices`` payload into a full replacement or a patch.

    Accepted shapes:
        {"prices": {symbol: entry}}          full map
        {"symbol": str, "price": {...}}      single-symbol patch
        {symbol: entry, ...}                 bare full map
    """
    if not isinstance(data, dict):
        raise MessageDecodeError("prices payload must be an object")

    if isinstance(data.get("prices"), dict):
        return FullUpdate(prices=decode_price_map(data["prices"]), timestamp=timestamp)

    if "symbol" in data and "price" in data:
        symbol, price = data["symbol"], data["price"]
        if not isinstance(symbol, str) or not isinstance(price, dict):
            raise MessageDecodeError("patch must carry a symbol string and a price object")
        try:
            patch = PricePatch(
                current=float(price["current"]),
                previous_24h=_optional_float(price, "previous24h"),
                change_24h=_optional_float(price, "change24h"),
                change_percentage_24h=_optional_float(price, "changePercentage24h"),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise MessageDecodeError(f"malformed patch for {symbol!r}: {e}") from e
        return PatchUpdate(symbol=symbol, patch=patch, timestamp=timestamp)

    return FullUpdate(prices=decode_price_map(data), timestamp=timestamp)


def decode_message(raw: str | bytes) -> InboundMessage:
    """Decode a server frame.

    Raises:
        MessageDecodeError: for non-JSON frames, unknown types or bad payloads.
    """
    message = _load_object(raw)
    type_ = message.get("type")
    channel = message.get("channel")

    if type_ == "subscribe-ack":
        return SubscribeAck(channel=str(channel))
    if type_ == "subscribe-nack":
        return SubscribeNack(channel=str(channel), reason=str(message.get("reason", "")))
    if type_ == "error":
        return ErrorMessage(
            message=str(message.get("message", "unknown error")),
            channel=channel if isinstance(channel, str) else None,
        )
    if type_ == "update":
        if not isinstance(channel, str):
            raise MessageDecodeError("update without a channel")
        timestamp = message.get("timestamp")
        timestamp = timestamp if isinstance(timestamp, str) else None
        data = message.get("data")
        if channel == PRICES_CHANNEL:
            return decode_price_payload(data, timestamp)
        if not isinstance(data, dict):
            raise MessageDecodeError(f"update on {channel!r} must carry an object")
        return ChannelUpdate(channel=channel, data=data, timestamp=timestamp)

    raise MessageDecodeError(f"unknown message type: {type_!r}")


def decode_client_message(raw: str | bytes) -> ClientMessage:
    """Decode a client frame on the server side.

    Raises:
        MessageDecodeError: for non-JSON frames, unknown types or bad payloads.
    """
    message = _load_object(raw)
    type_ = message.get("type")

    if type_ == "ping":
        return Ping()
    if type_ == "subscribe":
        channels = message.get("channels")
        # Older clients send a single "channel"
        if channels is None and isinstance(message.get("channel"), str):
            channels = [message["channel"]]
        if not isinstance(channels, list) or not all(isinstance(c, str) for c in channels):
            raise MessageDecodeError("subscribe needs a list of channel names")
        vault_id = message.get("vaultId")
        if vault_id is not None and (isinstance(vault_id, bool) or not isinstance(vault_id, int)):
            raise MessageDecodeError("vaultId must be an integer")
        return Subscribe(channels=channels, vault_id=vault_id)

    raise MessageDecodeError(f"unknown message type: {type_!r}")
