"""Environment-driven settings for the price service and the realtime client."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlsplit, urlunsplit

SOCKET_PATH = "/ws"
PRICES_PATH = "/api/prices"

# Symbols tracked when ONECAPITAL_SYMBOLS is not set
DEFAULT_SYMBOLS: list[str] = ["BTC", "ETH", "SOL", "USDC", "L1X"]


def socket_url_for(base_url: str, path: str = SOCKET_PATH) -> str:
    """Socket endpoint on the same host as ``base_url``.

    The scheme follows the page: http → ws, https → wss.
    """
    parts = urlsplit(base_url)
    scheme = {"https": "wss", "http": "ws"}.get(parts.scheme, parts.scheme)
    return urlunsplit((scheme, parts.netloc, path, "", ""))


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    price_source: str = "simulator"
    symbols: list[str] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    base_url: str = "http://localhost:8000"
    coingecko_api_url: str = "https://api.coingecko.com/api/v3"
    poll_interval: float = 60.0
    reconnect_base: float = 5.0
    reconnect_multiplier: float = 1.5
    reconnect_max_attempts: int = 5
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        """Read settings from environment variables, falling back to defaults.

        Raises:
            ValueError: if a numeric variable does not parse.
        """
        symbols_raw = os.environ.get("ONECAPITAL_SYMBOLS", "").strip()
        symbols = (
            [s.strip().upper() for s in symbols_raw.split(",") if s.strip()]
            if symbols_raw
            else list(DEFAULT_SYMBOLS)
        )
        return cls(
            price_source=os.environ.get("PRICE_SOURCE", "simulator").strip().lower() or "simulator",
            symbols=symbols,
            base_url=os.environ.get("ONECAPITAL_BASE_URL", cls.base_url).strip() or cls.base_url,
            coingecko_api_url=os.environ.get("COINGECKO_API_URL", cls.coingecko_api_url).strip()
            or cls.coingecko_api_url,
            poll_interval=_env_float("ONECAPITAL_POLL_INTERVAL", cls.poll_interval),
            reconnect_base=_env_float("ONECAPITAL_RECONNECT_BASE", cls.reconnect_base),
            reconnect_multiplier=_env_float(
                "ONECAPITAL_RECONNECT_MULTIPLIER", cls.reconnect_multiplier
            ),
            reconnect_max_attempts=_env_int(
                "ONECAPITAL_RECONNECT_MAX_ATTEMPTS", cls.reconnect_max_attempts
            ),
            log_level=os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )

    @property
    def socket_url(self) -> str:
        return socket_url_for(self.base_url)

    @property
    def prices_url(self) -> str:
        return self.base_url.rstrip("/") + PRICES_PATH


def configure_logging(level: str = "INFO") -> None:
    """Root logging setup for entry points. Library modules only log."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
