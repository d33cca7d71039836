"""Data models for market data."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


def percentage_change(current: float, previous: float) -> float:
    """Percent move from ``previous`` to ``current``. Zero when there is no reference."""
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100


@dataclass(frozen=True, slots=True)
class PriceEntry:
    """Immutable snapshot of one symbol's price and its 24h move."""

    symbol: str
    current: float
    previous_24h: float
    change_24h: float
    change_percentage_24h: float
    timestamp: float = field(default_factory=time.time)  # Unix seconds

    @classmethod
    def derive(
        cls,
        symbol: str,
        current: float,
        previous_24h: float,
        timestamp: float | None = None,
    ) -> PriceEntry:
        """Build an entry, computing the change fields from the two prices."""
        return cls(
            symbol=symbol,
            current=current,
            previous_24h=previous_24h,
            change_24h=current - previous_24h,
            change_percentage_24h=percentage_change(current, previous_24h),
            timestamp=timestamp if timestamp is not None else time.time(),
        )

    @classmethod
    def from_dict(cls, symbol: str, data: dict[str, Any]) -> PriceEntry:
        """Parse the camelCase wire shape.

        ``current`` is required. Missing change fields are derived, a missing
        ``previous24h`` falls back to ``current`` (no move).

        Raises:
            ValueError: if ``data`` is not an object or a number is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError(f"price entry for {symbol!r} must be an object")
        try:
            current = float(data["current"])
            previous = float(data.get("previous24h", current))
            change = data.get("change24h")
            change_pct = data.get("changePercentage24h")
            timestamp = data.get("timestamp")
            return cls(
                symbol=symbol,
                current=current,
                previous_24h=previous,
                change_24h=float(change) if change is not None else current - previous,
                change_percentage_24h=(
                    float(change_pct)
                    if change_pct is not None
                    else percentage_change(current, previous)
                ),
                timestamp=float(timestamp) if isinstance(timestamp, (int, float)) else time.time(),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise ValueError(f"malformed price entry for {symbol!r}: {e}") from e

    def to_dict(self) -> dict:
        """Serialize to the camelCase wire shape used by REST and socket payloads."""
        return {
            "current": self.current,
            "previous24h": self.previous_24h,
            "change24h": round(self.change_24h, 8),
            "changePercentage24h": round(self.change_percentage_24h, 4),
            "timestamp": self.timestamp,
        }
