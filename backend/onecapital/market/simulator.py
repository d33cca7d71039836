"""Correlated crypto price simulator for demo vaults."""

from __future__ import annotations

import asyncio
import logging
import math
from collections import deque
from dataclasses import dataclass

import numpy as np

from .cache import PriceCache
from .interface import MarketDataSource
from .seed_prices import (
    CHECKPOINT_SECONDS,
    CORRELATION_GROUPS,
    CROSS_GROUP_CORR,
    DEFAULT_PARAMS,
    INTRA_GROUP_CORR,
    PEG_REVERSION_SPEED,
    SEED_PRICES,
    STABLE_CORR,
    STABLE_PEG,
    SYMBOL_PARAMS,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 3600
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY  # Crypto never closes


def round_price(price: float) -> float:
    # Sub-dollar tokens need more precision than cents
    return round(price, 2) if price >= 1 else round(price, 6)


def _group_of(symbol: str) -> str | None:
    for group, members in CORRELATION_GROUPS.items():
        if symbol in members:
            return group
    return None


@dataclass(frozen=True, slots=True)
class Quote:
    price: float
    previous_24h: float


class CryptoMarketSimulator:
    """Correlated price paths for a basket of crypto assets.

    Volatile coins follow geometric Brownian motion

        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    with Z drawn through the basket's correlation matrix, plus rare 2-8%
    shocks. Stablecoins instead revert to their peg (Ornstein-Uhlenbeck,
    sampled exactly so large ticks stay stable) and never take shocks.

    The simulator keeps its own clock, ``tick_seconds`` per step, and
    checkpoints every price at most ``checkpoint_seconds`` apart. Each quote
    carries the price from 24 simulated hours earlier; during the first day
    that reference is the seed price.
    """

    def __init__(
        self,
        symbols: list[str],
        tick_seconds: float = 0.5,
        event_probability: float = 0.001,
        checkpoint_seconds: float = CHECKPOINT_SECONDS,
        seed: int | None = None,
    ) -> None:
        self._tick = tick_seconds
        self._dt = tick_seconds / SECONDS_PER_YEAR
        self._event_prob = event_probability
        self._checkpoint_every = checkpoint_seconds
        self._rng = np.random.default_rng(seed)

        self._clock = 0.0
        self._last_checkpoint = 0.0

        # Parallel arrays, one slot per symbol in self._symbols order
        self._symbols: list[str] = []
        self._prices = np.empty(0)
        self._sigma = np.empty(0)
        self._mu = np.empty(0)
        self._pegged = np.empty(0, dtype=bool)

        # symbol -> (clock, price) checkpoints; the head is the 24h reference
        self._history: dict[str, deque[tuple[float, float]]] = {}

        self._correlation: np.ndarray | None = None
        self._cholesky: np.ndarray | None = None

        self.add_symbols(symbols)

    # --- Public API ---

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    def step(self) -> dict[str, Quote]:
        """Advance the basket by one tick and return the new quotes."""
        n = len(self._symbols)
        if n == 0:
            return {}

        z = self._rng.standard_normal(n)
        if self._cholesky is not None:
            z = self._cholesky @ z

        sqrt_dt = math.sqrt(self._dt)
        volatile = ~self._pegged
        pegged = self._pegged

        drift = (self._mu - 0.5 * self._sigma**2) * self._dt
        self._prices[volatile] *= np.exp(
            drift[volatile] + self._sigma[volatile] * sqrt_dt * z[volatile]
        )

        decay = math.exp(-PEG_REVERSION_SPEED * self._dt)
        self._prices[pegged] = (
            STABLE_PEG
            + (self._prices[pegged] - STABLE_PEG) * decay
            + self._sigma[pegged] * sqrt_dt * z[pegged]
        )

        shocked = volatile & (self._rng.random(n) < self._event_prob)
        if shocked.any():
            moves = self._rng.uniform(0.02, 0.08, n) * self._rng.choice([-1.0, 1.0], n)
            self._prices[shocked] *= 1 + moves[shocked]
            for i in np.flatnonzero(shocked):
                logger.debug("Random event on %s: %+.1f%%", self._symbols[i], moves[i] * 100)

        self._clock += self._tick
        if self._clock - self._last_checkpoint >= self._checkpoint_every:
            self._checkpoint()
        return self.quotes()

    def quotes(self) -> dict[str, Quote]:
        """Current price and 24h reference for every symbol, without stepping."""
        return {
            symbol: Quote(
                price=round_price(float(price)),
                previous_24h=round_price(self._history[symbol][0][1]),
            )
            for symbol, price in zip(self._symbols, self._prices)
        }

    def add_symbols(self, symbols: list[str]) -> None:
        """Seed new symbols and rebuild the correlation matrix once."""
        new = [s for s in dict.fromkeys(symbols) if s not in self._history]
        if not new:
            return

        seeds = [SEED_PRICES.get(s) or float(self._rng.uniform(0.5, 50.0)) for s in new]
        params = [SYMBOL_PARAMS.get(s, DEFAULT_PARAMS) for s in new]

        self._symbols.extend(new)
        self._prices = np.concatenate([self._prices, seeds])
        self._sigma = np.concatenate([self._sigma, [p["sigma"] for p in params]])
        self._mu = np.concatenate([self._mu, [p["mu"] for p in params]])
        self._pegged = np.concatenate(
            [self._pegged, np.array([s in CORRELATION_GROUPS["stable"] for s in new], dtype=bool)]
        )
        for symbol, price in zip(new, seeds):
            self._history[symbol] = deque([(self._clock, price)])
        self._rebuild_correlation()

    def add_symbol(self, symbol: str) -> None:
        self.add_symbols([symbol])

    def remove_symbol(self, symbol: str) -> None:
        if symbol not in self._history:
            return
        i = self._symbols.index(symbol)
        del self._symbols[i]
        self._prices = np.delete(self._prices, i)
        self._sigma = np.delete(self._sigma, i)
        self._mu = np.delete(self._mu, i)
        self._pegged = np.delete(self._pegged, i)
        del self._history[symbol]
        self._rebuild_correlation()

    # --- Internals ---

    def _checkpoint(self) -> None:
        self._last_checkpoint = self._clock
        cutoff = self._clock - SECONDS_PER_DAY
        for symbol, price in zip(self._symbols, self._prices):
            history = self._history[symbol]
            history.append((self._clock, float(price)))
            # Keep the newest checkpoint at or before the cutoff as the head
            while len(history) > 1 and history[1][0] <= cutoff:
                history.popleft()

    def _rebuild_correlation(self) -> None:
        """Group-based correlation matrix and its Cholesky factor.

          - Either is a stablecoin: STABLE_CORR
          - Same group:             INTRA_GROUP_CORR[group]
          - Anything else:          CROSS_GROUP_CORR
        """
        n = len(self._symbols)
        if n <= 1:
            self._correlation = None
            self._cholesky = None
            return

        groups = np.array([_group_of(s) for s in self._symbols], dtype=object)
        intra = np.array([INTRA_GROUP_CORR.get(g, CROSS_GROUP_CORR) for g in groups])
        same_group = groups[:, None] == groups[None, :]

        corr = np.where(same_group, intra[:, None], CROSS_GROUP_CORR)
        corr[self._pegged, :] = STABLE_CORR
        corr[:, self._pegged] = STABLE_CORR
        np.fill_diagonal(corr, 1.0)

        self._correlation = corr
        self._cholesky = np.linalg.cholesky(corr)


class SimulatorDataSource(MarketDataSource):
    """MarketDataSource backed by the crypto simulator.

    A background asyncio task steps the simulator every ``update_interval``
    seconds, so simulated time tracks wall time and the 24h reference written
    to the cache is the simulator's own.
    """

    def __init__(
        self,
        price_cache: PriceCache,
        update_interval: float = 0.5,
        event_probability: float = 0.001,
    ) -> None:
        self._cache = price_cache
        self._interval = update_interval
        self._event_prob = event_probability
        self._sim: CryptoMarketSimulator | None = None
        self._task: asyncio.Task | None = None

    async def start(self, symbols: list[str]) -> None:
        self._sim = CryptoMarketSimulator(
            symbols,
            tick_seconds=self._interval,
            event_probability=self._event_prob,
        )
        self._publish(self._sim.quotes())
        self._task = asyncio.create_task(self._run_loop(), name="simulator-loop")
        logger.info("Simulator started with %d symbols", len(symbols))

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Simulator stopped")

    async def add_symbol(self, symbol: str) -> None:
        if self._sim:
            self._sim.add_symbol(symbol)
            self._publish({symbol: self._sim.quotes()[symbol]})
            logger.info("Simulator: added symbol %s", symbol)

    async def remove_symbol(self, symbol: str) -> None:
        if self._sim:
            self._sim.remove_symbol(symbol)
        self._cache.remove(symbol)
        logger.info("Simulator: removed symbol %s", symbol)

    def get_symbols(self) -> list[str]:
        return self._sim.symbols if self._sim else []

    def _publish(self, quotes: dict[str, Quote]) -> None:
        for symbol, quote in quotes.items():
            self._cache.update(symbol=symbol, current=quote.price, previous_24h=quote.previous_24h)

    async def _run_loop(self) -> None:
        while True:
            try:
                if self._sim:
                    self._publish(self._sim.step())
            except Exception:
                logger.exception("Simulator step failed")
            await asyncio.sleep(self._interval)
