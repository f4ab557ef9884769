"""
Fixed-window rate limiter backed by a CounterStore.

Each key owns one window document `{"count": n, "reset_at": ts}`. Once
`reset_at` has passed the window starts over at zero.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from courier.store.base import CounterStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RateLimitState:
    remaining: int
    reset_at: float
    is_limited: bool


class RateLimiter:
    """
    Usage:
        limiter = RateLimiter("push-relay", store, limit=60, window=60.0)
        if await limiter.consume():
            await relay(...)
    """

    def __init__(
        self,
        key: str,
        store: CounterStore,
        limit: int = 60,
        window: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if limit < 1:
            raise ValueError("Rate limit must allow at least one request")
        if window <= 0:
            raise ValueError("Rate limit window must be positive")
        self._key = f"rate_limit:{key}"
        self._store = store
        self._limit = limit
        self._window = window
        self._clock = clock

    async def check(self) -> RateLimitState:
        """Current window state without consuming anything."""
        window = await self._current_window()
        remaining = max(0, self._limit - window["count"])
        return RateLimitState(
            remaining=remaining,
            reset_at=window["reset_at"],
            is_limited=remaining == 0,
        )

    async def consume(self) -> bool:
        """Take one token. Returns False when the window is exhausted."""
        window = await self._current_window()
        if window["count"] >= self._limit:
            logger.debug(f"{self._key} limited until {window['reset_at']:.0f}")
            return False
        window["count"] += 1
        await self._store.save(self._key, window)
        return True

    async def reset(self) -> None:
        await self._store.remove(self._key)

    async def _current_window(self) -> dict:
        now = self._clock()
        window = await self._store.load(self._key)
        if window is None or now > float(window.get("reset_at", 0)):
            window = {"count": 0, "reset_at": now + self._window}
        return window
