"""Per-user fixed-window limit on manual retries.

Backed by ``cachetools.TTLCache``: the first retry in a window inserts a
counter that expires one window later.  The counter is mutated in place,
which leaves its expiry untouched, so the window does not slide.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog
from cachetools import TTLCache

from fileready.utils.errors import RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_WINDOW_SECONDS = 3600


class _Counter:
    __slots__ = ("count",)

    def __init__(self) -> None:
        self.count = 0


class ManualRetryRateLimiter:
    """Allows ``max_per_window`` manual retries per user per window.

    Parameters
    ----------
    max_per_window:
        Retries allowed per user per window.  ``0`` disables manual retry.
    window_seconds:
        Window length, one hour by default.
    max_users:
        Upper bound on tracked users before least-recently-used eviction.
    timer:
        Monotonic clock; injectable for tests.
    """

    def __init__(
        self,
        max_per_window: int = 10,
        window_seconds: int = _WINDOW_SECONDS,
        max_users: int = 10_000,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max = max_per_window
        self._counters: TTLCache[str, _Counter] = TTLCache(
            maxsize=max_users, ttl=window_seconds, timer=timer
        )

    def remaining(self, user_id: str) -> int:
        counter = self._counters.get(user_id)
        used = counter.count if counter is not None else 0
        return max(0, self._max - used)

    def acquire(self, user_id: str) -> None:
        """Consume one retry for *user_id*.

        Raises
        ------
        RateLimitError
            If the user has no retries left in the current window.
        """
        counter = self._counters.get(user_id)
        if counter is None:
            counter = _Counter()
            self._counters[user_id] = counter
        if counter.count >= self._max:
            logger.info("manual_retry_rate_limited", user_id=user_id, limit=self._max)
            raise RateLimitError(
                f"Manual retry limit of {self._max} per hour reached; try again later"
            )
        counter.count += 1
