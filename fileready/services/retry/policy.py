"""Exponential backoff with uniform jitter.

    base_delay(n) = min(max_delay_ms, base_delay_ms * backoff_multiplier ** n)
    next_delay(n) = base_delay(n) scaled by a uniform factor in
                    [1 - jitter_factor, 1 + jitter_factor], rounded to ms

``n`` is the number of retries already used.  ``should_retry(n, max)`` is
``n < max``.  The random source is injectable so tests can pin it.
"""

from __future__ import annotations

import math
import random

from fileready.config.processing import RetryConfig
from fileready.models.file import PipelineStage


class RetryPolicy:
    """Computes retry delays and eligibility from a :class:`RetryConfig`."""

    def __init__(self, config: RetryConfig | None = None, rng: random.Random | None = None) -> None:
        self._config = config or RetryConfig()
        self._rng = rng or random.Random()

    @property
    def config(self) -> RetryConfig:
        return self._config

    def base_delay(self, retry_count: int) -> int:
        """Return the unjittered delay in ms for the given retry count."""
        retry_count = max(0, retry_count)
        cfg = self._config
        try:
            delay = cfg.base_delay_ms * cfg.backoff_multiplier**retry_count
        except OverflowError:
            return cfg.max_delay_ms
        return int(min(cfg.max_delay_ms, delay))

    def jitter_bounds(self, retry_count: int) -> tuple[int, int]:
        """Return the inclusive ``(low, high)`` range :meth:`next_delay` draws from."""
        base = self.base_delay(retry_count)
        spread = base * self._config.jitter_factor
        low = math.ceil(base - spread)
        high = math.floor(base + spread)
        return max(0, low), max(0, high)

    def next_delay(self, retry_count: int) -> int:
        """Return the jittered delay in ms for the given retry count."""
        base = self.base_delay(retry_count)
        jitter = self._config.jitter_factor
        if jitter == 0:
            return base
        low, high = self.jitter_bounds(retry_count)
        delay = round(base * (1 + self._rng.uniform(-jitter, jitter)))
        return min(high, max(low, delay))

    @staticmethod
    def should_retry(retry_count: int, max_retries: int) -> bool:
        return retry_count < max_retries

    def max_retries_for(self, stage: PipelineStage) -> int:
        if stage == PipelineStage.PROCESSING:
            return self._config.max_processing_retries
        return self._config.max_embedding_retries
