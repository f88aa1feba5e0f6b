"""Retry policy, retry orchestration, and manual retry rate limiting."""

from fileready.services.retry.policy import RetryPolicy
from fileready.services.retry.rate_limiter import ManualRetryRateLimiter
from fileready.services.retry.retry_manager import ProcessingRetryManager, truncate_error

__all__ = ["ManualRetryRateLimiter", "ProcessingRetryManager", "RetryPolicy", "truncate_error"]
