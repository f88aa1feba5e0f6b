"""Retry decision and manual retry result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from fileready.models.file import FileRecord


class RetryReason(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    WITHIN_LIMIT = "within_limit"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"


class ManualRetryScope(str, Enum):  # noqa: UP042
    """What a manual retry restarts.

    ``full`` re-runs chunking and embedding; ``embedding_only`` re-embeds the
    stored chunks.  A file with no stored chunks (permanent failure removes
    them) is always retried in full.
    """

    FULL = "full"
    EMBEDDING_ONLY = "embedding_only"


class RetryDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    should_retry: bool
    new_retry_count: int = Field(ge=0)
    max_retries: int = Field(ge=0)
    backoff_delay_ms: int = Field(ge=0)
    reason: RetryReason


class ManualRetryResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    file: FileRecord | None = None
    job_id: str | None = None
    error: str | None = None
    # Scope actually run; differs from the request when it was upgraded.
    scope: ManualRetryScope | None = None
