"""Frozen processing configuration passed to every pipeline component.

Built once at startup by :func:`fileready.config.loader.load_config` and
handed down through constructors.  Validation happens here so that bad
values fail at startup rather than mid-pipeline.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RetryConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_processing_retries: int = Field(default=2, ge=0)
    max_embedding_retries: int = Field(default=3, ge=0)
    base_delay_ms: int = Field(default=5000, ge=0)
    max_delay_ms: int = Field(default=60000, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    jitter_factor: float = Field(default=0.1, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> RetryConfig:
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError("max_delay_ms must be >= base_delay_ms")
        return self


class CleanupConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    failed_file_retention_days: int = Field(default=30, ge=0)
    orphaned_chunk_retention_days: int = Field(default=7, ge=0)
    cleanup_batch_size: int = Field(default=100, ge=1)


class RateLimitConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_manual_retries_per_hour: int = Field(default=10, ge=0)


class ChunkingConfig(BaseModel):
    """Token budget for the chunking engine."""

    model_config = ConfigDict(frozen=True)

    max_tokens: int = Field(default=512, ge=1)
    overlap_tokens: int = Field(default=50, ge=0)

    @model_validator(mode="after")
    def _check_overlap(self) -> ChunkingConfig:
        if self.overlap_tokens >= self.max_tokens:
            raise ValueError("overlap_tokens must be smaller than max_tokens")
        return self


class ContextConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    large_file_threshold_bytes: int = Field(default=30 * 1024 * 1024, ge=0)
    max_chunks: int = Field(default=5, ge=1)
    max_total_tokens: int = Field(default=100_000, ge=1)


class FileProcessingConfig(BaseModel):
    """Every tunable the pipeline reads, grouped by concern."""

    model_config = ConfigDict(frozen=True)

    retry: RetryConfig = Field(default_factory=RetryConfig)
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
