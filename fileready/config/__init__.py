"""Configuration module - exports Settings, the processing config, and load_config."""

from fileready.config.loader import load_config
from fileready.config.processing import (
    ChunkingConfig,
    CleanupConfig,
    ContextConfig,
    FileProcessingConfig,
    RateLimitConfig,
    RetryConfig,
)
from fileready.config.settings import Settings

__all__ = [
    "ChunkingConfig",
    "CleanupConfig",
    "ContextConfig",
    "FileProcessingConfig",
    "RateLimitConfig",
    "RetryConfig",
    "Settings",
    "load_config",
]
