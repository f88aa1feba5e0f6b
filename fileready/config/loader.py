"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers override earlier):

  1. Field defaults in :mod:`fileready.config.processing`
  2. ``config/config.yaml``  - static values checked into the repo
  3. ``.env`` / environment  - only keys explicitly set there

:func:`load_config` returns one frozen :class:`FileProcessingConfig`.  There
is no module-level instance: the caller builds it once and passes it down.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from fileready.config.processing import FileProcessingConfig
from fileready.config.settings import Settings
from fileready.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

# Settings field name -> (section, key) in the processing config.
_SETTINGS_MAP: dict[str, tuple[str, str]] = {
    "max_processing_retries": ("retry", "max_processing_retries"),
    "max_embedding_retries": ("retry", "max_embedding_retries"),
    "base_delay_ms": ("retry", "base_delay_ms"),
    "max_delay_ms": ("retry", "max_delay_ms"),
    "backoff_multiplier": ("retry", "backoff_multiplier"),
    "jitter_factor": ("retry", "jitter_factor"),
    "failed_file_retention_days": ("cleanup", "failed_file_retention_days"),
    "orphaned_chunk_retention_days": ("cleanup", "orphaned_chunk_retention_days"),
    "cleanup_batch_size": ("cleanup", "cleanup_batch_size"),
    "max_manual_retries_per_hour": ("rate_limit", "max_manual_retries_per_hour"),
    "chunk_max_tokens": ("chunking", "max_tokens"),
    "chunk_overlap_tokens": ("chunking", "overlap_tokens"),
    "large_file_threshold_bytes": ("context", "large_file_threshold_bytes"),
    "rag_max_chunks": ("context", "max_chunks"),
    "context_max_total_tokens": ("context", "max_total_tokens"),
}


def load_config(
    path: str | Path | None = None,
    settings: Settings | None = None,
) -> FileProcessingConfig:
    """Load YAML config and merge environment-based Settings on top.

    Args:
        path: Path to the YAML file.  Defaults to ``settings.config_path``.
              A missing file is not an error; defaults apply.
        settings: Settings instance; a fresh one is read when omitted.

    Returns:
        Fully resolved, validated configuration.

    Raises:
        ConfigurationError: If the YAML is malformed or a value is invalid.
    """
    settings = settings or Settings()
    config_path = Path(path or settings.config_path)

    if config_path.exists():
        try:
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {config_path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
    else:
        yaml_config = {}

    _deep_merge(yaml_config, _env_overrides(settings))

    try:
        config = FileProcessingConfig.model_validate(yaml_config)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid processing configuration: {exc}") from exc

    logger.debug("config_loaded", path=str(config_path), from_file=config_path.exists())
    return config


def _env_overrides(settings: Settings) -> dict[str, Any]:
    """Return nested overrides for Settings fields set explicitly in the environment."""
    overrides: dict[str, Any] = {}
    for field_name in settings.model_fields_set:
        target = _SETTINGS_MAP.get(field_name)
        if target is None:
            continue
        section, key = target
        overrides.setdefault(section, {})[key] = getattr(settings, field_name)
    return overrides


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
