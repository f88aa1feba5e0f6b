"""Application settings loaded from environment variables via pydantic-settings.

Two sources, in priority order:

  1. Environment variables, e.g. ``MAX_EMBEDDING_RETRIES=5``
  2. A ``.env`` file in the working directory

Field ``max_embedding_retries`` maps to env var ``MAX_EMBEDDING_RETRIES``.
Defaults apply when neither source sets a value.  Values explicitly set in
the environment also override ``config/config.yaml`` (see loader.py).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """fileready settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Retry policy ===
    max_processing_retries: int = 2
    max_embedding_retries: int = 3
    base_delay_ms: int = 5000
    max_delay_ms: int = 60000
    backoff_multiplier: float = 2.0
    jitter_factor: float = 0.1

    # === Cleanup ===
    failed_file_retention_days: int = 30
    orphaned_chunk_retention_days: int = 7
    cleanup_batch_size: int = 100

    # === Manual retry rate limit ===
    max_manual_retries_per_hour: int = 10

    # === Chunking / context ===
    chunk_max_tokens: int = 512
    chunk_overlap_tokens: int = 50
    large_file_threshold_bytes: int = 30 * 1024 * 1024
    rag_max_chunks: int = 5
    context_max_total_tokens: int = 100_000

    # === Storage backends ===
    # "memory" keeps everything in-process (tests, dry runs);
    # "sqlite" persists file and chunk rows to file_db_path.
    file_store_backend: str = "sqlite"
    file_db_path: str = "data/files.db"
    blob_root: str = "data/blobs"
    # "memory" or "chromadb"
    search_index_backend: str = "memory"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "fileready_chunks"
    # "hashing" (offline, deterministic) or "fastembed" (ONNX model)
    embedding_backend: str = "hashing"
    embedding_model: str = ""
    embedding_dimension: int = 256

    # === App Config ===
    config_path: str = "config/config.yaml"
    app_env: str = "development"
    log_level: str = "INFO"
