"""Utility modules for fileready.

- **errors** -- exception hierarchy rooted at FileReadyError; each failure
  category (terminal, transient, orchestration) has its own subclass.
- **logging** -- structlog setup with console output in development and
  structured JSON in production.
- **tokens** -- the word-count token estimate used for every budget.
"""

# -- Domain exception hierarchy --------------------------------------------
from fileready.utils.errors import (
    BlobNotFoundError,
    ConfigurationError,
    ContentRetrievalError,
    EmbeddingError,
    FileReadyError,
    FileRecordNotFoundError,
    JobValidationError,
    PipelineError,
    QueueError,
    RateLimitError,
    SearchIndexError,
    StorageError,
)

# -- Structured logging setup ----------------------------------------------
from fileready.utils.logging import configure_logging, get_logger

# -- Token estimation -------------------------------------------------------
from fileready.utils.tokens import estimate_tokens, tokens_to_words, words_to_tokens

__all__ = [
    "BlobNotFoundError",
    "ConfigurationError",
    "ContentRetrievalError",
    "EmbeddingError",
    "FileReadyError",
    "FileRecordNotFoundError",
    "JobValidationError",
    "PipelineError",
    "QueueError",
    "RateLimitError",
    "SearchIndexError",
    "StorageError",
    "configure_logging",
    "estimate_tokens",
    "get_logger",
    "tokens_to_words",
    "words_to_tokens",
]
