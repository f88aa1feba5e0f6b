"""Exception hierarchy for the file readiness pipeline.

Every application exception inherits from :class:`FileReadyError`, which
carries an optional ``provider_name`` naming the collaborator that failed
(e.g. "sqlite", "chromadb", "local_blob") and a ``retryable`` flag telling
the job layer whether the failure belongs to the transient category.

    FileReadyError  (base)
    +-- BlobNotFoundError        (terminal: uploaded blob is gone)
    +-- JobValidationError       (terminal: malformed job payload)
    +-- FileRecordNotFoundError  (terminal: no row for user/file pair)
    +-- StorageError             (transient: relational store I/O)
    +-- SearchIndexError         (transient: search index I/O)
    +-- EmbeddingError           (transient: embedding model load or inference)
    +-- QueueError               (transient: job queue I/O)
    +-- ContentRetrievalError    (context could not be fetched)
    +-- PipelineError            (invalid stage transition / orchestration)
    +-- ConfigurationError       (startup / bad config values)
    +-- RateLimitError           (manual retry budget exhausted)
"""


class FileReadyError(Exception):
    """Base exception for all pipeline errors.

    ``__str__`` prefixes the provider name in brackets for log scanning,
    e.g. ``[sqlite] database is locked``.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Terminal errors (never retried)
# ---------------------------------------------------------------------------

class BlobNotFoundError(FileReadyError):
    """Raised when an uploaded blob is missing from storage."""

    def __init__(
        self,
        message: str = "Blob not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class JobValidationError(FileReadyError):
    """Raised when a job payload fails schema validation."""

    def __init__(
        self,
        message: str = "Invalid job payload",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class FileRecordNotFoundError(FileReadyError):
    """Raised when no file row exists for a ``(user_id, file_id)`` pair."""

    def __init__(
        self,
        message: str = "File record not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Transient collaborator errors
# ---------------------------------------------------------------------------

class StorageError(FileReadyError):
    """Raised when the file/chunk store fails."""

    retryable = True

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SearchIndexError(FileReadyError):
    """Raised when a search index operation (upsert, query, delete) fails."""

    retryable = True

    def __init__(
        self,
        message: str = "Search index operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(FileReadyError):
    """Raised when an embedding model cannot be loaded or fails to embed."""

    retryable = True

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class QueueError(FileReadyError):
    """Raised when a job cannot be enqueued."""

    retryable = True

    def __init__(
        self,
        message: str = "Job queue operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class ContentRetrievalError(FileReadyError):
    """Raised when a file's content cannot be fetched for chat context."""

    def __init__(
        self,
        message: str = "Content retrieval failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(FileReadyError):
    """Raised when pipeline orchestration fails (invalid state transition, etc.)."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(FileReadyError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(FileReadyError):
    """Raised when a user exceeds the manual retry allowance."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
