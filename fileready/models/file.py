"""File record, status, and chunk models.

A :class:`FileRecord` is the store's view of one uploaded file.  Its two
stage statuses (``processing_status`` and ``embedding_status``) are written
only by their pipeline stages and by manual retry; the user-facing
``readiness_state`` is always derived from them and never stored.

Every model carries ``user_id``.  Files and chunks are partitioned by
tenant, and store lookups always take the ``(user_id, file_id)`` pair.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ProcessingStatus(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Status of a single pipeline stage for one file."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ReadinessState(str, Enum):  # noqa: UP042
    """User-facing readiness derived from the two stage statuses."""

    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class PipelineStage(str, Enum):  # noqa: UP042
    """The two retryable stages that own a status column."""

    PROCESSING = "processing"
    EMBEDDING = "embedding"


class FileRecord(BaseModel):
    """Persistent metadata for one uploaded file."""

    model_config = ConfigDict(frozen=True)

    file_id: str = Field(description="Unique identifier (UUID) for the file.")
    user_id: str = Field(description="Owning tenant.")
    name: str = Field(description="Original file name as uploaded.")
    mime_type: str = Field(description="Declared MIME type, e.g. application/pdf.")
    size_bytes: int = Field(ge=0, description="Blob size in bytes.")
    blob_path: str = Field(description="Location of the raw blob in storage.")
    content_hash: str = Field(default="", description="Content hash of the blob.")
    parent_folder_id: str | None = Field(
        default=None, description="Containing folder; None means the root."
    )
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    embedding_status: ProcessingStatus = ProcessingStatus.PENDING
    processing_retry_count: int = Field(default=0, ge=0)
    embedding_retry_count: int = Field(default=0, ge=0)
    last_processing_error: str | None = None
    last_embedding_error: str | None = None
    failed_at: datetime | None = Field(
        default=None, description="When the file reached permanent failure."
    )
    has_extracted_text: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def readiness_state(self) -> ReadinessState:
        # Imported lazily; the readiness module imports this one.
        from fileready.pipeline.readiness import compute_readiness

        return compute_readiness(self.processing_status, self.embedding_status)

    def status_for(self, stage: PipelineStage) -> ProcessingStatus:
        """Return the status column that *stage* owns."""
        if stage == PipelineStage.PROCESSING:
            return self.processing_status
        return self.embedding_status

    def retry_count_for(self, stage: PipelineStage) -> int:
        """Return the retry counter that *stage* owns."""
        if stage == PipelineStage.PROCESSING:
            return self.processing_retry_count
        return self.embedding_retry_count


class TextChunk(BaseModel):
    """A token-bounded segment produced by the chunking engine.

    Offsets are character positions into the original extracted text, so
    ``text`` may differ from ``source[start_offset:end_offset]`` only by
    newline normalization.
    """

    model_config = ConfigDict(frozen=True)

    chunk_index: int = Field(ge=0, description="0-based position within the file.")
    text: str
    token_count: int = Field(ge=0, description="Estimated tokens in ``text``.")
    start_offset: int = Field(ge=0)
    end_offset: int = Field(ge=0)


class FileChunk(BaseModel):
    """A persisted chunk row, owned by one file and one user."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    file_id: str
    user_id: str
    chunk_index: int = Field(ge=0)
    text: str
    token_count: int = Field(ge=0)
    start_offset: int = Field(ge=0)
    end_offset: int = Field(ge=0)
    search_document_id: str | None = Field(
        default=None, description="Id of the matching search-index document, once embedded."
    )
    created_at: datetime = Field(default_factory=_utcnow)


class FileForStrategy(BaseModel):
    """The subset of file metadata the context strategy selector reads."""

    model_config = ConfigDict(frozen=True)

    mime_type: str
    size_bytes: int = Field(ge=0)
    has_extracted_text: bool
    embedding_status: ProcessingStatus

    @classmethod
    def from_record(cls, record: FileRecord) -> FileForStrategy:
        return cls(
            mime_type=record.mime_type,
            size_bytes=record.size_bytes,
            has_extracted_text=record.has_extracted_text,
            embedding_status=record.embedding_status,
        )
