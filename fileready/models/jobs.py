"""Job payloads, job types, and ingestion results."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class JobType(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Names of the queues the pipeline enqueues onto."""

    FILE_UPLOAD = "file_upload"
    FILE_PROCESSING = "file_processing"
    EMBEDDING_GENERATION = "embedding_generation"


class UploadJob(BaseModel):
    """Payload of a bulk-upload job, one per uploaded file.

    ``temp_id`` is the client-side placeholder id; it travels with every
    event so the client can swap the placeholder for the real record.
    """

    model_config = ConfigDict(frozen=True)

    temp_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    file_name: str = Field(min_length=1)
    mime_type: str = Field(min_length=1)
    size_bytes: int = Field(ge=0)
    blob_path: str = Field(min_length=1)
    content_hash: str = ""
    parent_folder_id: str | None = None


class IngestionResult(BaseModel):
    """Outcome of processing one upload job."""

    model_config = ConfigDict(frozen=True)

    temp_id: str
    success: bool
    file_id: str | None = None
    error: str | None = None
