"""Status events pushed to the owning user.

Events are plain frozen models; the emitter decides how they leave the
process.  Every event names the file it concerns, except ``upload_failed``
which may fire before a file id exists and is keyed by ``temp_id``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from fileready.models.file import FileRecord, PipelineStage, ReadinessState


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class FileEvent(BaseModel):
    """Base class for every status event."""

    model_config = ConfigDict(frozen=True)

    type: str
    timestamp: datetime = Field(default_factory=_utcnow)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict for transports."""
        return self.model_dump(mode="json")


class FileUploadedEvent(FileEvent):
    type: Literal["file:uploaded"] = "file:uploaded"
    temp_id: str
    file: FileRecord


class FileUploadFailedEvent(FileEvent):
    type: Literal["file:upload_failed"] = "file:upload_failed"
    temp_id: str
    file_name: str
    error: str


class ReadinessChangedEvent(FileEvent):
    type: Literal["file:readiness_changed"] = "file:readiness_changed"
    file_id: str
    previous_state: ReadinessState | None = None
    readiness_state: ReadinessState
    processing_status: str
    embedding_status: str


class PermanentlyFailedEvent(FileEvent):
    type: Literal["file:permanently_failed"] = "file:permanently_failed"
    file_id: str
    file_name: str
    stage: PipelineStage
    error: str
    processing_retry_count: int
    embedding_retry_count: int
    can_retry_manually: bool = True


class RetryScheduledEvent(FileEvent):
    type: Literal["file:retry_scheduled"] = "file:retry_scheduled"
    file_id: str
    stage: PipelineStage
    attempt: int
    max_retries: int
    delay_ms: int
