"""Orchestrates one bulk-upload job: verify, record, hand off, announce.

    1. verify the blob exists        -> missing: upload_failed event, no retry
    2. create the file record        (both stage statuses pending)
    3. fetch the full record         (for the success event)
    4. enqueue file_processing       -> failure logged, upload still succeeds
    5. emit file:uploaded            (carries temp_id so the client can swap)

A missing blob is terminal and returned, not raised.  Anything unexpected
after step 1 is re-raised once a best-effort failure event has been sent,
so the job system's own retry applies.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from pydantic import ValidationError

from fileready.interfaces.blob_storage import IBlobStorage
from fileready.interfaces.file_store import IFileStore
from fileready.interfaces.job_queue import IJobQueue
from fileready.interfaces.status_emitter import IStatusEmitter
from fileready.models.events import FileEvent, FileUploadedEvent, FileUploadFailedEvent
from fileready.models.file import FileRecord
from fileready.models.jobs import IngestionResult, JobType, UploadJob
from fileready.utils.errors import PipelineError

logger = structlog.get_logger(logger_name=__name__)


class IngestionCoordinator:
    """Turns an upload job into a file record and starts the pipeline."""

    def __init__(
        self,
        blob_storage: IBlobStorage,
        store: IFileStore,
        queue: IJobQueue,
        emitter: IStatusEmitter,
    ) -> None:
        self._blob_storage = blob_storage
        self._store = store
        self._queue = queue
        self._emitter = emitter

    async def process_payload(self, payload: dict[str, Any]) -> IngestionResult:
        """Validate a raw job payload, then process it.

        Malformed payloads are rejected without a retry.
        """
        try:
            job = UploadJob.model_validate(payload)
        except ValidationError as exc:
            temp_id = str(payload.get("temp_id", "")) if isinstance(payload, dict) else ""
            logger.warning("upload_job_invalid", temp_id=temp_id, errors=exc.error_count())
            return IngestionResult(
                temp_id=temp_id,
                success=False,
                error=f"Invalid upload job payload: {exc.error_count()} validation error(s)",
            )
        return await self.process_job(job)

    async def process_job(self, job: UploadJob) -> IngestionResult:
        log = logger.bind(user_id=job.user_id, temp_id=job.temp_id, file_name=job.file_name)

        if not await self._blob_storage.exists(job.blob_path):
            error = f"Blob not found at path: {job.blob_path}"
            log.warning("upload_blob_missing", blob_path=job.blob_path)
            await self._emit_failure(job, error)
            return IngestionResult(temp_id=job.temp_id, success=False, error=error)

        try:
            file_id = str(uuid.uuid4())
            await self._store.create_file(
                FileRecord(
                    file_id=file_id,
                    user_id=job.user_id,
                    name=job.file_name,
                    mime_type=job.mime_type,
                    size_bytes=job.size_bytes,
                    blob_path=job.blob_path,
                    content_hash=job.content_hash,
                    parent_folder_id=job.parent_folder_id,
                )
            )

            record = await self._store.get_file(job.user_id, file_id)
            if record is None:
                raise PipelineError(f"File {file_id} not readable after creation")

            try:
                job_id = await self._queue.enqueue(
                    JobType.FILE_PROCESSING,
                    {"user_id": job.user_id, "file_id": file_id},
                )
                log.debug("processing_job_enqueued", file_id=file_id, job_id=job_id)
            except Exception as exc:
                # The record exists; a later sweep or manual retry can pick it up.
                log.error("processing_enqueue_failed", file_id=file_id, error=str(exc))

            await self._emit(job.user_id, FileUploadedEvent(temp_id=job.temp_id, file=record))
        except Exception as exc:
            log.error("upload_job_failed", error=str(exc))
            await self._emit_failure(job, str(exc))
            raise

        log.info("upload_processed", file_id=file_id, size_bytes=job.size_bytes)
        return IngestionResult(temp_id=job.temp_id, success=True, file_id=file_id)

    # ------------------------------------------------------------------
    # Event helpers
    # ------------------------------------------------------------------

    async def _emit_failure(self, job: UploadJob, error: str) -> None:
        await self._emit(
            job.user_id,
            FileUploadFailedEvent(temp_id=job.temp_id, file_name=job.file_name, error=error),
        )

    async def _emit(self, user_id: str, event: FileEvent) -> None:
        try:
            await self._emitter.emit(user_id, event)
        except Exception as exc:
            logger.warning("status_event_emit_failed", type=event.type, error=str(exc))
