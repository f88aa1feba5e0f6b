"""Runs queued pipeline jobs in the current process.

The in-memory queue has no worker of its own, so anything that enqueues
work and then exits (the operator CLI, tests) drains it here:

    file_upload           -> IngestionCoordinator.process_payload
    file_processing       -> resolve extracted text -> FileChunkingStage
    embedding_generation  -> FileEmbeddingStage

Text for the chunking stage comes from the stored extracted text, or from
the blob itself for text MIME types.  A file with neither is routed through
the retry manager like any other processing failure, so a drain always ends
with the file either ready or permanently failed.
"""

from __future__ import annotations

import structlog

from fileready.interfaces.blob_storage import IBlobStorage
from fileready.interfaces.file_store import IFileStore
from fileready.models.file import PipelineStage
from fileready.models.jobs import JobType
from fileready.providers.queue.memory_queue import MemoryJobQueue, QueuedJob
from fileready.services.context.strategy import is_text_type
from fileready.services.ingestion.coordinator import IngestionCoordinator
from fileready.services.ingestion.stages import FileChunkingStage, FileEmbeddingStage
from fileready.services.retry.retry_manager import ProcessingRetryManager
from fileready.utils.errors import BlobNotFoundError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_JOBS = 1000


class PipelineJobRunner:
    """Dispatches queued jobs to the coordinator and the two stages."""

    def __init__(
        self,
        queue: MemoryJobQueue,
        store: IFileStore,
        blob_storage: IBlobStorage,
        coordinator: IngestionCoordinator,
        chunking_stage: FileChunkingStage,
        embedding_stage: FileEmbeddingStage,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        self._queue = queue
        self._store = store
        self._blob_storage = blob_storage
        self._coordinator = coordinator
        self._chunking_stage = chunking_stage
        self._embedding_stage = embedding_stage
        self._retry_manager = retry_manager

    async def drain(self, ignore_delay: bool = False, max_jobs: int = DEFAULT_MAX_JOBS) -> int:
        """Run queued jobs until none are due; return how many ran.

        Jobs enqueued while draining (hand-offs, retries) run in the same
        call.  With *ignore_delay* scheduled retries run immediately instead
        of waiting out their backoff; the retry limits still bound the loop.
        """
        ran = 0
        while ran < max_jobs:
            jobs = self._queue.due_jobs(ignore_delay=ignore_delay)
            if not jobs:
                break
            for job in jobs:
                await self.run_job(job)
                ran += 1

        remaining = len(self._queue.jobs)
        logger.info("queue_drained", jobs_run=ran, jobs_remaining=remaining)
        return ran

    async def run_job(self, job: QueuedJob) -> None:
        log = logger.bind(job_id=job.job_id, job_type=job.job_type.value)

        if job.job_type == JobType.FILE_UPLOAD:
            result = await self._coordinator.process_payload(job.payload)
            log.debug("upload_job_run", success=result.success)
            return

        user_id = job.payload.get("user_id")
        file_id = job.payload.get("file_id")
        if not user_id or not file_id:
            log.warning("job_payload_invalid", payload_keys=sorted(job.payload))
            return

        if job.job_type == JobType.EMBEDDING_GENERATION:
            await self._embedding_stage.process(user_id, file_id)
            return

        text = await self._resolve_text(user_id, file_id)
        if text is not None:
            await self._chunking_stage.process(user_id, file_id, text)

    async def _resolve_text(self, user_id: str, file_id: str) -> str | None:
        """Return the text to chunk, or ``None`` once the failure is handled."""
        text = await self._store.get_extracted_text(user_id, file_id)
        if text is not None:
            return text

        record = await self._store.get_file(user_id, file_id)
        if record is None:
            logger.info("processing_skipped_file_deleted", user_id=user_id, file_id=file_id)
            return None

        if not is_text_type(record.mime_type):
            error = f"No extracted text available for {record.mime_type}"
        else:
            try:
                data = await self._blob_storage.download(record.blob_path)
            except BlobNotFoundError as exc:
                error = str(exc)
            else:
                return data.decode("utf-8", errors="replace")

        await self._retry_manager.handle_failure(
            user_id, file_id, PipelineStage.PROCESSING, error
        )
        return None
