"""Stateful retry orchestration for the processing and embedding stages.

When a stage fails, :meth:`ProcessingRetryManager.handle_failure` bumps that
stage's retry counter and either re-enqueues the job with a backoff delay
or declares the file permanently failed.  Permanent failure marks the
file, records the error, removes partial chunk/index data and tells the
user.  From there only :meth:`execute_manual_retry` can revive the file,
and manual retries are rate-limited per user.

Retries are never awaited in-process: the delay travels with the job.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from fileready.interfaces.file_store import IFileStore
from fileready.interfaces.job_queue import IJobQueue
from fileready.interfaces.status_emitter import IStatusEmitter
from fileready.models.events import FileEvent, PermanentlyFailedEvent, RetryScheduledEvent
from fileready.models.file import FileRecord, PipelineStage, ProcessingStatus, ReadinessState
from fileready.models.jobs import JobType
from fileready.models.retry import ManualRetryResult, ManualRetryScope, RetryDecision, RetryReason
from fileready.pipeline.readiness import ReadinessTracker
from fileready.services.cleanup.partial_failure_cleaner import PartialFailureCleaner
from fileready.services.retry.policy import RetryPolicy
from fileready.services.retry.rate_limiter import ManualRetryRateLimiter
from fileready.utils.errors import FileRecordNotFoundError

logger = structlog.get_logger(logger_name=__name__)

MAX_ERROR_LENGTH = 1000


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def truncate_error(message: str, limit: int = MAX_ERROR_LENGTH) -> str:
    """Clip an error message for storage."""
    if len(message) <= limit:
        return message
    return message[: limit - 3] + "..."


def stage_job_type(stage: PipelineStage) -> JobType:
    if stage == PipelineStage.PROCESSING:
        return JobType.FILE_PROCESSING
    return JobType.EMBEDDING_GENERATION


class ProcessingRetryManager:
    """Decides between retry and permanent failure for a stage.

    Parameters
    ----------
    store:
        File rows (retry counters, statuses, errors).
    queue:
        Where retries and manual retries are enqueued.
    emitter:
        Status event delivery (best-effort).
    cleaner:
        Removes partial chunk/index data on permanent failure.
    policy:
        Backoff delays and per-stage maxima.
    readiness:
        Emits readiness transitions.
    rate_limiter:
        Per-user manual retry budget.
    clock:
        Returns "now" for ``failed_at``; injectable for tests.
    """

    def __init__(
        self,
        store: IFileStore,
        queue: IJobQueue,
        emitter: IStatusEmitter,
        cleaner: PartialFailureCleaner,
        policy: RetryPolicy,
        readiness: ReadinessTracker,
        rate_limiter: ManualRetryRateLimiter,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._queue = queue
        self._emitter = emitter
        self._cleaner = cleaner
        self._policy = policy
        self._readiness = readiness
        self._rate_limiter = rate_limiter
        self._clock = clock

    # ------------------------------------------------------------------
    # Automatic retries
    # ------------------------------------------------------------------

    async def should_retry(
        self, user_id: str, file_id: str, stage: PipelineStage
    ) -> RetryDecision:
        """Count one more attempt for *stage* and decide whether it may run.

        Raises
        ------
        FileRecordNotFoundError
            If the file no longer exists.
        """
        new_count = await self._store.increment_retry_count(user_id, file_id, stage)
        max_retries = self._policy.max_retries_for(stage)
        # new_count includes the attempt being decided, hence count - 1 used.
        within_limit = self._policy.should_retry(new_count - 1, max_retries)

        return RetryDecision(
            should_retry=within_limit,
            new_retry_count=new_count,
            max_retries=max_retries,
            backoff_delay_ms=self._policy.next_delay(new_count - 1) if within_limit else 0,
            reason=RetryReason.WITHIN_LIMIT if within_limit else RetryReason.MAX_RETRIES_EXCEEDED,
        )

    async def handle_failure(
        self,
        user_id: str,
        file_id: str,
        stage: PipelineStage,
        error_message: str,
        payload: dict[str, Any] | None = None,
    ) -> RetryDecision | None:
        """Schedule a retry of *stage* or fail the file permanently.

        Returns the decision, or ``None`` when the file was deleted while
        the stage ran (nothing left to retry).
        """
        log = logger.bind(user_id=user_id, file_id=file_id, stage=stage.value)

        try:
            decision = await self.should_retry(user_id, file_id, stage)
        except FileRecordNotFoundError:
            log.info("retry_skipped_file_deleted")
            return None

        await self._store.set_last_error(user_id, file_id, stage, truncate_error(error_message))

        if not decision.should_retry:
            log.warning(
                "retries_exhausted",
                retry_count=decision.new_retry_count,
                max_retries=decision.max_retries,
            )
            await self.handle_permanent_failure(user_id, file_id, stage, error_message)
            return decision

        await self._store.update_status(user_id, file_id, stage, ProcessingStatus.PENDING)
        job_payload = payload or {"user_id": user_id, "file_id": file_id}
        job_id = await self._queue.enqueue(
            stage_job_type(stage), job_payload, delay_ms=decision.backoff_delay_ms
        )
        log.info(
            "retry_scheduled",
            job_id=job_id,
            attempt=decision.new_retry_count,
            max_retries=decision.max_retries,
            delay_ms=decision.backoff_delay_ms,
        )
        await self._emit(
            user_id,
            RetryScheduledEvent(
                file_id=file_id,
                stage=stage,
                attempt=decision.new_retry_count,
                max_retries=decision.max_retries,
                delay_ms=decision.backoff_delay_ms,
            ),
        )
        return decision

    async def handle_permanent_failure(
        self,
        user_id: str,
        file_id: str,
        stage: PipelineStage,
        error_message: str,
    ) -> FileRecord | None:
        """Mark *stage* failed, clean partial output, and notify the user."""
        log = logger.bind(user_id=user_id, file_id=file_id, stage=stage.value)

        before = await self._store.get_file(user_id, file_id)
        if before is None:
            log.info("permanent_failure_skipped_file_deleted")
            return None

        error = truncate_error(error_message)
        await self._store.update_status(user_id, file_id, stage, ProcessingStatus.FAILED)
        await self._store.mark_failed(user_id, file_id, self._clock())
        await self._store.set_last_error(user_id, file_id, stage, error)

        try:
            cleanup = await self._cleaner.cleanup_for_file(user_id, file_id)
            log.info(
                "partial_data_cleaned",
                chunks_deleted=cleanup.chunks_deleted,
                search_documents_deleted=cleanup.search_documents_deleted,
                success=cleanup.success,
            )
        except Exception as exc:
            log.warning("partial_data_cleanup_failed", error=str(exc))

        after = await self._store.get_file(user_id, file_id)
        if after is None:
            return None

        log.error("file_permanently_failed", error=error)
        await self._emit(
            user_id,
            PermanentlyFailedEvent(
                file_id=file_id,
                file_name=after.name,
                stage=stage,
                error=error,
                processing_retry_count=after.processing_retry_count,
                embedding_retry_count=after.embedding_retry_count,
            ),
        )
        await self._readiness.emit_readiness(user_id, after, previous=before.readiness_state)
        return after

    # ------------------------------------------------------------------
    # Manual retry
    # ------------------------------------------------------------------

    async def execute_manual_retry(
        self,
        user_id: str,
        file_id: str,
        scope: ManualRetryScope = ManualRetryScope.FULL,
    ) -> ManualRetryResult:
        """Restart a permanently failed file.

        ``full`` resets both stages and re-runs processing; ``embedding_only``
        keeps the stored chunks and re-runs embedding.  Permanent failure
        removes a file's chunks, so an ``embedding_only`` request for a file
        with no stored chunks runs as ``full``; the effective scope is
        reported on the result.

        Raises
        ------
        FileRecordNotFoundError
            If the file does not exist for this user.
        RateLimitError
            If the user has used up this hour's manual retries.
        """
        log = logger.bind(user_id=user_id, file_id=file_id, scope=scope.value)

        record = await self._store.get_file(user_id, file_id)
        if record is None:
            raise FileRecordNotFoundError(f"File {file_id} not found")

        if record.readiness_state != ReadinessState.FAILED:
            return ManualRetryResult(
                success=False,
                file=record,
                error="Only failed files can be retried",
            )
        if scope == ManualRetryScope.EMBEDDING_ONLY and (
            record.processing_status != ProcessingStatus.COMPLETED
        ):
            return ManualRetryResult(
                success=False,
                file=record,
                error="Processing did not complete; use a full retry",
            )
        if scope == ManualRetryScope.EMBEDDING_ONLY and not await self._store.count_chunks(
            user_id, file_id
        ):
            log.info("manual_retry_upgraded_to_full", reason="no_stored_chunks")
            scope = ManualRetryScope.FULL

        self._rate_limiter.acquire(user_id)

        if scope == ManualRetryScope.FULL:
            stages = [PipelineStage.PROCESSING, PipelineStage.EMBEDDING]
            entry_stage = PipelineStage.PROCESSING
        else:
            stages = [PipelineStage.EMBEDDING]
            entry_stage = PipelineStage.EMBEDDING

        await self._store.clear_failed_status(user_id, file_id, stages)
        for stage in stages:
            await self._store.update_status(user_id, file_id, stage, ProcessingStatus.PENDING)

        try:
            job_id = await self._queue.enqueue(
                stage_job_type(entry_stage), {"user_id": user_id, "file_id": file_id}
            )
        except Exception as exc:
            log.error("manual_retry_enqueue_failed", error=str(exc))
            await self._store.update_status(user_id, file_id, entry_stage, ProcessingStatus.FAILED)
            await self._store.mark_failed(user_id, file_id, self._clock())
            return ManualRetryResult(
                success=False, file=record, error=f"Could not enqueue retry: {exc}"
            )

        updated = await self._store.get_file(user_id, file_id)
        if updated is not None:
            await self._readiness.emit_readiness(user_id, updated, previous=record.readiness_state)

        log.info("manual_retry_started", job_id=job_id)
        return ManualRetryResult(success=True, file=updated, job_id=job_id, scope=scope)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _emit(self, user_id: str, event: FileEvent) -> None:
        try:
            await self._emitter.emit(user_id, event)
        except Exception as exc:
            logger.warning(
                "status_event_emit_failed", user_id=user_id, type=event.type, error=str(exc)
            )
