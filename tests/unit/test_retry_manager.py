"""Unit tests for ProcessingRetryManager: automatic retries, permanent failure, manual retry."""

from __future__ import annotations

import random
from unittest.mock import AsyncMock

import pytest

from fileready.config.processing import RetryConfig
from fileready.models.events import PermanentlyFailedEvent, RetryScheduledEvent
from fileready.models.file import PipelineStage, ProcessingStatus, ReadinessState
from fileready.models.jobs import JobType
from fileready.models.retry import ManualRetryScope, RetryReason
from fileready.pipeline.readiness import ReadinessTracker
from fileready.pipeline.status_broadcaster import StatusEventBroadcaster
from fileready.providers.queue.memory_queue import MemoryJobQueue
from fileready.providers.search_index.memory_index import MemorySearchIndex
from fileready.providers.store.memory_store import MemoryFileStore
from fileready.services.cleanup.partial_failure_cleaner import PartialFailureCleaner
from fileready.services.retry.policy import RetryPolicy
from fileready.services.retry.rate_limiter import ManualRetryRateLimiter
from fileready.services.retry.retry_manager import (
    MAX_ERROR_LENGTH,
    ProcessingRetryManager,
    stage_job_type,
    truncate_error,
)
from fileready.utils.errors import FileRecordNotFoundError, QueueError, RateLimitError
from tests.conftest import (
    FIXED_NOW,
    USER_ID,
    event_types,
    make_chunk,
    make_document,
    make_record,
)

P = ProcessingStatus


class TestHelpers:
    def test_truncate_error_keeps_short_messages(self) -> None:
        assert truncate_error("boom") == "boom"

    def test_truncate_error_clips_long_messages(self) -> None:
        clipped = truncate_error("x" * 5000)
        assert len(clipped) == MAX_ERROR_LENGTH
        assert clipped.endswith("...")

    def test_stage_job_type(self) -> None:
        assert stage_job_type(PipelineStage.PROCESSING) == JobType.FILE_PROCESSING
        assert stage_job_type(PipelineStage.EMBEDDING) == JobType.EMBEDDING_GENERATION


class TestAutomaticRetry:
    @pytest.mark.asyncio
    async def test_first_failure_schedules_retry(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        broadcaster: StatusEventBroadcaster,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        await store.create_file(make_record(processing_status=P.PROCESSING))

        decision = await retry_manager.handle_failure(
            USER_ID, "file-1", PipelineStage.PROCESSING, "parser crashed"
        )

        assert decision is not None
        assert decision.should_retry is True
        assert decision.new_retry_count == 1
        assert decision.backoff_delay_ms == 1000
        assert decision.reason == RetryReason.WITHIN_LIMIT

        record = await store.get_file(USER_ID, "file-1")
        assert record.processing_status == P.PENDING
        assert record.processing_retry_count == 1
        assert record.last_processing_error == "parser crashed"

        [job] = queue.jobs
        assert job.job_type == JobType.FILE_PROCESSING
        assert job.payload == {"user_id": USER_ID, "file_id": "file-1"}
        assert job.delay_ms == 1000

        [event] = broadcaster.recent_events(USER_ID)
        assert isinstance(event, RetryScheduledEvent)
        assert event.attempt == 1
        assert event.max_retries == 2

    @pytest.mark.asyncio
    async def test_backoff_grows_between_attempts(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        await store.create_file(make_record())

        for _ in range(3):
            await retry_manager.handle_failure(USER_ID, "file-1", PipelineStage.EMBEDDING, "503")

        assert [j.delay_ms for j in queue.jobs] == [1000, 2000, 4000]
        assert {j.job_type for j in queue.jobs} == {JobType.EMBEDDING_GENERATION}

    @pytest.mark.asyncio
    async def test_custom_payload_is_enqueued(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        await store.create_file(make_record())
        payload = {"user_id": USER_ID, "file_id": "file-1", "extracted_text": "hi"}

        await retry_manager.handle_failure(
            USER_ID, "file-1", PipelineStage.PROCESSING, "boom", payload=payload
        )

        assert queue.jobs[0].payload == payload

    @pytest.mark.asyncio
    async def test_long_error_is_truncated(
        self, store: MemoryFileStore, retry_manager: ProcessingRetryManager
    ) -> None:
        await store.create_file(make_record())

        await retry_manager.handle_failure(
            USER_ID, "file-1", PipelineStage.PROCESSING, "e" * 3000
        )

        record = await store.get_file(USER_ID, "file-1")
        assert len(record.last_processing_error) == MAX_ERROR_LENGTH

    @pytest.mark.asyncio
    async def test_deleted_file_is_skipped(
        self, queue: MemoryJobQueue, retry_manager: ProcessingRetryManager
    ) -> None:
        result = await retry_manager.handle_failure(
            USER_ID, "missing", PipelineStage.PROCESSING, "boom"
        )

        assert result is None
        assert queue.jobs == []


class TestPermanentFailure:
    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_the_file(
        self,
        store: MemoryFileStore,
        search_index: MemorySearchIndex,
        queue: MemoryJobQueue,
        broadcaster: StatusEventBroadcaster,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        await store.create_file(make_record(processing_status=P.PROCESSING))
        await store.replace_chunks(
            USER_ID, "file-1", [make_chunk("c1", search_document_id="d1")]
        )
        await search_index.upsert_documents([make_document("d1", "c1")])

        decisions = [
            await retry_manager.handle_failure(
                USER_ID, "file-1", PipelineStage.PROCESSING, f"attempt {i}"
            )
            for i in range(3)
        ]

        assert [d.should_retry for d in decisions] == [True, True, False]
        assert decisions[-1].reason == RetryReason.MAX_RETRIES_EXCEEDED
        assert len(queue.jobs) == 2

        record = await store.get_file(USER_ID, "file-1")
        assert record.processing_status == P.FAILED
        assert record.readiness_state == ReadinessState.FAILED
        assert record.failed_at == FIXED_NOW
        assert record.last_processing_error == "attempt 2"
        assert await store.count_chunks(USER_ID, "file-1") == 0
        assert await search_index.list_document_ids() == []

        types = event_types(broadcaster)
        assert types[-2:] == ["file:permanently_failed", "file:readiness_changed"]
        failed = broadcaster.recent_events(USER_ID)[-2]
        assert isinstance(failed, PermanentlyFailedEvent)
        assert failed.processing_retry_count == 3
        assert failed.can_retry_manually is True

    @pytest.mark.asyncio
    async def test_zero_retries_fails_immediately(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        broadcaster: StatusEventBroadcaster,
        cleaner: PartialFailureCleaner,
        readiness: ReadinessTracker,
    ) -> None:
        manager = ProcessingRetryManager(
            store=store,
            queue=queue,
            emitter=broadcaster,
            cleaner=cleaner,
            policy=RetryPolicy(RetryConfig(max_embedding_retries=0)),
            readiness=readiness,
            rate_limiter=ManualRetryRateLimiter(),
        )
        await store.create_file(make_record(processing_status=P.COMPLETED))

        decision = await manager.handle_failure(USER_ID, "file-1", PipelineStage.EMBEDDING, "x")

        assert decision.should_retry is False
        assert queue.jobs == []
        record = await store.get_file(USER_ID, "file-1")
        assert record.embedding_status == P.FAILED

    @pytest.mark.asyncio
    async def test_cleanup_error_does_not_stop_failure_handling(
        self,
        store: MemoryFileStore,
        broadcaster: StatusEventBroadcaster,
        cleaner: PartialFailureCleaner,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        await store.create_file(make_record())
        cleaner.cleanup_for_file = AsyncMock(side_effect=RuntimeError("db gone"))

        record = await retry_manager.handle_permanent_failure(
            USER_ID, "file-1", PipelineStage.EMBEDDING, "fatal"
        )

        assert record is not None
        assert record.embedding_status == P.FAILED
        assert "file:permanently_failed" in event_types(broadcaster)


class TestManualRetry:
    @pytest.mark.asyncio
    async def test_missing_file_raises(self, retry_manager: ProcessingRetryManager) -> None:
        with pytest.raises(FileRecordNotFoundError):
            await retry_manager.execute_manual_retry(USER_ID, "nope")

    @pytest.mark.asyncio
    async def test_only_failed_files_can_be_retried(
        self, store: MemoryFileStore, retry_manager: ProcessingRetryManager
    ) -> None:
        await store.create_file(make_record())

        result = await retry_manager.execute_manual_retry(USER_ID, "file-1")

        assert result.success is False
        assert result.error == "Only failed files can be retried"

    @pytest.mark.asyncio
    async def test_full_retry_resets_both_stages(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        broadcaster: StatusEventBroadcaster,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        await store.create_file(
            make_record(
                processing_status=P.FAILED,
                processing_retry_count=3,
                last_processing_error="bad pdf",
                failed_at=FIXED_NOW,
            )
        )

        result = await retry_manager.execute_manual_retry(USER_ID, "file-1")

        assert result.success is True
        assert result.job_id == queue.jobs[0].job_id
        assert queue.jobs[0].job_type == JobType.FILE_PROCESSING
        record = result.file
        assert record.processing_status == P.PENDING
        assert record.embedding_status == P.PENDING
        assert record.processing_retry_count == 0
        assert record.last_processing_error is None
        assert record.failed_at is None
        assert record.readiness_state == ReadinessState.PROCESSING
        assert event_types(broadcaster) == ["file:readiness_changed"]

    @pytest.mark.asyncio
    async def test_embedding_only_keeps_processing(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        await store.create_file(
            make_record(
                processing_status=P.COMPLETED,
                embedding_status=P.FAILED,
                embedding_retry_count=4,
                failed_at=FIXED_NOW,
            )
        )
        await store.replace_chunks(USER_ID, "file-1", [make_chunk("c0")])

        result = await retry_manager.execute_manual_retry(
            USER_ID, "file-1", ManualRetryScope.EMBEDDING_ONLY
        )

        assert result.success is True
        assert queue.jobs[0].job_type == JobType.EMBEDDING_GENERATION
        assert result.scope == ManualRetryScope.EMBEDDING_ONLY
        assert result.file.processing_status == P.COMPLETED
        assert result.file.embedding_status == P.PENDING
        assert result.file.embedding_retry_count == 0

    @pytest.mark.asyncio
    async def test_embedding_only_without_chunks_runs_full(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        # Permanent failure already removed the chunks.
        await store.create_file(
            make_record(
                processing_status=P.COMPLETED,
                embedding_status=P.FAILED,
                embedding_retry_count=4,
                failed_at=FIXED_NOW,
            )
        )

        result = await retry_manager.execute_manual_retry(
            USER_ID, "file-1", ManualRetryScope.EMBEDDING_ONLY
        )

        assert result.success is True
        assert result.scope == ManualRetryScope.FULL
        assert [j.job_type for j in queue.jobs] == [JobType.FILE_PROCESSING]
        assert result.file.processing_status == P.PENDING
        assert result.file.embedding_status == P.PENDING
        assert result.file.embedding_retry_count == 0

    @pytest.mark.asyncio
    async def test_embedding_only_requires_completed_processing(
        self, store: MemoryFileStore, retry_manager: ProcessingRetryManager
    ) -> None:
        await store.create_file(make_record(processing_status=P.FAILED, failed_at=FIXED_NOW))

        result = await retry_manager.execute_manual_retry(
            USER_ID, "file-1", ManualRetryScope.EMBEDDING_ONLY
        )

        assert result.success is False
        assert "full retry" in result.error

    @pytest.mark.asyncio
    async def test_rate_limit_applies(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        broadcaster: StatusEventBroadcaster,
        cleaner: PartialFailureCleaner,
        readiness: ReadinessTracker,
    ) -> None:
        manager = ProcessingRetryManager(
            store=store,
            queue=queue,
            emitter=broadcaster,
            cleaner=cleaner,
            policy=RetryPolicy(rng=random.Random(0)),
            readiness=readiness,
            rate_limiter=ManualRetryRateLimiter(max_per_window=1),
        )
        for file_id in ("f1", "f2"):
            await store.create_file(
                make_record(file_id, processing_status=P.FAILED, failed_at=FIXED_NOW)
            )

        first = await manager.execute_manual_retry(USER_ID, "f1")
        assert first.success is True
        with pytest.raises(RateLimitError):
            await manager.execute_manual_retry(USER_ID, "f2")

    @pytest.mark.asyncio
    async def test_refused_retry_does_not_consume_budget(
        self,
        store: MemoryFileStore,
        retry_manager: ProcessingRetryManager,
        rate_limiter: ManualRetryRateLimiter,
    ) -> None:
        await store.create_file(make_record())

        await retry_manager.execute_manual_retry(USER_ID, "file-1")

        assert rate_limiter.remaining(USER_ID) == 10

    @pytest.mark.asyncio
    async def test_enqueue_failure_restores_failed_state(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        await store.create_file(make_record(processing_status=P.FAILED, failed_at=FIXED_NOW))
        queue.enqueue = AsyncMock(side_effect=QueueError("queue down"))

        result = await retry_manager.execute_manual_retry(USER_ID, "file-1")

        assert result.success is False
        assert "queue down" in result.error
        record = await store.get_file(USER_ID, "file-1")
        assert record.processing_status == P.FAILED
        assert record.failed_at == FIXED_NOW
