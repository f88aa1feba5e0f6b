"""Unit tests for the chunking and embedding pipeline stages."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from fileready.config.processing import ChunkingConfig
from fileready.models.events import ReadinessChangedEvent
from fileready.models.file import ProcessingStatus, ReadinessState
from fileready.models.jobs import JobType
from fileready.models.search import SearchDocument
from fileready.pipeline.readiness import ReadinessTracker
from fileready.pipeline.status_broadcaster import StatusEventBroadcaster
from fileready.providers.embedding.hashing_provider import HashingEmbeddingProvider
from fileready.providers.queue.memory_queue import MemoryJobQueue
from fileready.providers.search_index.memory_index import MemorySearchIndex
from fileready.providers.store.memory_store import MemoryFileStore
from fileready.services.cleanup.orphan_sweeper import SearchIndexOrphanSweeper
from fileready.services.ingestion.chunker import RecursiveTextChunker
from fileready.services.ingestion.stages import FileChunkingStage, FileEmbeddingStage
from fileready.services.retry.retry_manager import ProcessingRetryManager
from fileready.utils.errors import EmbeddingError, StorageError
from tests.conftest import USER_ID, event_types, make_record

P = ProcessingStatus

TEXT = "\n\n".join(
    [
        "Quarterly revenue grew in every region.",
        "The board approved the new hiring plan.",
        "Risks include supply chain delays and currency moves.",
    ]
)


@pytest.fixture
def chunking_stage(
    store: MemoryFileStore,
    queue: MemoryJobQueue,
    readiness: ReadinessTracker,
    retry_manager: ProcessingRetryManager,
) -> FileChunkingStage:
    return FileChunkingStage(
        store=store,
        queue=queue,
        chunker=RecursiveTextChunker(),
        readiness=readiness,
        retry_manager=retry_manager,
    )


@pytest.fixture
def embedding_stage(
    store: MemoryFileStore,
    search_index: MemorySearchIndex,
    embedding_provider: HashingEmbeddingProvider,
    readiness: ReadinessTracker,
    retry_manager: ProcessingRetryManager,
) -> FileEmbeddingStage:
    return FileEmbeddingStage(
        store=store,
        search_index=search_index,
        embedding_provider=embedding_provider,
        readiness=readiness,
        retry_manager=retry_manager,
        batch_size=2,
    )


class TestChunkingStage:
    @pytest.mark.asyncio
    async def test_stores_chunks_and_hands_off(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        chunking_stage: FileChunkingStage,
    ) -> None:
        await store.create_file(make_record())

        record = await chunking_stage.process(USER_ID, "file-1", TEXT)

        assert record.processing_status == P.COMPLETED
        assert record.embedding_status == P.PENDING
        assert record.has_extracted_text is True
        assert await store.get_extracted_text(USER_ID, "file-1") == TEXT

        chunks = await store.list_chunks(USER_ID, "file-1")
        assert [c.chunk_index for c in chunks] == [0, 1, 2]
        assert chunks[2].text.startswith("Risks include")

        [job] = queue.jobs
        assert job.job_type == JobType.EMBEDDING_GENERATION

    @pytest.mark.asyncio
    async def test_rerun_replaces_chunks(
        self, store: MemoryFileStore, chunking_stage: FileChunkingStage
    ) -> None:
        await store.create_file(make_record())

        await chunking_stage.process(USER_ID, "file-1", TEXT)
        await chunking_stage.process(USER_ID, "file-1", "Only one paragraph now.")

        chunks = await store.list_chunks(USER_ID, "file-1")
        assert [c.text for c in chunks] == ["Only one paragraph now."]

    @pytest.mark.asyncio
    async def test_uses_configured_budget(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        readiness: ReadinessTracker,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        stage = FileChunkingStage(
            store=store,
            queue=queue,
            chunker=RecursiveTextChunker(ChunkingConfig(max_tokens=8, overlap_tokens=0)),
            readiness=readiness,
            retry_manager=retry_manager,
        )
        await store.create_file(make_record())

        await stage.process(USER_ID, "file-1", TEXT)

        chunks = await store.list_chunks(USER_ID, "file-1")
        assert len(chunks) > 3
        assert all(c.token_count <= 8 for c in chunks)

    @pytest.mark.asyncio
    async def test_deleted_file_is_skipped(
        self, queue: MemoryJobQueue, chunking_stage: FileChunkingStage
    ) -> None:
        assert await chunking_stage.process(USER_ID, "gone", TEXT) is None
        assert queue.jobs == []

    @pytest.mark.asyncio
    async def test_failure_schedules_processing_retry(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        broadcaster: StatusEventBroadcaster,
        chunking_stage: FileChunkingStage,
    ) -> None:
        await store.create_file(make_record())
        store.replace_chunks = AsyncMock(side_effect=StorageError("write failed"))

        assert await chunking_stage.process(USER_ID, "file-1", TEXT) is None

        record = await store.get_file(USER_ID, "file-1")
        assert record.processing_status == P.PENDING
        assert record.processing_retry_count == 1
        assert "write failed" in record.last_processing_error
        [job] = queue.jobs
        assert job.job_type == JobType.FILE_PROCESSING
        assert "file:retry_scheduled" in event_types(broadcaster)


class TestEmbeddingStage:
    @pytest.mark.asyncio
    async def test_indexes_chunks_and_marks_ready(
        self,
        store: MemoryFileStore,
        search_index: MemorySearchIndex,
        broadcaster: StatusEventBroadcaster,
        chunking_stage: FileChunkingStage,
        embedding_stage: FileEmbeddingStage,
    ) -> None:
        await store.create_file(make_record())
        await chunking_stage.process(USER_ID, "file-1", TEXT)

        record = await embedding_stage.process(USER_ID, "file-1")

        assert record.readiness_state == ReadinessState.READY
        chunks = await store.list_chunks(USER_ID, "file-1")
        assert all(c.search_document_id for c in chunks)
        assert sorted(await search_index.list_document_ids()) == sorted(
            c.search_document_id for c in chunks
        )

        last = broadcaster.recent_events(USER_ID)[-1]
        assert isinstance(last, ReadinessChangedEvent)
        assert last.previous_state == ReadinessState.PROCESSING
        assert last.readiness_state == ReadinessState.READY

    @pytest.mark.asyncio
    async def test_indexed_chunks_are_searchable(
        self,
        store: MemoryFileStore,
        search_index: MemorySearchIndex,
        embedding_provider: HashingEmbeddingProvider,
        chunking_stage: FileChunkingStage,
        embedding_stage: FileEmbeddingStage,
    ) -> None:
        await store.create_file(make_record())
        await chunking_stage.process(USER_ID, "file-1", TEXT)
        await embedding_stage.process(USER_ID, "file-1")

        query = await embedding_provider.embed_single("supply chain delays")
        hits = await search_index.search(USER_ID, query, top=1, file_id="file-1")

        assert hits[0].chunk_index == 2

    @pytest.mark.asyncio
    async def test_rerun_replaces_documents(
        self,
        store: MemoryFileStore,
        search_index: MemorySearchIndex,
        chunking_stage: FileChunkingStage,
        embedding_stage: FileEmbeddingStage,
    ) -> None:
        await store.create_file(make_record())
        await chunking_stage.process(USER_ID, "file-1", TEXT)
        await embedding_stage.process(USER_ID, "file-1")
        first_ids = set(await search_index.list_document_ids())

        await embedding_stage.process(USER_ID, "file-1")

        second_ids = set(await search_index.list_document_ids())
        assert len(second_ids) == 3
        assert not first_ids & second_ids

    @pytest.mark.asyncio
    async def test_deleted_file_is_skipped(self, embedding_stage: FileEmbeddingStage) -> None:
        assert await embedding_stage.process(USER_ID, "gone") is None

    @pytest.mark.asyncio
    async def test_failure_schedules_embedding_retry(
        self,
        store: MemoryFileStore,
        queue: MemoryJobQueue,
        embedding_provider: HashingEmbeddingProvider,
        chunking_stage: FileChunkingStage,
        embedding_stage: FileEmbeddingStage,
    ) -> None:
        await store.create_file(make_record())
        await chunking_stage.process(USER_ID, "file-1", TEXT)
        embedding_provider.embed = AsyncMock(side_effect=EmbeddingError("model offline"))

        assert await embedding_stage.process(USER_ID, "file-1") is None

        record = await store.get_file(USER_ID, "file-1")
        assert record.processing_status == P.COMPLETED
        assert record.embedding_status == P.PENDING
        assert record.embedding_retry_count == 1
        retry_job = queue.jobs[-1]
        assert retry_job.job_type == JobType.EMBEDDING_GENERATION
        assert retry_job.delay_ms == 1000

    @pytest.mark.asyncio
    async def test_missing_chunks_with_text_is_a_failure(
        self,
        store: MemoryFileStore,
        search_index: MemorySearchIndex,
        embedding_stage: FileEmbeddingStage,
    ) -> None:
        await store.create_file(make_record(processing_status=P.COMPLETED))
        await store.set_extracted_text(USER_ID, "file-1", TEXT)

        assert await embedding_stage.process(USER_ID, "file-1") is None

        record = await store.get_file(USER_ID, "file-1")
        assert record.embedding_status == P.PENDING
        assert record.embedding_retry_count == 1
        assert "No stored chunks" in record.last_embedding_error
        assert record.readiness_state != ReadinessState.READY
        assert await search_index.list_document_ids() == []

    @pytest.mark.asyncio
    async def test_blank_text_completes_without_chunks(
        self,
        store: MemoryFileStore,
        chunking_stage: FileChunkingStage,
        embedding_stage: FileEmbeddingStage,
    ) -> None:
        await store.create_file(make_record())
        await chunking_stage.process(USER_ID, "file-1", "  \n\n  ")

        record = await embedding_stage.process(USER_ID, "file-1")

        assert record.readiness_state == ReadinessState.READY
        assert await store.count_chunks(USER_ID, "file-1") == 0

    @pytest.mark.asyncio
    async def test_orphan_sweep_between_batches_keeps_documents(
        self,
        store: MemoryFileStore,
        search_index: MemorySearchIndex,
        embedding_provider: HashingEmbeddingProvider,
        readiness: ReadinessTracker,
        retry_manager: ProcessingRetryManager,
        chunking_stage: FileChunkingStage,
    ) -> None:
        stage = FileEmbeddingStage(
            store=store,
            search_index=search_index,
            embedding_provider=embedding_provider,
            readiness=readiness,
            retry_manager=retry_manager,
            batch_size=1,
        )
        sweeper = SearchIndexOrphanSweeper(store, search_index)
        summaries = []
        upsert = search_index.upsert_documents

        async def upsert_then_sweep(documents: list[SearchDocument]) -> None:
            await upsert(documents)
            summaries.append(await sweeper.run_full_cleanup())

        search_index.upsert_documents = upsert_then_sweep
        await store.create_file(make_record())
        await chunking_stage.process(USER_ID, "file-1", TEXT)

        record = await stage.process(USER_ID, "file-1")

        assert record.readiness_state == ReadinessState.READY
        assert len(summaries) == 3
        assert all(s.total_deleted == 0 for s in summaries)
        linked = set(await store.list_search_document_ids(USER_ID, "file-1"))
        assert len(linked) == 3
        assert set(await search_index.list_document_ids()) == linked
