"""Pipeline stages that run after text extraction.

:class:`FileChunkingStage` owns ``processing_status``: it chunks extracted
text, replaces the file's chunk rows, and hands off to embedding.
:class:`FileEmbeddingStage` owns ``embedding_status``: it embeds the stored
chunks, writes them to the search index, and links chunk rows to index
documents.

Both stages are idempotent per file (chunk rows and index documents are
replaced, not appended), skip files deleted mid-pipeline, and route any
failure through :class:`ProcessingRetryManager`.
"""

from __future__ import annotations

import uuid

import structlog

from fileready.interfaces.embedding_provider import IEmbeddingProvider
from fileready.interfaces.file_store import IFileStore
from fileready.interfaces.job_queue import IJobQueue
from fileready.interfaces.search_index import ISearchIndex
from fileready.models.file import FileChunk, FileRecord, PipelineStage, ProcessingStatus
from fileready.models.jobs import JobType
from fileready.models.search import SearchDocument
from fileready.pipeline.readiness import ReadinessTracker
from fileready.services.ingestion.chunker import RecursiveTextChunker
from fileready.services.retry.retry_manager import ProcessingRetryManager
from fileready.utils.errors import PipelineError

logger = structlog.get_logger(logger_name=__name__)


class FileChunkingStage:
    """Chunks a file's extracted text and enqueues embedding."""

    def __init__(
        self,
        store: IFileStore,
        queue: IJobQueue,
        chunker: RecursiveTextChunker,
        readiness: ReadinessTracker,
        retry_manager: ProcessingRetryManager,
    ) -> None:
        self._store = store
        self._queue = queue
        self._chunker = chunker
        self._readiness = readiness
        self._retry_manager = retry_manager

    async def process(self, user_id: str, file_id: str, extracted_text: str) -> FileRecord | None:
        """Run the stage for one file.

        Returns the updated record, or ``None`` if the file is gone or the
        stage failed (in which case a retry or permanent failure has been
        scheduled).
        """
        log = logger.bind(user_id=user_id, file_id=file_id)

        record = await self._store.get_file(user_id, file_id)
        if record is None:
            log.info("chunking_skipped_file_deleted")
            return None

        try:
            await self._readiness.update_status(
                user_id, file_id, PipelineStage.PROCESSING, ProcessingStatus.PROCESSING
            )
            await self._store.set_extracted_text(user_id, file_id, extracted_text)

            chunks = [
                FileChunk(
                    chunk_id=str(uuid.uuid4()),
                    file_id=file_id,
                    user_id=user_id,
                    chunk_index=c.chunk_index,
                    text=c.text,
                    token_count=c.token_count,
                    start_offset=c.start_offset,
                    end_offset=c.end_offset,
                )
                for c in self._chunker.chunk(extracted_text)
            ]
            stored = await self._store.replace_chunks(user_id, file_id, chunks)

            await self._readiness.update_status(
                user_id, file_id, PipelineStage.EMBEDDING, ProcessingStatus.PENDING
            )
            updated = await self._readiness.update_status(
                user_id, file_id, PipelineStage.PROCESSING, ProcessingStatus.COMPLETED
            )
            await self._queue.enqueue(
                JobType.EMBEDDING_GENERATION, {"user_id": user_id, "file_id": file_id}
            )
        except Exception as exc:
            log.error("chunking_stage_failed", error=str(exc))
            await self._retry_manager.handle_failure(
                user_id, file_id, PipelineStage.PROCESSING, str(exc)
            )
            return None

        log.info("chunking_stage_complete", chunks=stored)
        return updated


class FileEmbeddingStage:
    """Embeds stored chunks and writes them to the search index."""

    def __init__(
        self,
        store: IFileStore,
        search_index: ISearchIndex,
        embedding_provider: IEmbeddingProvider,
        readiness: ReadinessTracker,
        retry_manager: ProcessingRetryManager,
        batch_size: int = 64,
    ) -> None:
        self._store = store
        self._search_index = search_index
        self._embedding_provider = embedding_provider
        self._readiness = readiness
        self._retry_manager = retry_manager
        self._batch_size = max(1, batch_size)

    async def process(self, user_id: str, file_id: str) -> FileRecord | None:
        log = logger.bind(user_id=user_id, file_id=file_id)

        record = await self._store.get_file(user_id, file_id)
        if record is None:
            log.info("embedding_skipped_file_deleted")
            return None

        try:
            await self._readiness.update_status(
                user_id, file_id, PipelineStage.EMBEDDING, ProcessingStatus.PROCESSING
            )
            chunks = await self._store.list_chunks(user_id, file_id)
            if not chunks:
                text = await self._store.get_extracted_text(user_id, file_id)
                if text and text.strip():
                    raise PipelineError(
                        "No stored chunks for a file with extracted text; chunking must re-run"
                    )

            # Drop documents from an earlier attempt before writing new ones.
            stale_ids = [c.search_document_id for c in chunks if c.search_document_id]
            if stale_ids:
                await self._search_index.delete_documents(stale_ids)

            for start in range(0, len(chunks), self._batch_size):
                batch = chunks[start : start + self._batch_size]
                vectors = await self._embedding_provider.embed([c.text for c in batch])
                documents = [
                    SearchDocument(
                        document_id=str(uuid.uuid4()),
                        user_id=user_id,
                        file_id=file_id,
                        chunk_id=c.chunk_id,
                        chunk_index=c.chunk_index,
                        text=c.text,
                        embedding=vector,
                    )
                    for c, vector in zip(batch, vectors, strict=True)
                ]
                # Link before upserting: the orphan sweep deletes any index
                # document no chunk row references.
                await self._store.set_search_document_ids(
                    user_id, file_id, {d.chunk_id: d.document_id for d in documents}
                )
                await self._search_index.upsert_documents(documents)

            updated = await self._readiness.update_status(
                user_id, file_id, PipelineStage.EMBEDDING, ProcessingStatus.COMPLETED
            )
        except Exception as exc:
            log.error("embedding_stage_failed", error=str(exc))
            await self._retry_manager.handle_failure(
                user_id, file_id, PipelineStage.EMBEDDING, str(exc)
            )
            return None

        log.info(
            "embedding_stage_complete",
            chunks=len(chunks),
            provider=self._embedding_provider.get_provider_name(),
        )
        return updated
