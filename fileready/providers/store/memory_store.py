"""Dict-backed file and chunk store.

Suitable for tests, dry runs and single-process use.  Rows are frozen
models replaced wholesale on update, so callers never see a half-written
record.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from fileready.interfaces.file_store import IFileStore
from fileready.models.file import FileChunk, FileRecord, PipelineStage, ProcessingStatus
from fileready.utils.errors import FileRecordNotFoundError, StorageError

logger = structlog.get_logger(logger_name=__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class MemoryFileStore(IFileStore):
    """In-memory :class:`IFileStore` keyed by ``(user_id, file_id)``."""

    def __init__(self) -> None:
        self._files: dict[tuple[str, str], FileRecord] = {}
        self._texts: dict[tuple[str, str], str] = {}
        # chunk_id -> chunk; kept flat so orphaned chunks survive file deletion.
        self._chunks: dict[str, FileChunk] = {}

    async def initialize(self) -> None:
        logger.debug("memory_store_initialized")

    # ------------------------------------------------------------------
    # File records
    # ------------------------------------------------------------------

    async def create_file(self, record: FileRecord) -> FileRecord:
        key = (record.user_id, record.file_id)
        if key in self._files:
            raise StorageError(f"File {record.file_id} already exists", provider_name="memory")
        self._files[key] = record
        return record

    async def get_file(self, user_id: str, file_id: str) -> FileRecord | None:
        return self._files.get((user_id, file_id))

    async def delete_file(self, user_id: str, file_id: str) -> bool:
        self._texts.pop((user_id, file_id), None)
        return self._files.pop((user_id, file_id), None) is not None

    async def update_status(
        self,
        user_id: str,
        file_id: str,
        stage: PipelineStage,
        status: ProcessingStatus,
    ) -> FileRecord | None:
        field = "processing_status" if stage == PipelineStage.PROCESSING else "embedding_status"
        return self._update(user_id, file_id, **{field: status})

    async def increment_retry_count(
        self, user_id: str, file_id: str, stage: PipelineStage
    ) -> int:
        record = self._files.get((user_id, file_id))
        if record is None:
            raise FileRecordNotFoundError(f"File {file_id} not found", provider_name="memory")
        new_count = record.retry_count_for(stage) + 1
        field = (
            "processing_retry_count"
            if stage == PipelineStage.PROCESSING
            else "embedding_retry_count"
        )
        self._update(user_id, file_id, **{field: new_count})
        return new_count

    async def set_last_error(
        self, user_id: str, file_id: str, stage: PipelineStage, error: str | None
    ) -> None:
        field = (
            "last_processing_error"
            if stage == PipelineStage.PROCESSING
            else "last_embedding_error"
        )
        self._update(user_id, file_id, **{field: error})

    async def mark_failed(self, user_id: str, file_id: str, failed_at: datetime) -> None:
        self._update(user_id, file_id, failed_at=failed_at)

    async def clear_failed_status(
        self, user_id: str, file_id: str, stages: list[PipelineStage]
    ) -> None:
        changes: dict[str, object] = {"failed_at": None}
        for stage in stages:
            if stage == PipelineStage.PROCESSING:
                changes.update(processing_retry_count=0, last_processing_error=None)
            else:
                changes.update(embedding_retry_count=0, last_embedding_error=None)
        self._update(user_id, file_id, **changes)

    async def list_failed_files(
        self, failed_before: datetime, limit: int, offset: int = 0
    ) -> list[FileRecord]:
        failed = sorted(
            (
                r
                for r in self._files.values()
                if r.failed_at is not None and r.failed_at < failed_before
            ),
            key=lambda r: (r.failed_at, r.file_id),
        )
        return failed[offset : offset + limit]

    # ------------------------------------------------------------------
    # Extracted text
    # ------------------------------------------------------------------

    async def set_extracted_text(self, user_id: str, file_id: str, text: str) -> None:
        if (user_id, file_id) not in self._files:
            raise FileRecordNotFoundError(f"File {file_id} not found", provider_name="memory")
        self._texts[(user_id, file_id)] = text
        self._update(user_id, file_id, has_extracted_text=True)

    async def get_extracted_text(self, user_id: str, file_id: str) -> str | None:
        return self._texts.get((user_id, file_id))

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def replace_chunks(
        self, user_id: str, file_id: str, chunks: list[FileChunk]
    ) -> int:
        await self.delete_chunks(user_id, file_id)
        for chunk in chunks:
            self._chunks[chunk.chunk_id] = chunk
        return len(chunks)

    async def list_chunks(self, user_id: str, file_id: str) -> list[FileChunk]:
        return sorted(self._owned_chunks(user_id, file_id), key=lambda c: c.chunk_index)

    async def count_chunks(self, user_id: str, file_id: str) -> int:
        return len(self._owned_chunks(user_id, file_id))

    async def delete_chunks(self, user_id: str, file_id: str) -> int:
        owned = self._owned_chunks(user_id, file_id)
        for chunk in owned:
            del self._chunks[chunk.chunk_id]
        return len(owned)

    async def set_search_document_ids(
        self, user_id: str, file_id: str, mapping: dict[str, str]
    ) -> None:
        for chunk in self._owned_chunks(user_id, file_id):
            if chunk.chunk_id in mapping:
                self._chunks[chunk.chunk_id] = chunk.model_copy(
                    update={"search_document_id": mapping[chunk.chunk_id]}
                )

    async def list_search_document_ids(self, user_id: str, file_id: str) -> list[str]:
        return [
            c.search_document_id
            for c in await self.list_chunks(user_id, file_id)
            if c.search_document_id
        ]

    # ------------------------------------------------------------------
    # Orphan maintenance
    # ------------------------------------------------------------------

    async def list_orphaned_chunk_ids(self, created_before: datetime, limit: int) -> list[str]:
        return [c.chunk_id for c in self._orphans(created_before)][:limit]

    async def count_orphaned_chunks(self, created_before: datetime) -> int:
        return len(self._orphans(created_before))

    async def delete_chunks_by_ids(self, chunk_ids: list[str]) -> int:
        deleted = 0
        for chunk_id in chunk_ids:
            if self._chunks.pop(chunk_id, None) is not None:
                deleted += 1
        return deleted

    async def existing_search_document_ids(self, document_ids: list[str]) -> set[str]:
        wanted = set(document_ids)
        return {
            c.search_document_id
            for c in self._chunks.values()
            if c.search_document_id in wanted
        }

    def get_provider_name(self) -> str:
        return "memory"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _update(self, user_id: str, file_id: str, **changes: object) -> FileRecord | None:
        record = self._files.get((user_id, file_id))
        if record is None:
            return None
        updated = record.model_copy(update={**changes, "updated_at": _utcnow()})
        self._files[(user_id, file_id)] = updated
        return updated

    def _owned_chunks(self, user_id: str, file_id: str) -> list[FileChunk]:
        return [
            c for c in self._chunks.values() if c.user_id == user_id and c.file_id == file_id
        ]

    def _orphans(self, created_before: datetime) -> list[FileChunk]:
        return sorted(
            (
                c
                for c in self._chunks.values()
                if (c.user_id, c.file_id) not in self._files and c.created_at < created_before
            ),
            key=lambda c: c.created_at,
        )
