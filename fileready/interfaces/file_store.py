"""Abstract base class for the relational file and chunk store.

Every method takes the ``(user_id, file_id)`` pair (or ``user_id`` alone for
listings) and must never touch another tenant's rows.  Writes are single
statements; the pipeline does not rely on multi-statement transactions.
The orphan queries are the exception: they are global maintenance sweeps
run by the scheduled cleanup job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from fileready.models.file import FileChunk, FileRecord, PipelineStage, ProcessingStatus


# Concrete implementations:
#   MemoryFileStore  - dict-backed, for tests and dry runs
#   SQLiteFileStore  - aiosqlite, one connection per operation
# Located in: fileready/providers/store/
class IFileStore(ABC):
    """Contract for file-record and chunk persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables/indices if needed.  Safe to call repeatedly."""

    # ------------------------------------------------------------------
    # File records
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_file(self, record: FileRecord) -> FileRecord:
        """Insert a new file row and return it."""

    @abstractmethod
    async def get_file(self, user_id: str, file_id: str) -> FileRecord | None:
        """Return the file row, or ``None`` if it does not exist for this user."""

    @abstractmethod
    async def delete_file(self, user_id: str, file_id: str) -> bool:
        """Delete the file row (chunks are left for the orphan sweep).

        Returns ``True`` if a row was deleted.
        """

    @abstractmethod
    async def update_status(
        self,
        user_id: str,
        file_id: str,
        stage: PipelineStage,
        status: ProcessingStatus,
    ) -> FileRecord | None:
        """Set the status column owned by *stage*; return the updated row."""

    @abstractmethod
    async def increment_retry_count(
        self, user_id: str, file_id: str, stage: PipelineStage
    ) -> int:
        """Add one to the retry counter owned by *stage*; return the new value.

        Raises
        ------
        fileready.utils.errors.FileRecordNotFoundError
            If the file does not exist for this user.
        """

    @abstractmethod
    async def set_last_error(
        self, user_id: str, file_id: str, stage: PipelineStage, error: str | None
    ) -> None:
        """Store the most recent error message for *stage*."""

    @abstractmethod
    async def mark_failed(self, user_id: str, file_id: str, failed_at: datetime) -> None:
        """Stamp the moment the file reached permanent failure."""

    @abstractmethod
    async def clear_failed_status(
        self, user_id: str, file_id: str, stages: list[PipelineStage]
    ) -> None:
        """Clear ``failed_at`` and reset retry counters/errors for *stages*."""

    @abstractmethod
    async def list_failed_files(
        self, failed_before: datetime, limit: int, offset: int = 0
    ) -> list[FileRecord]:
        """Return a page of files whose ``failed_at`` is before *failed_before*.

        Ordered by ``failed_at`` then ``file_id`` so paging is stable.
        """

    # ------------------------------------------------------------------
    # Extracted text
    # ------------------------------------------------------------------

    @abstractmethod
    async def set_extracted_text(self, user_id: str, file_id: str, text: str) -> None:
        """Store extracted text and set ``has_extracted_text``."""

    @abstractmethod
    async def get_extracted_text(self, user_id: str, file_id: str) -> str | None:
        """Return stored extracted text, or ``None``."""

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    @abstractmethod
    async def replace_chunks(
        self, user_id: str, file_id: str, chunks: list[FileChunk]
    ) -> int:
        """Delete any existing chunks for the file and insert *chunks*.

        Returns the number of chunks inserted.
        """

    @abstractmethod
    async def list_chunks(self, user_id: str, file_id: str) -> list[FileChunk]:
        """Return the file's chunks ordered by ``chunk_index``."""

    @abstractmethod
    async def count_chunks(self, user_id: str, file_id: str) -> int:
        """Return how many chunk rows the file has."""

    @abstractmethod
    async def delete_chunks(self, user_id: str, file_id: str) -> int:
        """Delete the file's chunk rows; return how many were deleted."""

    @abstractmethod
    async def set_search_document_ids(
        self, user_id: str, file_id: str, mapping: dict[str, str]
    ) -> None:
        """Record ``chunk_id -> search_document_id`` after embedding."""

    @abstractmethod
    async def list_search_document_ids(self, user_id: str, file_id: str) -> list[str]:
        """Return the search-document ids of the file's chunks."""

    # ------------------------------------------------------------------
    # Orphan maintenance
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_orphaned_chunk_ids(self, created_before: datetime, limit: int) -> list[str]:
        """Return ids of chunks with no parent file, created before the cutoff."""

    @abstractmethod
    async def count_orphaned_chunks(self, created_before: datetime) -> int:
        """Return how many chunks have no parent file and predate the cutoff."""

    @abstractmethod
    async def delete_chunks_by_ids(self, chunk_ids: list[str]) -> int:
        """Delete chunk rows by id; missing ids are skipped."""

    @abstractmethod
    async def existing_search_document_ids(self, document_ids: list[str]) -> set[str]:
        """Return the subset of *document_ids* still referenced by a chunk row."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
