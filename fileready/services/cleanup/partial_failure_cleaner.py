"""Removal of chunk and search-index data left behind by failed files.

Every operation is idempotent: running it again on an already-cleaned
target reports zero deletions.  Search-index deletion is best-effort
(failures are logged and only confirmed deletions are counted), while a
failure to delete chunk rows fails the operation for that file.

Three entry points:

- :meth:`PartialFailureCleaner.cleanup_for_file` - one file, user-scoped
- :meth:`PartialFailureCleaner.cleanup_orphaned_chunks` - chunk rows whose
  parent file row is gone, in batches
- :meth:`PartialFailureCleaner.cleanup_old_failed_files` - every file that
  failed before the retention window, one at a time, without aborting
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from fileready.config.processing import CleanupConfig
from fileready.interfaces.file_store import IFileStore
from fileready.interfaces.orphan_sweeper import IOrphanSweeper
from fileready.interfaces.search_index import ISearchIndex
from fileready.models.cleanup import BatchCleanupResult, CleanupFailure, CleanupResult
from fileready.models.file import FileRecord

logger = structlog.get_logger(logger_name=__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class PartialFailureCleaner:
    """Cleans up partial pipeline output for permanently failed files.

    Parameters
    ----------
    store:
        File and chunk rows.
    search_index:
        Index holding the chunk embeddings.
    orphan_sweeper:
        Collaborator that reconciles the index against chunk rows.
    config:
        Retention windows and batch size.
    clock:
        Returns "now"; injectable for tests.
    """

    def __init__(
        self,
        store: IFileStore,
        search_index: ISearchIndex,
        orphan_sweeper: IOrphanSweeper,
        config: CleanupConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._search_index = search_index
        self._orphan_sweeper = orphan_sweeper
        self._config = config or CleanupConfig()
        self._clock = clock

    # ------------------------------------------------------------------
    # Single file
    # ------------------------------------------------------------------

    async def cleanup_for_file(
        self, user_id: str, file_id: str, dry_run: bool = False
    ) -> CleanupResult:
        """Delete the file's chunk rows and their search-index documents.

        Document ids are collected before the chunk rows are removed, since
        the rows are where the ids live.
        """
        log = logger.bind(user_id=user_id, file_id=file_id, dry_run=dry_run)

        try:
            document_ids = await self._store.list_search_document_ids(user_id, file_id)
            if dry_run:
                chunk_count = await self._store.count_chunks(user_id, file_id)
                log.info(
                    "cleanup_dry_run",
                    chunks=chunk_count,
                    search_documents=len(document_ids),
                )
                return CleanupResult(
                    file_id=file_id,
                    chunks_deleted=chunk_count,
                    search_documents_deleted=len(document_ids),
                )
            chunks_deleted = await self._store.delete_chunks(user_id, file_id)
        except Exception as exc:
            log.error("chunk_cleanup_failed", error=str(exc))
            return CleanupResult(file_id=file_id, success=False, error=str(exc))

        search_deleted = await self._delete_search_documents(document_ids, log)

        log.info(
            "file_cleanup_complete",
            chunks_deleted=chunks_deleted,
            search_documents_deleted=search_deleted,
        )
        return CleanupResult(
            file_id=file_id,
            chunks_deleted=chunks_deleted,
            search_documents_deleted=search_deleted,
        )

    async def _delete_search_documents(
        self, document_ids: list[str], log: structlog.BoundLogger
    ) -> int:
        if not document_ids:
            return 0
        try:
            outcome = await self._search_index.delete_documents(document_ids)
        except Exception as exc:
            log.warning(
                "search_index_cleanup_failed",
                documents=len(document_ids),
                error=str(exc),
            )
            return 0
        return sum(1 for deleted in outcome.values() if deleted)

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    async def cleanup_orphaned_chunks(
        self, older_than_days: int | None = None, dry_run: bool = False
    ) -> int:
        """Delete chunks whose file row no longer exists.

        Only chunks created more than *older_than_days* ago are touched, so
        a file being created concurrently is not swept from under its stage.
        Returns the number of chunks deleted (or found, when *dry_run*).
        """
        days = older_than_days
        if days is None:
            days = self._config.orphaned_chunk_retention_days
        cutoff = self._clock() - timedelta(days=days)
        batch_size = self._config.cleanup_batch_size

        if dry_run:
            total = await self._store.count_orphaned_chunks(cutoff)
            logger.info("orphaned_chunks_dry_run", found=total, older_than_days=days)
            return total

        total = 0
        while True:
            ids = await self._store.list_orphaned_chunk_ids(cutoff, limit=batch_size)
            if not ids:
                break
            deleted = await self._store.delete_chunks_by_ids(ids)
            total += deleted
            logger.debug("orphaned_chunk_batch_deleted", batch=len(ids), deleted=deleted)
            # Concurrent deletion can leave a short batch; stop rather than spin.
            if len(ids) < batch_size or deleted == 0:
                break

        logger.info("orphaned_chunks_cleaned", deleted=total, older_than_days=days)
        return total

    async def cleanup_orphaned_search_docs(self) -> int:
        """Delete search-index documents with no chunk row; return the count."""
        summary = await self._orphan_sweeper.run_full_cleanup()
        logger.info(
            "orphaned_search_docs_cleaned",
            scanned=summary.total_scanned,
            deleted=summary.total_deleted,
            failed=summary.total_failed,
        )
        return summary.total_deleted

    async def cleanup_old_failed_files(
        self, older_than_days: int | None = None, dry_run: bool = False
    ) -> BatchCleanupResult:
        """Clean every file that failed before the retention window.

        Per-file errors are recorded in ``failures`` and the sweep moves on.
        """
        days = older_than_days
        if days is None:
            days = self._config.failed_file_retention_days
        cutoff = self._clock() - timedelta(days=days)
        batch_size = self._config.cleanup_batch_size

        # Cleaned files keep their failed_at stamp, so page by offset.
        files: list[FileRecord] = []
        while True:
            page = await self._store.list_failed_files(cutoff, limit=batch_size, offset=len(files))
            files.extend(page)
            if len(page) < batch_size:
                break

        files_processed = 0
        total_chunks = 0
        total_docs = 0
        failures: list[CleanupFailure] = []

        for record in files:
            try:
                result = await self.cleanup_for_file(
                    record.user_id, record.file_id, dry_run=dry_run
                )
            except Exception as exc:
                failures.append(CleanupFailure(file_id=record.file_id, error=str(exc)))
                continue
            if not result.success:
                failures.append(
                    CleanupFailure(file_id=record.file_id, error=result.error or "unknown error")
                )
                continue
            files_processed += 1
            total_chunks += result.chunks_deleted
            total_docs += result.search_documents_deleted

        logger.info(
            "failed_files_cleaned",
            candidates=len(files),
            files_processed=files_processed,
            chunks_deleted=total_chunks,
            search_docs_deleted=total_docs,
            failures=len(failures),
            dry_run=dry_run,
        )
        return BatchCleanupResult(
            files_processed=files_processed,
            total_chunks_deleted=total_chunks,
            total_search_docs_deleted=total_docs,
            failures=failures,
        )
