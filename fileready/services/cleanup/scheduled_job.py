"""Periodic cleanup run: failed files, orphaned chunks, orphaned index docs.

The three sweeps run in that order so that chunks removed for failed files
are not counted again as orphans.  A sweep that raises is logged and
recorded in the summary; the remaining sweeps still run.
"""

from __future__ import annotations

import structlog

from fileready.models.cleanup import BatchCleanupResult, CleanupRunSummary
from fileready.services.cleanup.partial_failure_cleaner import PartialFailureCleaner

logger = structlog.get_logger(logger_name=__name__)


class ScheduledCleanupJob:
    def __init__(self, cleaner: PartialFailureCleaner) -> None:
        self._cleaner = cleaner

    async def run(self, dry_run: bool = False) -> CleanupRunSummary:
        errors: list[str] = []
        failed_files: BatchCleanupResult | None = None
        orphaned_chunks = 0
        orphaned_docs = 0

        logger.info("scheduled_cleanup_started", dry_run=dry_run)

        try:
            failed_files = await self._cleaner.cleanup_old_failed_files(dry_run=dry_run)
        except Exception as exc:
            logger.error("failed_file_sweep_error", error=str(exc))
            errors.append(f"failed_files: {exc}")

        try:
            orphaned_chunks = await self._cleaner.cleanup_orphaned_chunks(dry_run=dry_run)
        except Exception as exc:
            logger.error("orphaned_chunk_sweep_error", error=str(exc))
            errors.append(f"orphaned_chunks: {exc}")

        # The index sweep has no count-only mode.
        if not dry_run:
            try:
                orphaned_docs = await self._cleaner.cleanup_orphaned_search_docs()
            except Exception as exc:
                logger.error("orphaned_search_doc_sweep_error", error=str(exc))
                errors.append(f"orphaned_search_docs: {exc}")

        summary = CleanupRunSummary(
            failed_files=failed_files,
            orphaned_chunks_deleted=orphaned_chunks,
            orphaned_search_docs_deleted=orphaned_docs,
            errors=errors,
            dry_run=dry_run,
        )
        logger.info(
            "scheduled_cleanup_finished",
            dry_run=dry_run,
            failed_files_processed=failed_files.files_processed if failed_files else 0,
            orphaned_chunks=orphaned_chunks,
            orphaned_search_docs=orphaned_docs,
            errors=len(errors),
        )
        return summary
