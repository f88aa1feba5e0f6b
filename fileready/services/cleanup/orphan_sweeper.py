"""Reconciles search-index documents against chunk rows.

A document is orphaned when no chunk row references its id any more,
typically because a file row was deleted and the orphan chunk sweep
removed its chunks, or because a search-index delete failed during
per-file cleanup.

The embedding stage links each document id to its chunk row before it
upserts the document, so documents still being written are never treated
as orphans.
"""

from __future__ import annotations

import structlog

from fileready.interfaces.file_store import IFileStore
from fileready.interfaces.orphan_sweeper import IOrphanSweeper
from fileready.interfaces.search_index import ISearchIndex
from fileready.models.cleanup import OrphanSweepSummary

logger = structlog.get_logger(logger_name=__name__)


class SearchIndexOrphanSweeper(IOrphanSweeper):
    """Deletes index documents that no chunk row points to, in batches."""

    def __init__(
        self,
        store: IFileStore,
        search_index: ISearchIndex,
        batch_size: int = 100,
    ) -> None:
        self._store = store
        self._search_index = search_index
        self._batch_size = max(1, batch_size)

    async def run_full_cleanup(self) -> OrphanSweepSummary:
        document_ids = await self._search_index.list_document_ids()
        deleted = 0
        failed = 0

        for start in range(0, len(document_ids), self._batch_size):
            batch = document_ids[start : start + self._batch_size]
            referenced = await self._store.existing_search_document_ids(batch)
            orphans = [doc_id for doc_id in batch if doc_id not in referenced]
            if not orphans:
                continue
            try:
                outcome = await self._search_index.delete_documents(orphans)
            except Exception as exc:
                logger.warning("orphan_batch_delete_failed", batch=len(orphans), error=str(exc))
                failed += len(orphans)
                continue
            batch_deleted = sum(1 for ok in outcome.values() if ok)
            deleted += batch_deleted
            failed += len(orphans) - batch_deleted

        logger.info(
            "orphan_sweep_complete",
            provider=self._search_index.get_provider_name(),
            scanned=len(document_ids),
            deleted=deleted,
            failed=failed,
        )
        return OrphanSweepSummary(
            total_scanned=len(document_ids),
            total_deleted=deleted,
            total_failed=failed,
        )
