"""Readiness derivation and status transitions that announce it.

:func:`compute_readiness` folds the two stage statuses into the single
value users see.  It is exhaustive over the 4 x 4 status product:

    either stage failed       -> failed
    both stages completed     -> ready
    anything else             -> processing

:class:`ReadinessTracker` applies a stage status change through the store
and emits ``file:readiness_changed`` whenever the derived value moves.
"""

from __future__ import annotations

import structlog

from fileready.interfaces.file_store import IFileStore
from fileready.interfaces.status_emitter import IStatusEmitter
from fileready.models.events import ReadinessChangedEvent
from fileready.models.file import FileRecord, PipelineStage, ProcessingStatus, ReadinessState

logger = structlog.get_logger(logger_name=__name__)


def compute_readiness(
    processing_status: ProcessingStatus,
    embedding_status: ProcessingStatus,
) -> ReadinessState:
    if ProcessingStatus.FAILED in (processing_status, embedding_status):
        return ReadinessState.FAILED
    if (
        processing_status == ProcessingStatus.COMPLETED
        and embedding_status == ProcessingStatus.COMPLETED
    ):
        return ReadinessState.READY
    return ReadinessState.PROCESSING


class ReadinessTracker:
    """Writes stage statuses and broadcasts readiness transitions."""

    def __init__(self, store: IFileStore, emitter: IStatusEmitter) -> None:
        self._store = store
        self._emitter = emitter

    async def update_status(
        self,
        user_id: str,
        file_id: str,
        stage: PipelineStage,
        status: ProcessingStatus,
    ) -> FileRecord | None:
        """Set *stage* to *status*; emit an event if readiness changed.

        Returns the updated record, or ``None`` when the file no longer
        exists (deleted mid-pipeline), in which case nothing is emitted.
        """
        before = await self._store.get_file(user_id, file_id)
        if before is None:
            logger.info("status_update_skipped_missing_file", user_id=user_id, file_id=file_id)
            return None

        after = await self._store.update_status(user_id, file_id, stage, status)
        if after is None:
            return None

        if after.readiness_state != before.readiness_state:
            await self.emit_readiness(user_id, after, previous=before.readiness_state)
        return after

    async def emit_readiness(
        self,
        user_id: str,
        record: FileRecord,
        previous: ReadinessState | None = None,
    ) -> None:
        """Emit the record's current readiness; delivery failures are logged only."""
        event = ReadinessChangedEvent(
            file_id=record.file_id,
            previous_state=previous,
            readiness_state=record.readiness_state,
            processing_status=record.processing_status.value,
            embedding_status=record.embedding_status.value,
        )
        try:
            await self._emitter.emit(user_id, event)
        except Exception as exc:
            logger.warning(
                "readiness_event_emit_failed",
                user_id=user_id,
                file_id=record.file_id,
                error=str(exc),
            )
        else:
            logger.debug(
                "readiness_changed",
                user_id=user_id,
                file_id=record.file_id,
                previous=previous.value if previous else None,
                readiness=record.readiness_state.value,
            )
