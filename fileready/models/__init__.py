"""fileready domain models - re-exports all public model classes.

    - file.py     - file records, stage statuses, chunks
    - jobs.py     - job types, upload payloads, ingestion results
    - events.py   - status events pushed to users
    - context.py  - context strategies and retrieved content
    - cleanup.py  - cleanup and orphan-sweep results
    - retry.py    - retry decisions and manual retry results
    - search.py   - search-index documents and hits
"""

from __future__ import annotations

from fileready.models.cleanup import (
    BatchCleanupResult,
    CleanupFailure,
    CleanupResult,
    CleanupRunSummary,
    OrphanSweepSummary,
)
from fileready.models.context import (
    Base64Content,
    ChunkContent,
    ChunksContent,
    ContextStrategy,
    ImageContent,
    MultiRetrievalResult,
    RetrievalFailure,
    RetrievedContent,
    StrategyDecision,
    TextContent,
)
from fileready.models.events import (
    FileEvent,
    FileUploadedEvent,
    FileUploadFailedEvent,
    PermanentlyFailedEvent,
    ReadinessChangedEvent,
    RetryScheduledEvent,
)
from fileready.models.file import (
    FileChunk,
    FileForStrategy,
    FileRecord,
    PipelineStage,
    ProcessingStatus,
    ReadinessState,
    TextChunk,
)
from fileready.models.jobs import IngestionResult, JobType, UploadJob
from fileready.models.retry import (
    ManualRetryResult,
    ManualRetryScope,
    RetryDecision,
    RetryReason,
)
from fileready.models.search import SearchDocument, SearchHit

__all__ = [
    "Base64Content",
    "BatchCleanupResult",
    "ChunkContent",
    "ChunksContent",
    "CleanupFailure",
    "CleanupResult",
    "CleanupRunSummary",
    "ContextStrategy",
    "FileChunk",
    "FileEvent",
    "FileForStrategy",
    "FileRecord",
    "FileUploadFailedEvent",
    "FileUploadedEvent",
    "ImageContent",
    "IngestionResult",
    "JobType",
    "ManualRetryResult",
    "ManualRetryScope",
    "MultiRetrievalResult",
    "OrphanSweepSummary",
    "PermanentlyFailedEvent",
    "PipelineStage",
    "ProcessingStatus",
    "ReadinessChangedEvent",
    "ReadinessState",
    "RetrievalFailure",
    "RetrievedContent",
    "RetryDecision",
    "RetryReason",
    "RetryScheduledEvent",
    "SearchDocument",
    "SearchHit",
    "StrategyDecision",
    "TextChunk",
    "TextContent",
    "UploadJob",
]
