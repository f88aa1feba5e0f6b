"""Shared pytest fixtures for the fileready test suite.

Fixtures wire real in-memory providers together so tests exercise the
same collaborators production uses; individual tests swap in
``AsyncMock`` methods where they need a collaborator to fail.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from fileready.config.processing import CleanupConfig, RetryConfig
from fileready.models.file import FileChunk, FileRecord
from fileready.models.search import SearchDocument
from fileready.pipeline.readiness import ReadinessTracker
from fileready.pipeline.status_broadcaster import StatusEventBroadcaster
from fileready.providers.blob.local_blob_storage import LocalBlobStorage
from fileready.providers.embedding.hashing_provider import HashingEmbeddingProvider
from fileready.providers.queue.memory_queue import MemoryJobQueue
from fileready.providers.search_index.memory_index import MemorySearchIndex
from fileready.providers.store.memory_store import MemoryFileStore
from fileready.services.cleanup.orphan_sweeper import SearchIndexOrphanSweeper
from fileready.services.cleanup.partial_failure_cleaner import PartialFailureCleaner
from fileready.services.retry.policy import RetryPolicy
from fileready.services.retry.rate_limiter import ManualRetryRateLimiter
from fileready.services.retry.retry_manager import ProcessingRetryManager

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
USER_ID = "user-1"


def make_record(file_id: str = "file-1", user_id: str = USER_ID, **overrides: Any) -> FileRecord:
    """Build a FileRecord with sensible defaults."""
    fields: dict[str, Any] = {
        "file_id": file_id,
        "user_id": user_id,
        "name": f"{file_id}.txt",
        "mime_type": "text/plain",
        "size_bytes": 1024,
        "blob_path": f"{user_id}/{file_id}.txt",
        "content_hash": "abc123",
        "created_at": FIXED_NOW - timedelta(days=1),
        "updated_at": FIXED_NOW - timedelta(days=1),
    }
    fields.update(overrides)
    return FileRecord(**fields)


def make_chunk(
    chunk_id: str,
    file_id: str = "file-1",
    user_id: str = USER_ID,
    chunk_index: int = 0,
    **overrides: Any,
) -> FileChunk:
    """Build a FileChunk; ``created_at`` defaults to one day before FIXED_NOW."""
    fields: dict[str, Any] = {
        "chunk_id": chunk_id,
        "file_id": file_id,
        "user_id": user_id,
        "chunk_index": chunk_index,
        "text": f"chunk {chunk_index} of {file_id}",
        "token_count": 6,
        "start_offset": chunk_index * 20,
        "end_offset": chunk_index * 20 + 18,
        "created_at": FIXED_NOW - timedelta(days=1),
    }
    fields.update(overrides)
    return FileChunk(**fields)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> MemoryFileStore:
    return MemoryFileStore()


@pytest.fixture
def search_index() -> MemorySearchIndex:
    return MemorySearchIndex()


@pytest.fixture
def queue() -> MemoryJobQueue:
    return MemoryJobQueue()


@pytest.fixture
def broadcaster() -> StatusEventBroadcaster:
    return StatusEventBroadcaster()


@pytest.fixture
def embedding_provider() -> HashingEmbeddingProvider:
    return HashingEmbeddingProvider(dimension=64)


@pytest.fixture
def blob_root(tmp_path: Path) -> Path:
    root = tmp_path / "blobs"
    root.mkdir()
    return root


@pytest.fixture
def blob_storage(blob_root: Path) -> LocalBlobStorage:
    return LocalBlobStorage(root=blob_root)


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def retry_config() -> RetryConfig:
    """Deterministic retry settings: no jitter, small delays."""
    return RetryConfig(
        max_processing_retries=2,
        max_embedding_retries=3,
        base_delay_ms=1000,
        max_delay_ms=8000,
        backoff_multiplier=2.0,
        jitter_factor=0.0,
    )


@pytest.fixture
def readiness(store: MemoryFileStore, broadcaster: StatusEventBroadcaster) -> ReadinessTracker:
    return ReadinessTracker(store=store, emitter=broadcaster)


@pytest.fixture
def cleaner(
    store: MemoryFileStore,
    search_index: MemorySearchIndex,
    clock: Callable[[], datetime],
) -> PartialFailureCleaner:
    return PartialFailureCleaner(
        store=store,
        search_index=search_index,
        orphan_sweeper=SearchIndexOrphanSweeper(store, search_index, batch_size=2),
        config=CleanupConfig(
            failed_file_retention_days=30,
            orphaned_chunk_retention_days=7,
            cleanup_batch_size=2,
        ),
        clock=clock,
    )


@pytest.fixture
def rate_limiter() -> ManualRetryRateLimiter:
    return ManualRetryRateLimiter(max_per_window=10)


@pytest.fixture
def retry_manager(
    store: MemoryFileStore,
    queue: MemoryJobQueue,
    broadcaster: StatusEventBroadcaster,
    cleaner: PartialFailureCleaner,
    retry_config: RetryConfig,
    readiness: ReadinessTracker,
    rate_limiter: ManualRetryRateLimiter,
    clock: Callable[[], datetime],
) -> ProcessingRetryManager:
    return ProcessingRetryManager(
        store=store,
        queue=queue,
        emitter=broadcaster,
        cleaner=cleaner,
        policy=RetryPolicy(retry_config, rng=random.Random(7)),
        readiness=readiness,
        rate_limiter=rate_limiter,
        clock=clock,
    )


def event_types(broadcaster: StatusEventBroadcaster, user_id: str = USER_ID) -> list[str]:
    """Return the type names of every event emitted for *user_id*."""
    return [e.type for e in broadcaster.recent_events(user_id)]


def make_document(
    document_id: str,
    chunk_id: str,
    file_id: str = "file-1",
    user_id: str = USER_ID,
    chunk_index: int = 0,
    embedding: list[float] | None = None,
) -> SearchDocument:
    """Build a SearchDocument for a chunk."""
    return SearchDocument(
        document_id=document_id,
        user_id=user_id,
        file_id=file_id,
        chunk_id=chunk_id,
        chunk_index=chunk_index,
        text=f"chunk {chunk_index} of {file_id}",
        embedding=embedding or [1.0, 0.0],
    )
