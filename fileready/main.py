"""fileready service assembly.

Wires every provider and service together via constructor injection.  There
are no module-level singletons: :func:`build_services` returns a fresh
:class:`ServiceContainer` each call, built from a :class:`Settings` instance
and a resolved :class:`FileProcessingConfig`.

Backends are chosen from Settings:

  - file store:    ``sqlite`` (aiosqlite) or ``memory``
  - search index:  ``memory`` or ``chromadb``
  - embeddings:    ``hashing`` (offline) or ``fastembed`` (ONNX model)

Heavy optional dependencies (chromadb, fastembed) are imported only when
their backend is selected.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from fileready.config.loader import load_config
from fileready.config.processing import FileProcessingConfig
from fileready.config.settings import Settings
from fileready.interfaces.blob_storage import IBlobStorage
from fileready.interfaces.embedding_provider import IEmbeddingProvider
from fileready.interfaces.file_store import IFileStore
from fileready.interfaces.job_queue import IJobQueue
from fileready.interfaces.search_index import ISearchIndex
from fileready.pipeline.job_runner import PipelineJobRunner
from fileready.pipeline.readiness import ReadinessTracker
from fileready.pipeline.status_broadcaster import StatusEventBroadcaster
from fileready.providers.blob.local_blob_storage import LocalBlobStorage
from fileready.providers.embedding.hashing_provider import HashingEmbeddingProvider
from fileready.providers.queue.memory_queue import MemoryJobQueue
from fileready.providers.search_index.memory_index import MemorySearchIndex
from fileready.providers.store.memory_store import MemoryFileStore
from fileready.providers.store.sqlite_store import SQLiteFileStore
from fileready.services.cleanup.orphan_sweeper import SearchIndexOrphanSweeper
from fileready.services.cleanup.partial_failure_cleaner import PartialFailureCleaner
from fileready.services.cleanup.scheduled_job import ScheduledCleanupJob
from fileready.services.context.prompt_assembler import ContextPromptAssembler
from fileready.services.context.retrieval import ContextRetrievalService
from fileready.services.context.strategy import ContextStrategySelector
from fileready.services.ingestion.chunker import RecursiveTextChunker
from fileready.services.ingestion.coordinator import IngestionCoordinator
from fileready.services.ingestion.stages import FileChunkingStage, FileEmbeddingStage
from fileready.services.retry.policy import RetryPolicy
from fileready.services.retry.rate_limiter import ManualRetryRateLimiter
from fileready.services.retry.retry_manager import ProcessingRetryManager
from fileready.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


@dataclass
class ServiceContainer:
    """Every assembled component, keyed by role."""

    settings: Settings
    config: FileProcessingConfig
    store: IFileStore
    blob_storage: IBlobStorage
    queue: IJobQueue
    search_index: ISearchIndex
    embedding_provider: IEmbeddingProvider
    broadcaster: StatusEventBroadcaster
    readiness: ReadinessTracker
    chunker: RecursiveTextChunker
    retry_policy: RetryPolicy
    rate_limiter: ManualRetryRateLimiter
    cleaner: PartialFailureCleaner
    cleanup_job: ScheduledCleanupJob
    retry_manager: ProcessingRetryManager
    coordinator: IngestionCoordinator
    chunking_stage: FileChunkingStage
    embedding_stage: FileEmbeddingStage
    retrieval: ContextRetrievalService
    assembler: ContextPromptAssembler
    job_runner: PipelineJobRunner

    async def initialize(self) -> None:
        """Prepare persistent resources (creates SQLite tables)."""
        await self.store.initialize()


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_file_store(app_settings: Settings) -> IFileStore:
    backend = app_settings.file_store_backend.lower()
    if backend == "sqlite":
        return SQLiteFileStore(db_path=app_settings.file_db_path)
    if backend == "memory":
        return MemoryFileStore()
    raise ConfigurationError(f"Unknown file store backend: {app_settings.file_store_backend}")


def _build_search_index(app_settings: Settings) -> ISearchIndex:
    backend = app_settings.search_index_backend.lower()
    if backend == "memory":
        return MemorySearchIndex()
    if backend == "chromadb":
        from fileready.providers.search_index.chromadb_index import ChromaDBSearchIndex

        return ChromaDBSearchIndex(
            persist_directory=app_settings.chromadb_persist_dir,
            collection_name=app_settings.chromadb_collection,
        )
    raise ConfigurationError(
        f"Unknown search index backend: {app_settings.search_index_backend}"
    )


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Select the embedding provider.

    ``fastembed`` falls back to hashing when the optional extra is missing,
    with a warning, so a misconfigured worker still processes files.
    """
    backend = app_settings.embedding_backend.lower()
    if backend == "fastembed":
        from fileready.providers.embedding.fastembed_provider import (
            FastEmbedEmbeddingProvider,
        )

        provider = FastEmbedEmbeddingProvider(model_name=app_settings.embedding_model or None)
        if provider.is_available():
            return provider
        logger.warning(
            "embedding_backend_unavailable",
            backend=backend,
            fallback="hashing",
        )
        return HashingEmbeddingProvider(dimension=app_settings.embedding_dimension)
    if backend == "hashing":
        return HashingEmbeddingProvider(dimension=app_settings.embedding_dimension)
    raise ConfigurationError(f"Unknown embedding backend: {app_settings.embedding_backend}")


# ---------------------------------------------------------------------------
# Full assembly
# ---------------------------------------------------------------------------


def build_services(
    app_settings: Settings | None = None,
    config: FileProcessingConfig | None = None,
) -> ServiceContainer:
    """Construct every provider and service instance.

    Parameters
    ----------
    app_settings:
        Deployment settings; read from the environment when omitted.
    config:
        Processing configuration; loaded via :func:`load_config` when omitted.
    """
    app_settings = app_settings or Settings()
    config = config or load_config(settings=app_settings)

    # -- Providers --
    store = _build_file_store(app_settings)
    blob_storage = LocalBlobStorage(root=app_settings.blob_root)
    queue = MemoryJobQueue()
    search_index = _build_search_index(app_settings)
    embedding_provider = _build_embedding_provider(app_settings)

    # -- Status and readiness --
    broadcaster = StatusEventBroadcaster()
    readiness = ReadinessTracker(store=store, emitter=broadcaster)

    # -- Failure path --
    sweeper = SearchIndexOrphanSweeper(
        store=store,
        search_index=search_index,
        batch_size=config.cleanup.cleanup_batch_size,
    )
    cleaner = PartialFailureCleaner(
        store=store,
        search_index=search_index,
        orphan_sweeper=sweeper,
        config=config.cleanup,
    )
    retry_policy = RetryPolicy(config=config.retry)
    rate_limiter = ManualRetryRateLimiter(
        max_per_window=config.rate_limit.max_manual_retries_per_hour,
    )
    retry_manager = ProcessingRetryManager(
        store=store,
        queue=queue,
        emitter=broadcaster,
        cleaner=cleaner,
        policy=retry_policy,
        readiness=readiness,
        rate_limiter=rate_limiter,
    )

    # -- Ingestion --
    chunker = RecursiveTextChunker(config.chunking)
    coordinator = IngestionCoordinator(
        blob_storage=blob_storage,
        store=store,
        queue=queue,
        emitter=broadcaster,
    )
    chunking_stage = FileChunkingStage(
        store=store,
        queue=queue,
        chunker=chunker,
        readiness=readiness,
        retry_manager=retry_manager,
    )
    embedding_stage = FileEmbeddingStage(
        store=store,
        search_index=search_index,
        embedding_provider=embedding_provider,
        readiness=readiness,
        retry_manager=retry_manager,
    )

    job_runner = PipelineJobRunner(
        queue=queue,
        store=store,
        blob_storage=blob_storage,
        coordinator=coordinator,
        chunking_stage=chunking_stage,
        embedding_stage=embedding_stage,
        retry_manager=retry_manager,
    )

    # -- Chat-time context --
    assembler = ContextPromptAssembler()
    retrieval = ContextRetrievalService(
        store=store,
        blob_storage=blob_storage,
        search_index=search_index,
        embedding_provider=embedding_provider,
        selector=ContextStrategySelector(config.context.large_file_threshold_bytes),
        assembler=assembler,
        config=config.context,
    )

    logger.info(
        "services_built",
        file_store=store.get_provider_name(),
        search_index=search_index.get_provider_name(),
        embedding_provider=embedding_provider.get_provider_name(),
    )

    return ServiceContainer(
        settings=app_settings,
        config=config,
        store=store,
        blob_storage=blob_storage,
        queue=queue,
        search_index=search_index,
        embedding_provider=embedding_provider,
        broadcaster=broadcaster,
        readiness=readiness,
        chunker=chunker,
        retry_policy=retry_policy,
        rate_limiter=rate_limiter,
        cleaner=cleaner,
        cleanup_job=ScheduledCleanupJob(cleaner),
        retry_manager=retry_manager,
        coordinator=coordinator,
        chunking_stage=chunking_stage,
        embedding_stage=embedding_stage,
        retrieval=retrieval,
        assembler=assembler,
        job_runner=job_runner,
    )
