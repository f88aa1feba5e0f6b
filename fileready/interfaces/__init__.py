"""Public interface definitions for every external collaborator.

The pipeline reaches storage, queues, search and event delivery only
through the abstract base classes in this package.  Concrete adapters live
in ``fileready/providers/`` and are wired in ``fileready/main.py``; tests
inject in-memory adapters or mocks.

CONCRETE PROVIDER MAP:
    Interface            →  Concrete implementations (in fileready/providers/)
    ─────────────────────────────────────────────────────────────────────
    IBlobStorage         →  LocalBlobStorage
    IFileStore           →  MemoryFileStore, SQLiteFileStore
    IJobQueue            →  MemoryJobQueue
    ISearchIndex         →  MemorySearchIndex, ChromaDBSearchIndex
    IStatusEmitter       →  StatusEventBroadcaster
    IEmbeddingProvider   →  HashingEmbeddingProvider, FastEmbedEmbeddingProvider
    IOrphanSweeper       →  SearchIndexOrphanSweeper (fileready/services/cleanup/)
"""

from fileready.interfaces.blob_storage import IBlobStorage
from fileready.interfaces.embedding_provider import IEmbeddingProvider
from fileready.interfaces.file_store import IFileStore
from fileready.interfaces.job_queue import IJobQueue
from fileready.interfaces.orphan_sweeper import IOrphanSweeper
from fileready.interfaces.search_index import ISearchIndex
from fileready.interfaces.status_emitter import IStatusEmitter

__all__ = [
    "IBlobStorage",
    "IEmbeddingProvider",
    "IFileStore",
    "IJobQueue",
    "IOrphanSweeper",
    "ISearchIndex",
    "IStatusEmitter",
]
