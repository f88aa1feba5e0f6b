"""ChromaDB search index adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`ISearchIndex` with
cosine distance.  Fully local; no external service required.  Embeddings
are always computed by our :class:`IEmbeddingProvider` and passed in, so
ChromaDB's own embedding function is replaced by a no-op.

Each document stores ``user_id``, ``file_id``, ``chunk_id`` and
``chunk_index`` as metadata; queries filter on ``user_id`` (and
``file_id`` when given) with a ``where`` clause.
"""

from __future__ import annotations

import os
from typing import Any

# Telemetry off before chromadb is imported; Settings below repeats it
# because some chromadb versions ignore the env var.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from fileready.interfaces.search_index import ISearchIndex
from fileready.models.search import SearchDocument, SearchHit
from fileready.utils.errors import SearchIndexError

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SIZE = 5000


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Stops ChromaDB from loading its default embedding model.

    Every write and query passes pre-computed vectors, so this is never
    called; it exists to keep the ~80 MB default ONNX model unloaded.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "fileready passes pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBSearchIndex(ISearchIndex):
    """Search index backed by a persistent ChromaDB collection."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "fileready_chunks",
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created with another embedding function reject ours;
        # reopen without one, since every vector is supplied explicitly.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    # ------------------------------------------------------------------
    # ISearchIndex implementation
    # ------------------------------------------------------------------

    async def upsert_documents(self, documents: list[SearchDocument], batch_size: int = 500) -> int:
        """Upsert documents in batches of *batch_size* to bound peak memory."""
        if not documents:
            return 0
        try:
            for start in range(0, len(documents), batch_size):
                batch = documents[start : start + batch_size]
                self._collection.upsert(
                    ids=[d.document_id for d in batch],
                    embeddings=[d.embedding for d in batch],
                    documents=[d.text for d in batch],
                    metadatas=[
                        {
                            "user_id": d.user_id,
                            "file_id": d.file_id,
                            "chunk_id": d.chunk_id,
                            "chunk_index": d.chunk_index,
                        }
                        for d in batch
                    ],
                )
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_upsert", count=len(documents))
        return len(documents)

    async def search(
        self,
        user_id: str,
        query_embedding: list[float],
        top: int = 5,
        file_id: str | None = None,
    ) -> list[SearchHit]:
        where: dict[str, Any]
        if file_id is None:
            where = {"user_id": user_id}
        else:
            where = {"$and": [{"user_id": user_id}, {"file_id": file_id}]}

        try:
            count = self._collection.count()
            if count == 0:
                return []
            results = self._collection.query(
                query_embeddings=[query_embedding],
                n_results=min(top, count),
                where=where,
            )
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results["documents"] else [""] * len(ids)
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)

        hits = [
            SearchHit(
                document_id=doc_id,
                file_id=str(meta.get("file_id", "")),
                chunk_id=str(meta.get("chunk_id", "")),
                chunk_index=int(meta.get("chunk_index", 0)),
                text=text or "",
                score=max(0.0, min(1.0, 1.0 - distance)),
            )
            for doc_id, text, meta, distance in zip(
                ids, documents, metadatas, distances, strict=True
            )
        ]
        logger.debug(
            "chromadb_query",
            user_id=user_id,
            file_id=file_id,
            results_count=len(hits),
            top_score=hits[0].score if hits else 0.0,
        )
        return hits

    async def delete_documents(self, document_ids: list[str]) -> dict[str, bool]:
        if not document_ids:
            return {}
        try:
            existing = self._collection.get(ids=document_ids, include=[])
            present = set(existing["ids"] or [])
            if present:
                self._collection.delete(ids=list(present))
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete", requested=len(document_ids), deleted=len(present))
        return {doc_id: doc_id in present for doc_id in document_ids}

    async def list_document_ids(self) -> list[str]:
        """Return every document id, paging to stay under SQLite's parameter limit."""
        try:
            ids: list[str] = []
            offset = 0
            while True:
                page = self._collection.get(include=[], limit=_PAGE_SIZE, offset=offset)
                page_ids = page["ids"] or []
                ids.extend(page_ids)
                if len(page_ids) < _PAGE_SIZE:
                    break
                offset += _PAGE_SIZE
            return ids
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB list failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        try:
            self._client.heartbeat()
        except Exception:
            return False
        return True
