"""Brute-force in-memory search index using cosine similarity."""

from __future__ import annotations

import math

import structlog

from fileready.interfaces.search_index import ISearchIndex
from fileready.models.search import SearchDocument, SearchHit

logger = structlog.get_logger(logger_name=__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Return cosine similarity clamped to [0, 1]; zero vectors score 0."""
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return max(0.0, min(1.0, dot / norm))


class MemorySearchIndex(ISearchIndex):
    def __init__(self) -> None:
        self._documents: dict[str, SearchDocument] = {}

    async def upsert_documents(self, documents: list[SearchDocument]) -> int:
        for doc in documents:
            self._documents[doc.document_id] = doc
        return len(documents)

    async def search(
        self,
        user_id: str,
        query_embedding: list[float],
        top: int = 5,
        file_id: str | None = None,
    ) -> list[SearchHit]:
        candidates = [
            d
            for d in self._documents.values()
            if d.user_id == user_id and (file_id is None or d.file_id == file_id)
        ]
        scored = sorted(
            (
                SearchHit(
                    document_id=d.document_id,
                    file_id=d.file_id,
                    chunk_id=d.chunk_id,
                    chunk_index=d.chunk_index,
                    text=d.text,
                    score=cosine_similarity(query_embedding, d.embedding),
                )
                for d in candidates
            ),
            key=lambda hit: (-hit.score, hit.chunk_index),
        )
        return scored[:top]

    async def delete_documents(self, document_ids: list[str]) -> dict[str, bool]:
        return {
            doc_id: self._documents.pop(doc_id, None) is not None for doc_id in document_ids
        }

    async def list_document_ids(self) -> list[str]:
        return list(self._documents)

    def get_provider_name(self) -> str:
        return "memory_index"

    def is_available(self) -> bool:
        return True
