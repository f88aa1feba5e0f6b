"""Abstract base class for the vector search index.

Documents mirror chunk rows: each carries ``user_id`` and ``file_id`` so
queries can be scoped to one tenant and one file.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from fileready.models.search import SearchDocument, SearchHit


# Concrete implementations:
#   MemorySearchIndex   - brute-force cosine similarity in-process
#   ChromaDBSearchIndex - chromadb.PersistentClient with cosine space
# Located in: fileready/providers/search_index/
class ISearchIndex(ABC):
    """Contract for storing and querying chunk embeddings."""

    @abstractmethod
    async def upsert_documents(self, documents: list[SearchDocument]) -> int:
        """Insert or replace documents; return how many were written."""

    @abstractmethod
    async def search(
        self,
        user_id: str,
        query_embedding: list[float],
        top: int = 5,
        file_id: str | None = None,
    ) -> list[SearchHit]:
        """Return the *top* most similar documents for *user_id*.

        Parameters
        ----------
        user_id:
            Tenant scope; documents of other users are never returned.
        query_embedding:
            Query vector, same dimension as the stored embeddings.
        top:
            Maximum number of hits.
        file_id:
            When given, restrict the search to one file's documents.

        Returns
        -------
        list[SearchHit]
            Hits ordered by descending score.
        """

    @abstractmethod
    async def delete_documents(self, document_ids: list[str]) -> dict[str, bool]:
        """Delete documents by id.

        Returns
        -------
        dict[str, bool]
            Per-id outcome.  ``True`` means the document existed and was
            removed; ``False`` means it was absent or could not be removed.
        """

    @abstractmethod
    async def list_document_ids(self) -> list[str]:
        """Return every document id in the index (used by the orphan sweep)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this index."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the index is configured and reachable."""
