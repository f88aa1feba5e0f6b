"""Abstract base class for text-embedding service providers.

The embedding model is a black box to the pipeline: chunk texts go in,
fixed-dimension vectors come out.  Query embeddings for RAG retrieval use
the same provider so vectors stay comparable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   HashingEmbeddingProvider   - deterministic feature hashing, no model
#   FastEmbedEmbeddingProvider - ONNX model via fastembed (optional extra)
# Located in: fileready/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by RAG retrieval.

    Embeddings are consumed by
    :class:`~fileready.interfaces.search_index.ISearchIndex` for indexing
    and query-time similarity search.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  Each
            inner list has length equal to :meth:`get_dimension`.

        Raises
        ------
        fileready.utils.errors.EmbeddingError
            If the embedding backend fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text (e.g. a user query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and usable."""
