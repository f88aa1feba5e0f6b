"""Search index providers.

MemorySearchIndex scores every document in-process (tests, small
deployments).  ChromaDBSearchIndex persists embeddings on disk with cosine
similarity search.  ChromaDB is imported lazily by main.py so the memory
backend works without it being loaded.
"""

from fileready.providers.search_index.memory_index import MemorySearchIndex, cosine_similarity

__all__ = ["MemorySearchIndex", "cosine_similarity"]
