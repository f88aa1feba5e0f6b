"""Embedding providers.

HashingEmbeddingProvider needs nothing beyond the standard install.
FastEmbedEmbeddingProvider is imported lazily by main.py because
``fastembed`` is an optional extra.
"""

from fileready.providers.embedding.hashing_provider import HashingEmbeddingProvider

__all__ = ["HashingEmbeddingProvider"]
