"""Deterministic feature-hashing embedding provider.

Tokens are lower-cased word runs; each one is hashed with BLAKE2b into a
bucket and a sign, and the accumulated vector is L2-normalised.  No model
download, no network, stable across processes, so it is the default
backend for local runs and tests.  Similarity reflects shared vocabulary
only, not meaning.
"""

from __future__ import annotations

import hashlib
import math
import re

import structlog

from fileready.interfaces.embedding_provider import IEmbeddingProvider

logger = structlog.get_logger(logger_name=__name__)

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


class HashingEmbeddingProvider(IEmbeddingProvider):
    def __init__(self, dimension: int = 256) -> None:
        if dimension < 1:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    def _vectorize(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            value = int.from_bytes(digest, "big")
            bucket = value % self._dimension
            sign = 1.0 if (value >> 63) & 1 == 0 else -1.0
            vector[bucket] += sign
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return vector
        return [v / norm for v in vector]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [self._vectorize(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return self._vectorize(text)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return f"hashing_{self._dimension}"

    def is_available(self) -> bool:
        return True
