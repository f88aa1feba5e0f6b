"""Search-index document models.

A :class:`SearchDocument` is the index-side twin of a chunk row: same text,
plus its embedding vector and enough metadata to scope queries to one
user and one file.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SearchDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Index-side identifier (UUID).")
    user_id: str
    file_id: str
    chunk_id: str
    chunk_index: int = Field(ge=0)
    text: str
    embedding: list[float]


class SearchHit(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    file_id: str
    chunk_id: str
    chunk_index: int = Field(ge=0)
    text: str
    score: float = Field(ge=0.0, le=1.0, description="Cosine similarity, clamped to [0, 1].")
