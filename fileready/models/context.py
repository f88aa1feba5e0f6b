"""Models for surfacing file content to the LLM.

:class:`RetrievedContent` is transient: it is built per chat turn by the
retrieval service and consumed by the prompt assembler.  Its ``content``
field is a tagged union discriminated on ``type``:

    text    -> TextContent      (inline or extracted text)
    chunks  -> ChunksContent    (RAG search hits, ordered by relevance)
    base64  -> Base64Content    (images and binary documents sent natively)
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class ContextStrategy(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """How a file's content reaches the LLM."""

    DIRECT_CONTENT = "DIRECT_CONTENT"
    EXTRACTED_TEXT = "EXTRACTED_TEXT"
    RAG_CHUNKS = "RAG_CHUNKS"


class StrategyDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    strategy: ContextStrategy
    reason: str


class ChunkContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk_index: int = Field(ge=0)
    text: str
    relevance_score: float | None = Field(default=None, ge=0.0, le=1.0)


class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ChunksContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["chunks"] = "chunks"
    chunks: list[ChunkContent] = Field(default_factory=list)


class Base64Content(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["base64"] = "base64"
    mime_type: str
    data: str


ContentPayload = Annotated[
    TextContent | ChunksContent | Base64Content,
    Field(discriminator="type"),
]


class RetrievedContent(BaseModel):
    """Content of one file, ready for prompt assembly."""

    model_config = ConfigDict(frozen=True)

    file_id: str
    file_name: str
    strategy: ContextStrategy
    content: ContentPayload


class ImageContent(BaseModel):
    """An image to attach to the LLM request as a native content block."""

    model_config = ConfigDict(frozen=True)

    mime_type: str
    data: str


class RetrievalFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_id: str
    file_name: str
    reason: str


class MultiRetrievalResult(BaseModel):
    """Contents for several files, bounded by a total token budget."""

    model_config = ConfigDict(frozen=True)

    contents: list[RetrievedContent] = Field(default_factory=list)
    failures: list[RetrievalFailure] = Field(default_factory=list)
    total_tokens: int = Field(default=0, ge=0)
    truncated: bool = False
