"""Ingestion: upload coordination, chunking, and the post-extraction stages."""

from fileready.services.ingestion.chunker import RecursiveTextChunker
from fileready.services.ingestion.coordinator import IngestionCoordinator
from fileready.services.ingestion.stages import FileChunkingStage, FileEmbeddingStage

__all__ = [
    "FileChunkingStage",
    "FileEmbeddingStage",
    "IngestionCoordinator",
    "RecursiveTextChunker",
]
