"""Context strategy selection: how a file's content reaches the LLM.

Pure and total: every input maps to exactly one strategy, with a
human-readable reason for logs and debugging.  Rules, in priority order:

    1. image MIME type                         -> DIRECT_CONTENT
    2. large + extracted text + embeddings ok  -> RAG_CHUNKS
    3. large + extracted text, no embeddings   -> EXTRACTED_TEXT
    4. extracted text                          -> EXTRACTED_TEXT
    5. natively renderable type, no text       -> DIRECT_CONTENT
    6. anything else                           -> DIRECT_CONTENT

"Large" is ``size_bytes >= large_file_threshold_bytes`` (inclusive).  The
selector never drops content: an unembedded large file still gets its
extracted text, and an unknown type without text is sent as-is.
"""

from __future__ import annotations

from fileready.models.context import ContextStrategy, StrategyDecision
from fileready.models.file import FileForStrategy, ProcessingStatus

DEFAULT_LARGE_FILE_THRESHOLD = 30 * 1024 * 1024

IMAGE_MIME_TYPES = frozenset(
    {
        "image/png",
        "image/jpeg",
        "image/jpg",
        "image/webp",
        "image/gif",
        "image/svg+xml",
    }
)

# Types the LLM reads natively without a separate extraction step.
_NATIVE_MIME_TYPES = frozenset(
    {
        "text/markdown",
        "text/html",
        "text/csv",
        "application/pdf",
        "application/json",
        "application/xml",
    }
)


def is_image(mime_type: str) -> bool:
    return mime_type.lower() in IMAGE_MIME_TYPES


def is_text_type(mime_type: str) -> bool:
    """Return ``True`` for types whose raw bytes are readable text."""
    mime = mime_type.lower()
    return mime.startswith("text/") or mime in {"application/json", "application/xml"}


def is_natively_renderable(mime_type: str) -> bool:
    mime = mime_type.lower()
    return mime.startswith("text/") or mime in _NATIVE_MIME_TYPES


class ContextStrategySelector:
    """Chooses a :class:`ContextStrategy` per file.

    Parameters
    ----------
    large_file_threshold_bytes:
        Size at or above which embedded files are served as RAG chunks.
    """

    def __init__(self, large_file_threshold_bytes: int = DEFAULT_LARGE_FILE_THRESHOLD) -> None:
        self._threshold = large_file_threshold_bytes

    @property
    def large_file_threshold_bytes(self) -> int:
        return self._threshold

    def select_strategy(self, file: FileForStrategy) -> StrategyDecision:
        if is_image(file.mime_type):
            return StrategyDecision(
                strategy=ContextStrategy.DIRECT_CONTENT,
                reason="Image file; sent natively to the model",
            )

        is_large = file.size_bytes >= self._threshold

        if is_large and file.has_extracted_text:
            if file.embedding_status == ProcessingStatus.COMPLETED:
                return StrategyDecision(
                    strategy=ContextStrategy.RAG_CHUNKS,
                    reason=(
                        f"Large file ({self._format_size(file.size_bytes)}) with embeddings"
                        "; using semantic search"
                    ),
                )
            return StrategyDecision(
                strategy=ContextStrategy.EXTRACTED_TEXT,
                reason=(
                    f"Large file ({self._format_size(file.size_bytes)}) but embeddings"
                    f" are {file.embedding_status.value}; falling back to extracted text"
                ),
            )

        if file.has_extracted_text:
            return StrategyDecision(
                strategy=ContextStrategy.EXTRACTED_TEXT,
                reason="Extracted text available",
            )

        if is_natively_renderable(file.mime_type):
            return StrategyDecision(
                strategy=ContextStrategy.DIRECT_CONTENT,
                reason=f"No extracted text; {file.mime_type} is sent natively",
            )

        return StrategyDecision(
            strategy=ContextStrategy.DIRECT_CONTENT,
            reason=f"Unknown type {file.mime_type} without extracted text; sending as-is",
        )

    @staticmethod
    def _format_size(size_bytes: int) -> str:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
