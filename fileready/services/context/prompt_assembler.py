"""Renders retrieved file content into LLM-ready context.

Text and chunk content become XML-ish blocks the model can cite by file
name; images are not inlined but returned separately by
:meth:`ContextPromptAssembler.get_image_contents` so the caller can attach
them as native image blocks.

    <documents>
    <document id="f1" name="report.pdf">
    ...text...
    </document>
    <document id="f2" name="big.pdf">
    <chunk chunk="3" relevance="0.92">...</chunk>
    </document>
    </documents>

Attribute values and bodies are XML-escaped.
"""

from __future__ import annotations

from xml.sax.saxutils import escape, quoteattr

from fileready.models.context import (
    Base64Content,
    ChunkContent,
    ChunksContent,
    ImageContent,
    RetrievedContent,
    TextContent,
)
from fileready.utils.tokens import estimate_tokens


class ContextPromptAssembler:
    def build_document_context(self, contents: list[RetrievedContent]) -> str:
        """Return the ``<documents>`` block, or ``""`` when nothing is textual."""
        blocks = [
            self._render_document(item)
            for item in contents
            if not isinstance(item.content, Base64Content)
        ]
        if not blocks:
            return ""
        return "<documents>\n" + "\n".join(blocks) + "\n</documents>"

    def build_system_instructions(self, file_names: list[str]) -> str:
        """Return citation guidance naming every attached file."""
        if not file_names:
            return ""
        listing = "\n".join(f"- {name}" for name in file_names)
        return (
            "The user has attached the following documents to this conversation:\n"
            f"{listing}\n\n"
            "Use the content inside the <documents> block to answer. "
            "When citing information from a document, reference it by name "
            "using the format [file name]. If the documents do not contain the "
            "answer, say so rather than guessing."
        )

    def get_image_contents(self, contents: list[RetrievedContent]) -> list[ImageContent]:
        return [
            ImageContent(mime_type=item.content.mime_type, data=item.content.data)
            for item in contents
            if isinstance(item.content, Base64Content)
        ]

    def estimate_tokens(self, content: RetrievedContent) -> int:
        """Estimated prompt tokens for one file; images count as zero."""
        payload = content.content
        if isinstance(payload, TextContent):
            return estimate_tokens(payload.text)
        if isinstance(payload, ChunksContent):
            return sum(estimate_tokens(c.text) for c in payload.chunks)
        return 0

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render_document(self, item: RetrievedContent) -> str:
        header = f"<document id={quoteattr(item.file_id)} name={quoteattr(item.file_name)}>"
        payload = item.content
        if isinstance(payload, ChunksContent):
            body = "\n".join(self._render_chunk(c) for c in payload.chunks)
        else:
            body = escape(payload.text)
        return f"{header}\n{body}\n</document>"

    @staticmethod
    def _render_chunk(chunk: ChunkContent) -> str:
        attrs = f'chunk="{chunk.chunk_index}"'
        if chunk.relevance_score is not None:
            attrs += f' relevance="{chunk.relevance_score:.2f}"'
        return f"<chunk {attrs}>\n{escape(chunk.text)}\n</chunk>"
