"""Recursive text chunking with paragraph boundary preservation.

Splits extracted text into :class:`~fileready.models.file.TextChunk` objects
bounded by a token budget (default 512 tokens, 50-token overlap).

The split is recursive, coarsest boundary first:

1. **Paragraphs** -- blank-line separated blocks (``\\r\\n`` counts as
   ``\\n``; any run of blank lines is one separator).  A paragraph that fits
   the budget becomes exactly one chunk, written as it appears in the source.
2. **Sentences** -- an oversized paragraph is re-split after ``.``, ``!``
   or ``?`` followed by whitespace, and sentences are packed greedily.
3. **Words** -- a sentence that alone exceeds the budget is packed word by
   word.

Overlap is only added between chunks cut from the same oversized
paragraph: the next chunk starts with up to ``overlap_tokens`` worth of
trailing words from the previous one.  Natural paragraph breaks never
overlap.

All offsets are character positions into the caller's original string.
Token counts come from :mod:`fileready.utils.tokens` (a word-count estimate).
"""

from __future__ import annotations

import re

import structlog

from fileready.config.processing import ChunkingConfig
from fileready.models.file import TextChunk
from fileready.utils.tokens import tokens_to_words, words_to_tokens

logger = structlog.get_logger(logger_name=__name__)

# Two or more newlines with only whitespace between them.
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_WORD = re.compile(r"\S+")
_SENTENCE_END = (".", "!", "?")

# (start, end) character span of one word in the source text.
_Span = tuple[int, int]


class RecursiveTextChunker:
    """Splits text into token-bounded chunks, paragraph first.

    Parameters
    ----------
    config:
        Default token budget.  Individual :meth:`chunk` calls may pass
        their own.  Invalid budgets are rejected by
        :class:`~fileready.config.processing.ChunkingConfig` with a
        ``ValueError``.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self._config = config or ChunkingConfig()

    @classmethod
    def from_budget(cls, max_tokens: int = 512, overlap_tokens: int = 50) -> RecursiveTextChunker:
        """Build a chunker from raw numbers, validating them."""
        return cls(ChunkingConfig(max_tokens=max_tokens, overlap_tokens=overlap_tokens))

    @property
    def config(self) -> ChunkingConfig:
        return self._config

    def get_strategy_name(self) -> str:
        return "recursive"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str, config: ChunkingConfig | None = None) -> list[TextChunk]:
        """Split *text* into ordered, token-bounded chunks.

        Parameters
        ----------
        text:
            Extracted text of one file.
        config:
            Overrides the chunker's default budget for this call.

        Returns
        -------
        list[TextChunk]
            Chunks with contiguous ``chunk_index`` values starting at 0.
            Empty or whitespace-only input returns an empty list.
        """
        if not text or not text.strip():
            return []

        budget = config or self._config
        max_words = max(1, tokens_to_words(budget.max_tokens))
        overlap_words = tokens_to_words(budget.overlap_tokens)

        ranges: list[tuple[list[_Span], int, int]] = []
        for words in self._split_paragraphs(text):
            if words_to_tokens(len(words)) <= budget.max_tokens:
                ranges.append((words, 0, len(words)))
                continue
            # Oversized paragraph: fall back to sentences, then words.
            atoms = self._split_atoms(text, words, max_words)
            for lo, hi in self._pack(atoms, max_words, overlap_words):
                ranges.append((words, lo, hi))

        chunks = [
            self._build_chunk(text, words, lo, hi, index)
            for index, (words, lo, hi) in enumerate(ranges)
        ]

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            avg_tokens=self._avg_tokens(chunks),
            max_tokens=budget.max_tokens,
        )
        return chunks

    # ------------------------------------------------------------------
    # Paragraph / sentence splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _split_paragraphs(text: str) -> list[list[_Span]]:
        """Return the word spans of each non-blank paragraph."""
        paragraphs: list[list[_Span]] = []
        start = 0
        bounds = [(m.start(), m.end()) for m in _PARAGRAPH_BREAK.finditer(text)]
        bounds.append((len(text), len(text)))
        for sep_start, sep_end in bounds:
            # pos/endpos keep match offsets absolute.
            words = [(m.start(), m.end()) for m in _WORD.finditer(text, start, sep_start)]
            if words:
                paragraphs.append(words)
            start = sep_end
        return paragraphs

    @staticmethod
    def _split_atoms(text: str, words: list[_Span], max_words: int) -> list[tuple[int, int]]:
        """Group a paragraph's words into packable units.

        A unit is a whole sentence when it fits ``max_words``, otherwise each
        of its words is its own unit.  Units are ``(lo, hi)`` word-index
        ranges into *words*.
        """
        sentences: list[tuple[int, int]] = []
        sentence_start = 0
        for i, (s, e) in enumerate(words):
            if text[s:e].endswith(_SENTENCE_END):
                sentences.append((sentence_start, i + 1))
                sentence_start = i + 1
        if sentence_start < len(words):
            sentences.append((sentence_start, len(words)))

        atoms: list[tuple[int, int]] = []
        for lo, hi in sentences:
            if hi - lo <= max_words:
                atoms.append((lo, hi))
            else:
                atoms.extend((i, i + 1) for i in range(lo, hi))
        return atoms

    # ------------------------------------------------------------------
    # Chunk accumulation
    # ------------------------------------------------------------------

    @staticmethod
    def _pack(
        atoms: list[tuple[int, int]], max_words: int, overlap_words: int
    ) -> list[tuple[int, int]]:
        """Greedily pack contiguous atoms into word ranges of at most *max_words*.

        On each flush the next range is seeded with trailing words of the
        flushed one, as many as the overlap allows while leaving room for
        the atom that did not fit.
        """
        ranges: list[tuple[int, int]] = []
        cur_lo = cur_hi = -1

        for a_lo, a_hi in atoms:
            if cur_lo < 0:
                cur_lo, cur_hi = a_lo, a_hi
            elif a_hi - cur_lo <= max_words:
                cur_hi = a_hi
            else:
                ranges.append((cur_lo, cur_hi))
                overlap = min(overlap_words, cur_hi - cur_lo - 1, max_words - (a_hi - a_lo))
                cur_lo = a_lo - max(0, overlap)
                cur_hi = a_hi

        if cur_lo >= 0:
            ranges.append((cur_lo, cur_hi))
        return ranges

    @staticmethod
    def _build_chunk(
        text: str, words: list[_Span], lo: int, hi: int, index: int
    ) -> TextChunk:
        start, end = words[lo][0], words[hi - 1][1]
        return TextChunk(
            chunk_index=index,
            text=text[start:end].replace("\r\n", "\n"),
            token_count=words_to_tokens(hi - lo),
            start_offset=start,
            end_offset=end,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _avg_tokens(chunks: list[TextChunk]) -> int:
        if not chunks:
            return 0
        return sum(c.token_count for c in chunks) // len(chunks)
