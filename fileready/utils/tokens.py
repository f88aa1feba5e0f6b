"""Word-count token estimate shared by every budgeting site.

This is an estimate, not a tokenizer: one whitespace-delimited word is
counted as 1.3 tokens, rounded up.  Integer arithmetic keeps the result
deterministic across platforms.  The chunker, the prompt assembler and the
retrieval budget all call these helpers so their numbers agree.
"""

from __future__ import annotations

# 1.3 tokens per word, expressed as a ratio of integers.
_TOKENS_NUM = 13
_TOKENS_DEN = 10


def words_to_tokens(word_count: int) -> int:
    """Return ``ceil(word_count * 1.3)``."""
    if word_count <= 0:
        return 0
    return (word_count * _TOKENS_NUM + _TOKENS_DEN - 1) // _TOKENS_DEN


def tokens_to_words(token_budget: int) -> int:
    """Return the largest word count whose estimate fits in *token_budget*."""
    if token_budget <= 0:
        return 0
    return (token_budget * _TOKENS_DEN) // _TOKENS_NUM


def estimate_tokens(text: str) -> int:
    """Estimate the token count of *text*."""
    return words_to_tokens(len(text.split()))
