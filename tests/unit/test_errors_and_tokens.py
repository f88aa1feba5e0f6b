"""Unit tests for the error hierarchy and the token estimate helpers."""

from __future__ import annotations

import pytest

from fileready.utils.errors import (
    BlobNotFoundError,
    ConfigurationError,
    EmbeddingError,
    FileReadyError,
    FileRecordNotFoundError,
    QueueError,
    RateLimitError,
    SearchIndexError,
    StorageError,
)
from fileready.utils.tokens import estimate_tokens, tokens_to_words, words_to_tokens


class TestErrors:
    def test_provider_name_prefixes_message(self) -> None:
        err = StorageError("database is locked", provider_name="sqlite")

        assert str(err) == "[sqlite] database is locked"
        assert err.message == "database is locked"
        assert err.provider_name == "sqlite"

    def test_message_without_provider(self) -> None:
        assert str(RateLimitError("slow down")) == "slow down"

    def test_defaults(self) -> None:
        assert str(BlobNotFoundError()) == "Blob not found"
        assert FileReadyError().provider_name is None

    @pytest.mark.parametrize("cls", [StorageError, SearchIndexError, EmbeddingError, QueueError])
    def test_transient_errors_are_retryable(self, cls: type[FileReadyError]) -> None:
        assert cls.retryable is True
        assert issubclass(cls, FileReadyError)

    @pytest.mark.parametrize(
        "cls", [BlobNotFoundError, FileRecordNotFoundError, ConfigurationError, RateLimitError]
    )
    def test_terminal_errors_are_not_retryable(self, cls: type[FileReadyError]) -> None:
        assert cls.retryable is False


class TestTokenEstimate:
    @pytest.mark.parametrize(
        ("words", "tokens"), [(0, 0), (1, 2), (3, 4), (10, 13), (100, 130), (393, 511)]
    )
    def test_words_to_tokens(self, words: int, tokens: int) -> None:
        assert words_to_tokens(words) == tokens

    @pytest.mark.parametrize(("tokens", "words"), [(0, 0), (1, 0), (2, 1), (50, 38), (512, 393)])
    def test_tokens_to_words(self, tokens: int, words: int) -> None:
        assert tokens_to_words(tokens) == words

    @pytest.mark.parametrize("budget", range(1, 200))
    def test_word_budget_always_fits(self, budget: int) -> None:
        assert words_to_tokens(tokens_to_words(budget)) <= budget

    def test_estimate_counts_whitespace_words(self) -> None:
        assert estimate_tokens("") == 0
        assert estimate_tokens("  one\ttwo\n\nthree  ") == 4
