"""Unit tests for DocumentChunker: token-bounded chunking with headers."""

from __future__ import annotations

from unittest.mock import patch

import pytest
import tiktoken

from src.services.ingestion.chunker import DocumentChunker
from src.utils.errors import ConfigurationError
from tests.conftest import make_chunker

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _paragraphs(count: int, sentences: int = 4) -> str:
    return "\n\n".join(
        " ".join(f"Paragraph {p} sentence {s} talks about shipping schedules." for s in range(sentences))
        for p in range(count)
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestBudget:
    """Every chunk, header included, fits the token budget."""

    @pytest.mark.parametrize("max_tokens", [20, 50, 200])
    def test_chunks_fit_budget(self, max_tokens: int) -> None:
        chunker = make_chunker(max_tokens)
        chunks = chunker.chunk_text(_paragraphs(6))

        assert len(chunks) > 1
        for chunk in chunks:
            assert chunker.count_tokens(chunk) <= max_tokens

    def test_header_counts_against_budget(self) -> None:
        chunker = make_chunker(30)
        header = "Page: 3\n"
        chunks = chunker.chunk_text(_paragraphs(4), header=header)

        assert chunks
        for chunk in chunks:
            assert chunk.startswith(header)
            assert chunker.count_tokens(chunk) <= 30

    def test_short_text_is_single_chunk(self, chunker: DocumentChunker) -> None:
        assert chunker.chunk_text("Just one line.") == ["Just one line."]

    def test_header_prefixes_single_chunk(self, chunker: DocumentChunker) -> None:
        assert chunker.chunk_text("value", header="JSON Path: a:b\n") == ["JSON Path: a:b\nvalue"]

    def test_header_too_large_raises(self) -> None:
        chunker = make_chunker(5)
        with pytest.raises(ValueError, match="header"):
            chunker.chunk_text("body", header="a very long header that cannot possibly fit\n")

    def test_max_tokens_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            make_chunker(0)


class TestEmptyInput:
    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t"])
    def test_blank_text_yields_no_chunks(self, chunker: DocumentChunker, text: str) -> None:
        assert chunker.chunk_text(text) == []
        assert chunker.chunk_text(text, header="Page: 1\n") == []


class TestBoundaries:
    """Coarse boundaries are preferred over fine ones."""

    def test_paragraphs_are_not_split_when_they_fit(self) -> None:
        text = _paragraphs(5, sentences=2)
        paragraphs = text.split("\n\n")
        chunker = make_chunker(max(make_chunker().count_tokens(p) for p in paragraphs) + 2)

        chunks = chunker.chunk_text(text)

        for paragraph in paragraphs:
            assert any(paragraph in chunk for chunk in chunks)

    def test_sentences_are_kept_whole(self) -> None:
        text = " ".join(f"Sentence number {i} ends here." for i in range(30))
        chunker = make_chunker(25)

        chunks = chunker.chunk_text(text)

        assert len(chunks) > 1
        for chunk in chunks:
            assert chunk.endswith(".")

    def test_abbreviations_do_not_end_sentences(self) -> None:
        assert DocumentChunker._split_sentences("Dr. Smith arrived. He sat down.") == [
            "Dr. Smith arrived.",
            "He sat down.",
        ]

    def test_unbroken_token_run_is_sliced(self) -> None:
        chunker = make_chunker(10)
        blob = "x" * 400

        chunks = chunker.chunk_text(blob)

        assert len(chunks) > 1
        assert "".join(chunks) == blob
        for chunk in chunks:
            assert chunker.count_tokens(chunk) <= 10


class TestContentPreservation:
    def test_words_survive_in_order(self) -> None:
        text = _paragraphs(8)
        chunker = make_chunker(40)

        chunks = chunker.chunk_text(text)

        assert " ".join(chunks).split() == text.split()

    def test_deterministic(self) -> None:
        chunker = make_chunker(35)
        text = _paragraphs(5)
        assert chunker.chunk_text(text) == chunker.chunk_text(text)


class TestTokenCounting:
    def test_count_tokens_is_positive_for_text(self, chunker: DocumentChunker) -> None:
        assert chunker.count_tokens("hello world, this is a sentence") > 0
        assert chunker.count_tokens("") == 0

    def test_special_token_text_is_counted_not_rejected(self, chunker: DocumentChunker) -> None:
        assert chunker.count_tokens("<|endoftext|>") > 0

    def test_unknown_encoding_is_a_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError, match="no-such-encoding") as exc_info:
            DocumentChunker(max_tokens=100, encoding_name="no-such-encoding")

        assert exc_info.value.provider_name == "tiktoken"
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_unreachable_encoding_file_is_a_configuration_error(self) -> None:
        with patch.object(tiktoken, "get_encoding", side_effect=ConnectionError("offline")):
            with pytest.raises(ConfigurationError, match="offline"):
                DocumentChunker(encoding_name="cl100k_base")

    def test_injected_encoding_is_used_as_is(self) -> None:
        with patch.object(tiktoken, "get_encoding") as get_encoding:
            chunker = make_chunker(100)

        get_encoding.assert_not_called()
        assert chunker.count_tokens("Paragraph one.") == 5


class TestTiktokenEncoding:
    """Runs against the real BPE tables when they are cached or reachable."""

    @pytest.fixture
    def cl100k(self) -> tiktoken.Encoding:
        try:
            return tiktoken.get_encoding("cl100k_base")
        except Exception as exc:  # noqa: BLE001
            pytest.skip(f"cl100k_base unavailable: {exc}")

    def test_counts_model_tokens(self, cl100k: tiktoken.Encoding) -> None:
        chunker = DocumentChunker(max_tokens=50, encoding=cl100k)

        assert chunker.count_tokens("hello world") == 2
        assert chunker.count_tokens("<|endoftext|>") > 1

    def test_chunks_fit_real_budget(self, cl100k: tiktoken.Encoding) -> None:
        chunker = DocumentChunker(max_tokens=32, encoding=cl100k)

        chunks = chunker.chunk_text(_paragraphs(6), header="Page: 1\n")

        assert len(chunks) > 1
        assert all(len(cl100k.encode(c, disallowed_special=())) <= 32 for c in chunks)
