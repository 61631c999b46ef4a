"""Token-bounded text chunking with a boundary-preference cascade.

Splits normalised document text into strings that fit an embedding model's
context.  Every returned chunk is ``header + body`` and its token count,
header included, never exceeds ``max_tokens``.

Boundaries are tried from coarsest to finest:

1. **Paragraphs** (blank lines) -- whole paragraphs are packed greedily.
2. **Lines** -- for a paragraph that alone exceeds the budget.
3. **Sentences** -- abbreviation-aware, so "Dr." or "vs." never end one.
4. **Words** -- for a sentence that is still too long.
5. **Token slices** -- last resort for a single enormous "word" such as a
   base64 blob or a minified line.

Chunks do not overlap.  Structured formats (CSV rows, JSON leaves) repeat
their own context in the header instead.
"""

from __future__ import annotations

import re
from typing import Any, Callable

import structlog
import tiktoken

from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_TOKENS = 1024
DEFAULT_ENCODING = "cl100k_base"

# Common abbreviations that should NOT trigger a sentence split.
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "Ave",
        "Vol",
        "No",
        "vs",
        "etc",
        "approx",
        "dept",
        "est",
        "inc",
        "ltd",
        "co",
        "e.g",
        "i.e",
        "Fig",
    }
)


class DocumentChunker:
    """Splits text into header-prefixed chunks within a token budget.

    Parameters
    ----------
    max_tokens:
        Upper bound on tokens per chunk, header included (default 1024).
    encoding_name:
        tiktoken encoding used for counting (default ``cl100k_base``).
    encoding:
        Pre-built encoding object exposing ``encode`` and ``decode``.  When
        given, *encoding_name* is not loaded.

    Raises
    ------
    ConfigurationError
        If the named encoding cannot be loaded.
    """

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        encoding_name: str = DEFAULT_ENCODING,
        encoding: Any | None = None,
    ) -> None:
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {max_tokens}")
        self._max_tokens = max_tokens
        self._encoding_name = encoding_name
        self._encoding = encoding if encoding is not None else self._load_encoding(encoding_name)

        # (splitter, joiner) per boundary level, coarsest first.
        self._levels: list[tuple[Callable[[str], list[str]], str]] = [
            (self._split_paragraphs, "\n\n"),
            (self._split_lines, "\n"),
            (self._split_sentences, " "),
            (self._split_words, " "),
        ]

    @property
    def max_tokens(self) -> int:
        return self._max_tokens

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def count_tokens(self, text: str) -> int:
        """Return the token count of *text* under the configured encoding."""
        return len(self._encoding.encode(text, disallowed_special=()))

    def chunk_text(self, text: str, header: str | None = None) -> list[str]:
        """Split *text* into chunks, each prefixed with *header*.

        Parameters
        ----------
        text:
            Body text to split.  Leading and trailing whitespace is dropped.
        header:
            Optional context line(s) repeated at the start of every chunk,
            e.g. ``"Page: 3\\n"`` or ``"JSON Path: orders[0]:id\\n"``.

        Returns
        -------
        list[str]
            ``header + body`` strings in source order.  Empty or
            whitespace-only *text* returns an empty list.

        Raises
        ------
        ValueError
            If *header* alone leaves no room for any body text.
        """
        header = header or ""
        if not text or not text.strip():
            return []

        if header and self.count_tokens(header) >= self._max_tokens:
            raise ValueError(
                f"Chunk header uses {self.count_tokens(header)} tokens; "
                f"budget is {self._max_tokens}"
            )

        bodies = self._split(text.strip(), header, level=0)
        chunks = [header + body for body in bodies]

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            max_tokens=self._max_tokens,
            header_tokens=self.count_tokens(header) if header else 0,
        )
        return chunks

    # ------------------------------------------------------------------
    # Recursive packing
    # ------------------------------------------------------------------

    def _fits(self, header: str, body: str) -> bool:
        return self.count_tokens(header + body) <= self._max_tokens

    def _split(self, text: str, header: str, level: int) -> list[str]:
        """Pack *text* at boundary *level*, descending for oversized parts."""
        if self._fits(header, text):
            return [text]
        if level >= len(self._levels):
            return self._split_token_slices(text, header)

        splitter, joiner = self._levels[level]
        parts = splitter(text)
        if len(parts) <= 1:
            return self._split(text, header, level + 1)

        bodies: list[str] = []
        current: str | None = None
        for part in parts:
            if not self._fits(header, part):
                # Flush before descending so source order is preserved.
                if current is not None:
                    bodies.append(current)
                    current = None
                bodies.extend(self._split(part, header, level + 1))
                continue

            candidate = part if current is None else current + joiner + part
            if self._fits(header, candidate):
                current = candidate
            else:
                bodies.append(current)  # type: ignore[arg-type]
                current = part

        if current is not None:
            bodies.append(current)
        return bodies

    def _split_token_slices(self, text: str, header: str) -> list[str]:
        """Cut *text* into raw token windows that fit beside *header*."""
        room = max(self._max_tokens - self.count_tokens(header), 1)
        units = self._encoding.encode(text, disallowed_special=())
        bodies: list[str] = []
        start = 0
        while start < len(units):
            size = min(room, len(units) - start)
            body = self._encoding.decode(units[start:start + size])
            # Re-tokenising header + body can merge differently at the seam.
            while size > 1 and not self._fits(header, body):
                size -= 1
                body = self._encoding.decode(units[start:start + size])
            if body.strip():
                bodies.append(body)
            start += size
        return bodies

    # ------------------------------------------------------------------
    # Boundary splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        """Split *text* on blank lines, discarding blanks."""
        parts = re.split(r"\n\s*\n", text)
        return [p.strip() for p in parts if p.strip()]

    @staticmethod
    def _split_lines(text: str) -> list[str]:
        return [line.strip() for line in text.splitlines() if line.strip()]

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        """Split *text* at sentence boundaries while respecting abbreviations.

        Handles ``.``, ``!``, ``?`` followed by whitespace or end-of-string.
        Periods after known abbreviations are masked with ``\\x00`` (same
        length, so indices stay aligned with the original text).
        """
        masked = text
        for abbr in _ABBREVIATIONS:
            masked = re.sub(rf"\b{re.escape(abbr)}\.", abbr + "\x00", masked)

        sentences: list[str] = []
        last = 0
        for match in re.finditer(r"[.!?](?:\s|$)", masked):
            end = match.end()
            sentence = text[last:end].strip()
            if sentence:
                sentences.append(sentence)
            last = end

        remainder = text[last:].strip()
        if remainder:
            sentences.append(remainder)
        return sentences if sentences else [text]

    @staticmethod
    def _split_words(text: str) -> list[str]:
        return text.split()

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    @staticmethod
    def _load_encoding(encoding_name: str) -> tiktoken.Encoding:
        """Load a tiktoken encoding; its BPE file may be fetched on first use."""
        try:
            return tiktoken.get_encoding(encoding_name)
        except Exception as exc:
            logger.error(
                "tokenizer_load_failed",
                encoding=encoding_name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise ConfigurationError(
                message=f"Tokenizer encoding {encoding_name!r} could not be loaded: {exc}",
                provider_name="tiktoken",
            ) from exc
