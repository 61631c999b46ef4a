"""Source processor for plain text, Markdown and HTML documents.

Each format has a converter that normalises the raw document into clean
text (Markdown for the markup formats).  :class:`TextProcessor` then chunks
that text with :class:`~src.services.ingestion.chunker.DocumentChunker` and
wraps every chunk in a plain :class:`~src.models.records.TextRecord`.

HTML is rendered to Markdown rather than stripped to bare text so headings,
lists, links and tables keep their structure in the embedded chunks.
"""

from __future__ import annotations

import re

import markdownify
import mdformat
import structlog
from bs4 import BeautifulSoup, Comment

from src.models.documents import ContentType
from src.models.records import TextRecord
from src.services.ingestion.chunker import DocumentChunker
from src.utils.errors import ConversionError, UnsupportedContentTypeError

logger = structlog.get_logger(logger_name=__name__)

# Elements whose content is never document text.
_STRIPPED_TAGS = ("script", "style", "noscript", "template")


class PlainTextConverter:
    """Normalises line endings and whitespace in plain text."""

    def convert(self, content: str) -> str:
        text = content.replace("\r\n", "\n").replace("\r", "\n")
        text = "\n".join(line.rstrip() for line in text.split("\n"))
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()


class MarkdownConverter:
    """Round-trips Markdown through mdformat's parser and renderer.

    Normalises heading and list markers, emphasis and spacing so equivalent
    documents chunk identically.
    """

    def convert(self, content: str) -> str:
        try:
            rendered = mdformat.text(content)
        except Exception as exc:
            raise ConversionError(
                message=f"Markdown could not be rendered: {exc}",
            ) from exc
        return PlainTextConverter().convert(rendered)


class HtmlToMarkdownConverter:
    """Renders HTML as GitHub-flavoured Markdown.

    A BeautifulSoup pass removes comments and script/style content first.
    Unknown tags are bypassed with their children kept, headings use ATX
    style, and a table whose first row has no ``<th>`` cells gets an empty
    header row so the result is still a valid GFM table.
    """

    def __init__(self) -> None:
        self._renderer = markdownify.MarkdownConverter(
            heading_style=markdownify.ATX,
            bullets="-",
        )

    def convert(self, content: str) -> str:
        soup = BeautifulSoup(content, "html.parser")
        for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
            comment.extract()
        for tag in soup.find_all(_STRIPPED_TAGS):
            tag.decompose()

        markdown = self._renderer.convert_soup(soup)
        return PlainTextConverter().convert(markdown)


class TextProcessor:
    """Converts and chunks text-like documents into :class:`TextRecord` objects.

    Parameters
    ----------
    chunker:
        Shared token-bounded chunker.
    """

    def __init__(self, chunker: DocumentChunker) -> None:
        self._chunker = chunker
        self._converters = {
            ContentType.PLAIN_TEXT: PlainTextConverter(),
            ContentType.MARKDOWN: MarkdownConverter(),
            ContentType.HTML: HtmlToMarkdownConverter(),
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def supports(self, content_type: ContentType) -> bool:
        return content_type in self._converters

    def convert(self, content: str, content_type: ContentType) -> str:
        """Return the normalised text of *content*.

        Raises
        ------
        UnsupportedContentTypeError
            If *content_type* is not plain text, Markdown or HTML.
        """
        converter = self._converters.get(content_type)
        if converter is None:
            raise UnsupportedContentTypeError(
                message=f"No text converter for {content_type.value}",
            )
        return converter.convert(content)

    def process(
        self,
        content: str,
        content_type: ContentType,
        page_number: int | None = None,
    ) -> list[TextRecord]:
        """Convert *content* and return one record per chunk.

        Returns an empty list when the document has no text after
        normalisation.
        """
        text = self.convert(content, content_type)
        chunks = self._chunker.chunk_text(text)
        records = [TextRecord(text=chunk, page_number=page_number) for chunk in chunks]

        logger.debug(
            "text_processed",
            content_type=content_type.value,
            characters=len(text),
            records=len(records),
        )
        return records
