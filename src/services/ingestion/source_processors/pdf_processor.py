"""Source processor for PDF documents.

Reads PDFs with PyMuPDF (fitz) and yields their content page by page as
:class:`~src.models.documents.RawContent` units:

1. every embedded image on the page (for the vision extractor), then
2. the page's text blocks in reading order.

Each unit carries its 1-based page number.  Extraction is an async
iterator with an ``asyncio.sleep(0)`` checkpoint between pages and between
units, so cancelling the ingesting task stops extraction at the next unit
boundary rather than after the whole document.
"""

from __future__ import annotations

import asyncio
import io
from pathlib import Path
from typing import AsyncIterator

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog
from PIL import Image

from src.models.documents import RawContent
from src.services.ingestion.source_processors.image_processor import PNG_MIME, encode_png
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

# page.get_text("blocks") block_type for text (1 is an image block).
_TEXT_BLOCK = 0


class PdfExtractor:
    """Yields the images and text blocks of a PDF in page order."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def iter_contents(self, source: str | Path | bytes) -> AsyncIterator[RawContent]:
        """Iterate the document's content units.

        Parameters
        ----------
        source:
            Path to a PDF on disk, or the PDF's bytes.

        Raises
        ------
        ExtractionError
            If the document cannot be opened.
        """
        doc = self._open(source)
        try:
            for page_index in range(doc.page_count):
                await asyncio.sleep(0)
                page = doc[page_index]
                page_number = page_index + 1
                images = 0
                blocks = 0

                for image_info in page.get_images(full=True):
                    await asyncio.sleep(0)
                    content = self._extract_image(doc, image_info[0], page_number)
                    if content is not None:
                        images += 1
                        yield content

                for block in page.get_text("blocks", sort=True):
                    await asyncio.sleep(0)
                    text = block[4].strip()
                    if block[6] != _TEXT_BLOCK or not text:
                        continue
                    blocks += 1
                    yield RawContent(text=text, page_number=page_number)

                logger.debug(
                    "pdf_page_extracted",
                    page=page_number,
                    images=images,
                    blocks=blocks,
                )
        finally:
            doc.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _open(source: str | Path | bytes) -> fitz.Document:
        try:
            if isinstance(source, bytes):
                return fitz.open(stream=source, filetype="pdf")
            return fitz.open(str(source))
        except Exception as exc:
            logger.error("pdf_open_failed", source=_describe(source), error=str(exc))
            raise ExtractionError(message=f"Cannot open PDF: {exc}") from exc

    @staticmethod
    def _extract_image(doc: fitz.Document, xref: int, page_number: int) -> RawContent | None:
        """Decode one embedded image, normalising it to PNG where possible.

        PNG is kept as-is.  Other encodings are rendered through a pixmap
        (CMYK converted to RGB), then through Pillow; if both fail the raw
        bytes are passed on with their own MIME type.
        """
        info = doc.extract_image(xref)
        if not info or not info.get("image"):
            logger.warning("pdf_image_unreadable", page=page_number, xref=xref)
            return None

        raw: bytes = info["image"]
        ext = str(info.get("ext", "")).lower()
        if ext == "png":
            return RawContent(image=raw, image_mime_type=PNG_MIME, page_number=page_number)

        try:
            pix = fitz.Pixmap(doc, xref)
            if pix.n - pix.alpha >= 4:
                pix = fitz.Pixmap(fitz.csRGB, pix)
            return RawContent(image=pix.tobytes("png"), image_mime_type=PNG_MIME, page_number=page_number)
        except Exception as exc:  # noqa: BLE001
            logger.debug("pdf_pixmap_failed", page=page_number, xref=xref, ext=ext, error=str(exc))

        try:
            with Image.open(io.BytesIO(raw)) as image:
                png = encode_png(image)
            return RawContent(image=png, image_mime_type=PNG_MIME, page_number=page_number)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "pdf_image_passthrough",
                page=page_number,
                xref=xref,
                ext=ext,
                error=str(exc),
            )
        return RawContent(image=raw, image_mime_type=f"image/{ext or 'octet-stream'}", page_number=page_number)


def _describe(source: str | Path | bytes) -> str:
    if isinstance(source, bytes):
        return f"<{len(source)} bytes>"
    return str(source)
