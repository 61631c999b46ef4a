"""Raster image loading for the image ingestion path.

Vision models accept a single still image per call, and not every model
understands every container.  This module turns an uploaded raster into
one :class:`~src.models.documents.RawContent` per visual page:

- PNG and JPEG pass through untouched (page 1).
- BMP and other single-frame rasters are re-encoded to PNG (page 1).
- Multi-frame TIFF is split frame by frame, each frame re-encoded to PNG
  with ``page_number = frame_index + 1``.
"""

from __future__ import annotations

import io
from typing import Iterator

import structlog
from PIL import Image, ImageSequence, UnidentifiedImageError

from src.models.documents import ContentType, RawContent
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

PNG_MIME = "image/png"

# Modes the PNG encoder writes directly; anything else goes through RGB.
_PNG_MODES = frozenset({"1", "L", "LA", "I", "P", "RGB", "RGBA"})


def encode_png(image: Image.Image) -> bytes:
    """Encode a Pillow image (or a single frame of one) as PNG bytes."""
    frame = image if image.mode in _PNG_MODES else image.convert("RGB")
    buffer = io.BytesIO()
    frame.save(buffer, format="PNG")
    return buffer.getvalue()


def split_tiff_frames(data: bytes) -> Iterator[RawContent]:
    """Yield each frame of a (possibly multi-frame) TIFF as a PNG page.

    Raises
    ------
    ExtractionError
        If *data* cannot be decoded as an image.
    """
    try:
        image = Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, OSError) as exc:
        raise ExtractionError(message=f"Unreadable TIFF image: {exc}") from exc

    with image:
        frame_count = 0
        for index, frame in enumerate(ImageSequence.Iterator(image)):
            frame_count += 1
            yield RawContent(
                image=encode_png(frame.copy()),
                image_mime_type=PNG_MIME,
                page_number=index + 1,
            )
        logger.debug("tiff_frames_split", frames=frame_count)


def load_image_contents(data: bytes, content_type: ContentType) -> list[RawContent]:
    """Return the vision-ready pages of an uploaded raster image.

    Raises
    ------
    ExtractionError
        If a raster that needs re-encoding cannot be decoded.
    """
    if content_type == ContentType.TIFF:
        return list(split_tiff_frames(data))

    if content_type in (ContentType.PNG, ContentType.JPEG):
        return [RawContent(image=data, image_mime_type=content_type.value, page_number=1)]

    try:
        with Image.open(io.BytesIO(data)) as image:
            png = encode_png(image)
    except (UnidentifiedImageError, OSError) as exc:
        raise ExtractionError(
            message=f"Unreadable {content_type.value} image: {exc}",
        ) from exc
    return [RawContent(image=png, image_mime_type=PNG_MIME, page_number=1)]
