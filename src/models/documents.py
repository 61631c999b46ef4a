"""Ingestion request and extraction models.

:class:`IngestionRequest` describes one document to ingest,
:class:`RawContent` is the ephemeral unit produced by extractors (a text
block or an image, tagged with its page), and :class:`IngestionResult`
summarises a finished run.  All models are frozen.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.config.settings import default_batch_size
from src.models.records import RecordScope

FILE_URI_PREFIX = "file://"


# ---------------------------------------------------------------------------
# Content types
# ---------------------------------------------------------------------------
class ContentType(str, Enum):
    """Closed set of MIME types the ingestion pipeline can handle."""

    PLAIN_TEXT = "text/plain"
    MARKDOWN = "text/markdown"
    HTML = "text/html"
    JSON = "application/json"
    XML = "text/xml"
    CSV = "text/csv"
    PDF = "application/pdf"
    PNG = "image/png"
    JPEG = "image/jpeg"
    TIFF = "image/tiff"
    BMP = "image/bmp"

    @property
    def is_image(self) -> bool:
        return self.value.startswith("image/")

    @classmethod
    def from_mime_type(cls, mime_type: str) -> ContentType | None:
        """Resolve a declared MIME type, ignoring parameters and aliases."""
        normalized = mime_type.split(";", 1)[0].strip().lower()
        normalized = _MIME_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return None

    @classmethod
    def from_file_name(cls, file_name: str) -> ContentType | None:
        """Resolve a content type from a file name's extension."""
        suffix = PurePosixPath(clean_file_name(file_name)).suffix.lower()
        return _EXTENSION_TYPES.get(suffix)


_MIME_ALIASES: dict[str, str] = {
    "application/xml": "text/xml",
    "text/x-markdown": "text/markdown",
    "image/jpg": "image/jpeg",
    "image/x-ms-bmp": "image/bmp",
    "application/csv": "text/csv",
}

_EXTENSION_TYPES: dict[str, ContentType] = {
    ".txt": ContentType.PLAIN_TEXT,
    ".md": ContentType.MARKDOWN,
    ".markdown": ContentType.MARKDOWN,
    ".html": ContentType.HTML,
    ".htm": ContentType.HTML,
    ".json": ContentType.JSON,
    ".xml": ContentType.XML,
    ".csv": ContentType.CSV,
    ".pdf": ContentType.PDF,
    ".png": ContentType.PNG,
    ".jpg": ContentType.JPEG,
    ".jpeg": ContentType.JPEG,
    ".tif": ContentType.TIFF,
    ".tiff": ContentType.TIFF,
    ".bmp": ContentType.BMP,
}


def clean_file_name(file_name: str) -> str:
    """Strip a leading ``file://`` scheme from a declared file name."""
    if file_name.startswith(FILE_URI_PREFIX):
        return file_name[len(FILE_URI_PREFIX):]
    return file_name


class DocumentCollectionType(str, Enum):
    """Which vector collection a document's records are written to."""

    GLOBAL = "global"
    CONVERSATION = "conversation"


# ---------------------------------------------------------------------------
# IngestionRequest: the document descriptor handed to an orchestrator.
# ---------------------------------------------------------------------------
class IngestionRequest(BaseModel):
    """One document to ingest, read from ``local_path`` or ``content``.

    ``metadata`` is free-form; ``category_id`` and ``conversation_id`` are
    copied onto every record when present.
    """

    model_config = ConfigDict(frozen=True)

    file_name: str = Field(default="", description="Declared file name, optionally file://-prefixed.")
    local_path: str | None = Field(default=None, description="Path of the document on local disk.")
    content: bytes | None = Field(default=None, description="In-memory document bytes.")
    content_type: str | None = Field(
        default=None,
        description="Declared MIME type; derived from the file extension when omitted.",
    )
    collection_type: DocumentCollectionType = Field(default=DocumentCollectionType.GLOBAL)
    batch_size: int = Field(default_factory=default_batch_size, ge=1)
    between_batch_delay: float = Field(
        default=0.0, ge=0.0, description="Seconds to wait between upsert batches."
    )
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def clean_file_name(self) -> str:
        return clean_file_name(self.file_name)

    @property
    def category(self) -> str | None:
        return self.metadata.get("category_id") or None

    @property
    def conversation_id(self) -> str | None:
        return self.metadata.get("conversation_id") or None

    @property
    def scope(self) -> RecordScope:
        return RecordScope(category=self.category, conversation_id=self.conversation_id)

    def resolve_content_type(self) -> ContentType | None:
        """Declared MIME type first, then the file extension."""
        if self.content_type:
            return ContentType.from_mime_type(self.content_type)
        return ContentType.from_file_name(self.file_name)


# ---------------------------------------------------------------------------
# RawContent: one extracted unit, text or image, with its page.
# ---------------------------------------------------------------------------
class RawContent(BaseModel):
    """A text block or an image extracted from a document page."""

    model_config = ConfigDict(frozen=True)

    text: str | None = None
    image: bytes | None = None
    image_mime_type: str = "image/png"
    page_number: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_exactly_one_payload(self) -> RawContent:
        if (self.text is None) == (self.image is None):
            raise ValueError("RawContent needs exactly one of text or image")
        return self

    @property
    def is_image(self) -> bool:
        return self.image is not None


# ---------------------------------------------------------------------------
# IngestionResult: output of one document's pipeline run.
# ---------------------------------------------------------------------------
class IngestionResult(BaseModel):
    """Summary of a single document ingestion run."""

    model_config = ConfigDict(frozen=True)

    source_document_id: str = Field(description="Exact provenance key of the ingested document.")
    collection_name: str = Field(description="Collection the records were written to.")
    content_type: str = Field(description="MIME type the document was processed as.")
    records_deleted: int = Field(default=0, ge=0, description="Stale records removed before insert.")
    records_upserted: int = Field(default=0, ge=0, description="Records written by this run.")
    total_tokens: int = Field(default=0, ge=0, description="Sum of token counts over written records.")
    batches: int = Field(default=0, ge=0, description="Number of upsert batches.")
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds for the run.")
