"""Persisted text records and their structured-data variants.

A :class:`TextRecord` is the unit written to the vector store.  Format
handlers build records with whatever they know (text, and for JSON / XML /
CSV a path into the source structure); :class:`RecordEnricher` then fills
the remaining provenance, token count and embedding.

Records are frozen.  Shared enrichment never overwrites a value a
format-specific factory already supplied: every back-fill goes through
:meth:`TextRecord.fill_missing`, which only touches fields that are still
``None`` and returns a new copy.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# TextRecord: the base persisted unit.
# ---------------------------------------------------------------------------
class TextRecord(BaseModel):
    """A chunk of document text, its provenance and (once enriched) its embedding."""

    model_config = ConfigDict(frozen=True)

    # Fields that may be filled after construction, each at most once.
    ASSIGN_ONCE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {
            "key",
            "reference_description",
            "reference_link",
            "source_document_id",
            "text_embedding",
            "token_count",
            "category",
            "conversation_id",
        }
    )

    key: str | None = Field(default=None, description="Unique key within the collection.")
    text: str = Field(description="Chunk content as embedded and returned to readers.")
    reference_description: str | None = Field(
        default=None,
        description='Human-readable locator, e.g. "report.pdf#page=3".',
    )
    reference_link: str | None = Field(
        default=None,
        description='Canonical file:// locator, e.g. "file://report.pdf#page=3".',
    )
    source_document_id: str | None = Field(
        default=None,
        description="Exact provenance key of the source document (its clean file name).",
    )
    text_embedding: list[float] | None = Field(default=None, description="Embedding vector.")
    token_count: int | None = Field(default=None, ge=0, description="Tokens in ``text``.")
    page_number: int | None = Field(default=None, ge=1, description="1-based page for paginated sources.")
    created_at: datetime = Field(default_factory=_utcnow)
    category: str | None = Field(default=None, description="Category id for global documents.")
    conversation_id: str | None = Field(
        default=None, description="Owning conversation for conversation-scoped documents."
    )

    def fill_missing(self, **values: Any) -> TextRecord:
        """Return a copy with each absent assign-once field set from *values*.

        Fields that already hold a value, and ``None`` entries in *values*,
        are left alone.

        Raises
        ------
        ValueError
            If a name in *values* is not an assign-once field.
        """
        unknown = set(values) - self.ASSIGN_ONCE_FIELDS
        if unknown:
            raise ValueError(f"Not assign-once fields: {sorted(unknown)}")
        update = {
            name: value
            for name, value in values.items()
            if value is not None and getattr(self, name) is None
        }
        if not update:
            return self
        return self.model_copy(update=update)

    @property
    def is_enriched(self) -> bool:
        return all(
            getattr(self, name) is not None
            for name in ("key", "reference_description", "reference_link", "text_embedding", "token_count")
        )


# ---------------------------------------------------------------------------
# Structured-data variants: add a path into the source structure.
# ---------------------------------------------------------------------------
class JsonTextRecord(TextRecord):
    """A scalar leaf of a JSON document."""

    json_path: str = Field(description='Colon / bracket path, e.g. "orders[0]:total".')
    node_type: str = Field(default="value")
    parent_info: str = Field(description='Enclosing container: "object", "array" or "root".')


class XmlTextRecord(TextRecord):
    """An attribute or leaf-element text of an XML document."""

    xml_path: str = Field(description='Slash path, e.g. "/catalog/book[2]/@id".')
    node_type: str = Field(description='"attribute" or "text".')
    parent_info: str = Field(default="element")


class CsvTextRecord(TextRecord):
    """A CSV row, a column group of a wide row, or the file summary."""

    csv_path: str = Field(description='e.g. "sales.csv:row:4" or "sales.csv:row:4:columns:1-10".')
    node_type: str = Field(description='"Row", "SubRow" or "Summary".')
    parent_info: str = Field(description='"table" for rows and the summary, "row:{n}" for sub-rows.')


RECORD_TYPES: dict[str, type[TextRecord]] = {
    cls.__name__: cls for cls in (TextRecord, JsonTextRecord, XmlTextRecord, CsvTextRecord)
}


class RecordScope(BaseModel):
    """Ownership values copied onto every record of one document."""

    model_config = ConfigDict(frozen=True)

    category: str | None = Field(default=None, description="Category id for global documents.")
    conversation_id: str | None = Field(default=None, description="Owning conversation id.")
