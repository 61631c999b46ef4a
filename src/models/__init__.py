"""chunkwright domain models: re-exports all public model classes.

    - documents.py -- ingestion requests, extracted raw content, run results
    - records.py   -- persisted text records and their JSON / XML / CSV variants
"""

from __future__ import annotations

from src.models.documents import (
    ContentType,
    DocumentCollectionType,
    IngestionRequest,
    IngestionResult,
    RawContent,
    clean_file_name,
)
from src.models.records import (
    RECORD_TYPES,
    CsvTextRecord,
    JsonTextRecord,
    RecordScope,
    TextRecord,
    XmlTextRecord,
)

__all__ = [
    "RECORD_TYPES",
    "ContentType",
    "CsvTextRecord",
    "DocumentCollectionType",
    "IngestionRequest",
    "IngestionResult",
    "JsonTextRecord",
    "RawContent",
    "RecordScope",
    "TextRecord",
    "XmlTextRecord",
    "clean_file_name",
]
