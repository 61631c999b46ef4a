"""Ingestion of text-based documents: plain text, Markdown, HTML, JSON, XML and CSV."""

from __future__ import annotations

from typing import AsyncIterator

import structlog

from src.interfaces.model_lifecycle_provider import IModelLifecycleProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.documents import ContentType
from src.models.records import TextRecord
from src.services.ingestion.chunker import DocumentChunker
from src.services.ingestion.ingestion_service import (
    DEFAULT_CONVERSATION_COLLECTION,
    DEFAULT_GLOBAL_COLLECTION,
    IngestionRun,
    IngestionService,
    IngestionStage,
    batched,
    read_document_bytes,
)
from src.services.ingestion.record_enricher import RecordEnricher
from src.services.ingestion.source_processors.csv_processor import (
    DEFAULT_MAX_COLUMNS_PER_CHUNK,
    DEFAULT_MIN_COLUMNS_PER_CHUNK,
    CsvProcessor,
)
from src.services.ingestion.source_processors.json_processor import JsonProcessor
from src.services.ingestion.source_processors.text_processor import TextProcessor
from src.services.ingestion.source_processors.xml_processor import XmlProcessor

logger = structlog.get_logger(logger_name=__name__)


def decode_text(data: bytes) -> str:
    """Decode document bytes as UTF-8, dropping a BOM and replacing bad bytes."""
    return data.decode("utf-8-sig", errors="replace")


class TextFileIngestionService(IngestionService):
    """Converts a text document into records with the matching processor.

    Free text (plain, Markdown, HTML) is normalised and chunked without a
    header; JSON, XML and CSV are decomposed into path-addressed records.
    """

    SUPPORTED_TYPES = frozenset(
        {
            ContentType.PLAIN_TEXT,
            ContentType.MARKDOWN,
            ContentType.HTML,
            ContentType.JSON,
            ContentType.XML,
            ContentType.CSV,
        }
    )

    def __init__(
        self,
        enricher: RecordEnricher,
        vector_store: IVectorStoreProvider,
        chunker: DocumentChunker,
        lifecycle: IModelLifecycleProvider | None = None,
        csv_max_columns_per_chunk: int = DEFAULT_MAX_COLUMNS_PER_CHUNK,
        csv_min_columns_per_chunk: int = DEFAULT_MIN_COLUMNS_PER_CHUNK,
        global_collection: str = DEFAULT_GLOBAL_COLLECTION,
        conversation_collection: str = DEFAULT_CONVERSATION_COLLECTION,
    ) -> None:
        super().__init__(
            enricher,
            vector_store,
            lifecycle=lifecycle,
            global_collection=global_collection,
            conversation_collection=conversation_collection,
        )
        self._text_processor = TextProcessor(chunker)
        self._json_processor = JsonProcessor(chunker)
        self._xml_processor = XmlProcessor(chunker)
        self._csv_processor = CsvProcessor(
            chunker,
            max_columns_per_chunk=csv_max_columns_per_chunk,
            min_columns_per_chunk=csv_min_columns_per_chunk,
        )

    async def _record_batches(self, run: IngestionRun) -> AsyncIterator[list[TextRecord]]:
        run.stage = IngestionStage.EXTRACT
        content = decode_text(await read_document_bytes(run.request))

        run.stage = IngestionStage.CHUNK
        records = self.build_records(content, run.content_type, run.request.clean_file_name)
        logger.info(
            "text_document_chunked",
            file_name=run.request.clean_file_name,
            content_type=run.content_type.value,
            records=len(records),
        )

        for batch in batched(records, run.request.batch_size):
            yield batch

    def build_records(
        self,
        content: str,
        content_type: ContentType,
        file_name: str,
    ) -> list[TextRecord]:
        """Decompose *content* with the processor for *content_type*."""
        if content_type == ContentType.JSON:
            return list(self._json_processor.process(content, file_name))
        if content_type == ContentType.XML:
            return list(self._xml_processor.process(content, file_name))
        if content_type == ContentType.CSV:
            return list(self._csv_processor.process(content, file_name))
        return self._text_processor.process(content, content_type)
