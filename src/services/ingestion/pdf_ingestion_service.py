"""Ingestion of PDF documents.

Pages are streamed from :class:`PdfExtractor` and gathered into batches of
``batch_size`` raw units.  Within a batch, embedded images go to the
vision extractor concurrently; their text and the page's own text blocks
are then chunked under a ``Page: {n}\\n`` header, enriched and upserted
before the next batch is read.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

import structlog

from src.interfaces.model_lifecycle_provider import IModelLifecycleProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.documents import ContentType, RawContent
from src.models.records import TextRecord
from src.services.ingestion.chunker import DocumentChunker
from src.services.ingestion.image_text_extractor import ImageTextExtractor
from src.services.ingestion.ingestion_service import (
    DEFAULT_CONVERSATION_COLLECTION,
    DEFAULT_GLOBAL_COLLECTION,
    IngestionRun,
    IngestionService,
    IngestionStage,
)
from src.services.ingestion.record_enricher import RecordEnricher
from src.services.ingestion.source_processors.pdf_processor import PdfExtractor
from src.utils.concurrency import throttled_gather

logger = structlog.get_logger(logger_name=__name__)

PAGE_HEADER_TEMPLATE = "Page: {page}\n"


class PdfIngestionService(IngestionService):
    """Turns a PDF into page-tagged records of its text and image content."""

    SUPPORTED_TYPES = frozenset({ContentType.PDF})

    def __init__(
        self,
        enricher: RecordEnricher,
        vector_store: IVectorStoreProvider,
        chunker: DocumentChunker,
        image_extractor: ImageTextExtractor,
        lifecycle: IModelLifecycleProvider | None = None,
        pdf_extractor: PdfExtractor | None = None,
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
        self._chunker = chunker
        self._image_extractor = image_extractor
        self._pdf_extractor = pdf_extractor or PdfExtractor()

    async def _record_batches(self, run: IngestionRun) -> AsyncIterator[list[TextRecord]]:
        request = run.request
        source = request.content if request.content is not None else request.local_path or ""
        semaphore = asyncio.Semaphore(request.batch_size)

        run.stage = IngestionStage.EXTRACT
        pending: list[RawContent] = []
        async for content in self._pdf_extractor.iter_contents(source):
            pending.append(content)
            if len(pending) >= request.batch_size:
                records = await self._batch_records(run, pending, semaphore)
                pending = []
                if records:
                    yield records
                run.stage = IngestionStage.EXTRACT

        if pending:
            records = await self._batch_records(run, pending, semaphore)
            if records:
                yield records

    async def _batch_records(
        self,
        run: IngestionRun,
        contents: list[RawContent],
        semaphore: asyncio.Semaphore,
    ) -> list[TextRecord]:
        """Run vision on the batch's images, then chunk everything in order."""
        run.stage = IngestionStage.EXTRACT
        images = [c for c in contents if c.is_image]
        image_texts = await throttled_gather(
            [
                self._image_extractor.extract_text(c.image or b"", c.image_mime_type)
                for c in images
            ],
            semaphore=semaphore,
        )
        text_by_image = {id(c): text for c, text in zip(images, image_texts)}

        run.stage = IngestionStage.CHUNK
        records: list[TextRecord] = []
        for content in contents:
            text = text_by_image[id(content)] if content.is_image else content.text or ""
            header = PAGE_HEADER_TEMPLATE.format(page=content.page_number)
            records.extend(
                TextRecord(text=chunk, page_number=content.page_number)
                for chunk in self._chunker.chunk_text(text, header=header)
            )

        logger.debug(
            "pdf_batch_chunked",
            file_name=run.request.clean_file_name,
            units=len(contents),
            images=len(images),
            records=len(records),
        )
        return records
