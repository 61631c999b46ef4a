"""Ingestion of raster images (PNG, JPEG, BMP and multi-frame TIFF).

Every visual page (a single image, or one TIFF frame) is sent to the
vision model; the returned text is chunked under an
``Image: {name}\\nPage: {n}\\n`` header.
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
    batched,
    read_document_bytes,
)
from src.services.ingestion.record_enricher import RecordEnricher
from src.services.ingestion.source_processors.image_processor import load_image_contents
from src.utils.concurrency import throttled_gather

logger = structlog.get_logger(logger_name=__name__)

IMAGE_HEADER_TEMPLATE = "Image: {name}\nPage: {page}\n"


class ImageIngestionService(IngestionService):
    """Turns an uploaded image into records of its vision-extracted text."""

    SUPPORTED_TYPES = frozenset(
        {ContentType.PNG, ContentType.JPEG, ContentType.TIFF, ContentType.BMP}
    )

    def __init__(
        self,
        enricher: RecordEnricher,
        vector_store: IVectorStoreProvider,
        chunker: DocumentChunker,
        image_extractor: ImageTextExtractor,
        lifecycle: IModelLifecycleProvider | None = None,
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

    async def _record_batches(self, run: IngestionRun) -> AsyncIterator[list[TextRecord]]:
        request = run.request
        run.stage = IngestionStage.EXTRACT
        data = await read_document_bytes(request)
        pages = load_image_contents(data, run.content_type)
        logger.info("image_pages_loaded", file_name=request.clean_file_name, pages=len(pages))

        semaphore = asyncio.Semaphore(request.batch_size)
        for page_batch in batched(pages, request.batch_size):
            run.stage = IngestionStage.EXTRACT
            texts = await throttled_gather(
                [
                    self._image_extractor.extract_text(page.image or b"", page.image_mime_type)
                    for page in page_batch
                ],
                semaphore=semaphore,
            )

            run.stage = IngestionStage.CHUNK
            records: list[TextRecord] = []
            for page, text in zip(page_batch, texts):
                records.extend(self._page_records(request.clean_file_name, page, text))
            for batch in batched(records, request.batch_size):
                yield batch

    def _page_records(self, name: str, page: RawContent, text: str) -> list[TextRecord]:
        header = IMAGE_HEADER_TEMPLATE.format(name=name, page=page.page_number)
        return [
            TextRecord(text=chunk, page_number=page.page_number)
            for chunk in self._chunker.chunk_text(text, header=header)
        ]
