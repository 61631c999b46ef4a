"""Record enrichment: keys, provenance, token counts and embeddings.

Format processors produce records carrying only what they know: the text
and, for structured formats, a path into the source.  The enricher fills
everything else through :meth:`TextRecord.fill_missing`, so a value a
processor already set is never replaced.

Provenance follows one scheme for every format::

    reference_description = "report.pdf#page=3"
    reference_link        = "file://report.pdf#page=3"
    source_document_id    = "report.pdf"

The ``#page=`` suffix is present only for records with a page number.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Callable

import structlog

from src.models.documents import FILE_URI_PREFIX, clean_file_name
from src.models.records import RecordScope, TextRecord
from src.services.ingestion.chunker import DocumentChunker
from src.services.ingestion.embedding_generator import EmbeddingGenerator
from src.utils.concurrency import throttled_gather

logger = structlog.get_logger(logger_name=__name__)


def page_locator(file_name: str, page_number: int | None) -> str:
    """Return ``clean_name`` or ``clean_name#page=n``."""
    clean = clean_file_name(file_name)
    if page_number is None:
        return clean
    return f"{clean}#page={page_number}"


class RecordEnricher:
    """Completes records so they are ready for upsert.

    Parameters
    ----------
    embedding_generator:
        Retrying embedding wrapper.
    chunker:
        Provides the token count stored on each record.
    key_generator:
        Zero-argument callable returning a unique key (default ``uuid4``).
    """

    def __init__(
        self,
        embedding_generator: EmbeddingGenerator,
        chunker: DocumentChunker,
        key_generator: Callable[[], object] = uuid.uuid4,
    ) -> None:
        self._embeddings = embedding_generator
        self._chunker = chunker
        self._key_generator = key_generator

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def enrich(
        self,
        record: TextRecord,
        file_name: str,
        scope: RecordScope | None = None,
    ) -> TextRecord:
        """Return a copy of *record* with every absent assign-once field set."""
        scope = scope or RecordScope()
        locator = page_locator(file_name, record.page_number)

        record = record.fill_missing(
            key=str(self._key_generator()) if record.key is None else None,
            reference_description=locator,
            reference_link=FILE_URI_PREFIX + locator,
            source_document_id=clean_file_name(file_name),
            token_count=self._chunker.count_tokens(record.text),
            category=scope.category,
            conversation_id=scope.conversation_id,
        )
        if record.text_embedding is None:
            embedding = await self._embeddings.generate_embedding(record.text)
            record = record.fill_missing(text_embedding=embedding)
        return record

    async def enrich_batch(
        self,
        records: list[TextRecord],
        file_name: str,
        scope: RecordScope | None = None,
        batch_size: int = 10,
    ) -> list[TextRecord]:
        """Enrich *records* slice by slice, concurrently within a slice.

        Returns the enriched records in input order.  The first failure in a
        slice propagates.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        semaphore = asyncio.Semaphore(batch_size)
        enriched: list[TextRecord] = []
        for start in range(0, len(records), batch_size):
            batch = records[start:start + batch_size]
            enriched.extend(
                await throttled_gather(
                    [self.enrich(record, file_name, scope) for record in batch],
                    semaphore=semaphore,
                )
            )
            logger.debug(
                "enrichment_batch_complete",
                file_name=clean_file_name(file_name),
                done=len(enriched),
                total=len(records),
            )
        return enriched
