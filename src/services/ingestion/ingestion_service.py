"""Shared orchestration for every document ingestion pipeline.

Each document moves through a fixed sequence of stages::

    VALIDATE -> ENSURE_COLLECTION -> DELETE_STALE -> EXTRACT -> CHUNK
             -> ENRICH -> UPSERT -> RELEASE_MODELS -> DONE

:class:`IngestionService` owns everything except EXTRACT and CHUNK, which
the per-format subclasses implement as an async generator of record
batches (:meth:`IngestionService._record_batches`).  ENRICH and UPSERT run
once per yielded batch, so a long PDF is embedded and written as it is
read instead of being held in memory whole.

Failure semantics:

- Validation errors are raised unchanged, before any I/O.
- Any later failure aborts the document and is raised as
  :class:`~src.utils.errors.IngestionStageError` naming the stage, chained
  to the cause.  Stale records already deleted stay deleted: callers retry
  the whole document.
- ``asyncio.CancelledError`` is never wrapped.

All dependencies are injected via constructor, so providers can be swapped
(e.g. Ollama -> OpenAI, ChromaDB -> an in-memory fake) without changing
this class.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, ClassVar, Iterator, Sequence, TypeVar

import structlog

from src.interfaces.model_lifecycle_provider import IModelLifecycleProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.documents import (
    ContentType,
    DocumentCollectionType,
    IngestionRequest,
    IngestionResult,
)
from src.models.records import TextRecord
from src.services.ingestion.record_enricher import RecordEnricher
from src.utils.errors import (
    DocumentValidationError,
    IngestionStageError,
    PipelineError,
    UnsupportedContentTypeError,
)

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

DEFAULT_GLOBAL_COLLECTION = "global_documents"
DEFAULT_CONVERSATION_COLLECTION = "conversation_documents"


class IngestionStage(str, Enum):
    """Pipeline stages, in execution order."""

    VALIDATE = "validate"
    ENSURE_COLLECTION = "ensure_collection"
    DELETE_STALE = "delete_stale"
    EXTRACT = "extract"
    CHUNK = "chunk"
    ENRICH = "enrich"
    UPSERT = "upsert"
    RELEASE_MODELS = "release_models"
    DONE = "done"


@dataclass
class IngestionRun:
    """Mutable progress of one document through the pipeline."""

    request: IngestionRequest
    content_type: ContentType
    collection_name: str
    stage: IngestionStage = IngestionStage.VALIDATE
    records_deleted: int = 0
    records_upserted: int = 0
    total_tokens: int = 0
    batches: int = 0


# ------------------------------------------------------------------
# Helpers shared by the orchestrators and the dispatcher
# ------------------------------------------------------------------


def batched(items: Sequence[_T], size: int) -> Iterator[list[_T]]:
    """Yield consecutive slices of *items* of at most *size* elements."""
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


async def read_document_bytes(request: IngestionRequest) -> bytes:
    """Return the request's in-memory content or read it from disk."""
    if request.content is not None:
        return request.content
    return await asyncio.to_thread(Path(request.local_path or "").read_bytes)


def stale_record_filter(source_document_id: str, conversation_id: str | None = None) -> dict[str, str]:
    """Exact-match filter selecting one document's records."""
    where = {"source_document_id": source_document_id}
    if conversation_id:
        where["conversation_id"] = conversation_id
    return where


async def delete_document_records(
    vector_store: IVectorStoreProvider,
    collection_name: str,
    source_document_id: str,
    conversation_id: str | None = None,
) -> int:
    """Delete every record of one document and return how many were removed."""
    where = stale_record_filter(source_document_id, conversation_id)
    existing = await vector_store.get_records(collection_name, where)
    keys = [record.key for record in existing if record.key]
    if not keys:
        return 0
    deleted = await vector_store.delete_records(collection_name, keys)
    logger.info(
        "document_records_deleted",
        collection=collection_name,
        source_document_id=source_document_id,
        conversation_id=conversation_id,
        deleted=deleted,
    )
    return deleted


# ------------------------------------------------------------------
# Orchestrator base
# ------------------------------------------------------------------


class IngestionService(ABC):
    """Runs one document through validate -> ... -> release models.

    Parameters
    ----------
    enricher:
        Fills keys, provenance, token counts and embeddings.
    vector_store:
        Write gateway for the target collections.
    lifecycle:
        Optional model lifecycle hooks called after a successful run.
    global_collection / conversation_collection:
        Collection names for the two :class:`DocumentCollectionType` values.
    """

    SUPPORTED_TYPES: ClassVar[frozenset[ContentType]] = frozenset()

    def __init__(
        self,
        enricher: RecordEnricher,
        vector_store: IVectorStoreProvider,
        lifecycle: IModelLifecycleProvider | None = None,
        global_collection: str = DEFAULT_GLOBAL_COLLECTION,
        conversation_collection: str = DEFAULT_CONVERSATION_COLLECTION,
    ) -> None:
        self._enricher = enricher
        self._vector_store = vector_store
        self._lifecycle = lifecycle
        self._collections = {
            DocumentCollectionType.GLOBAL: global_collection,
            DocumentCollectionType.CONVERSATION: conversation_collection,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def collection_for(self, collection_type: DocumentCollectionType) -> str:
        return self._collections[collection_type]

    def validate(self, request: IngestionRequest) -> ContentType:
        """Check *request* without touching disk or the store.

        Returns
        -------
        ContentType
            The resolved content type.

        Raises
        ------
        DocumentValidationError
            If the file name or source is missing, or a conversation
            document has no conversation id.
        UnsupportedContentTypeError
            If the content type is unknown or not handled by this service.
        """
        if not request.clean_file_name.strip():
            raise DocumentValidationError(message="file_name is required")
        if request.content is None and not (request.local_path or "").strip():
            raise DocumentValidationError(
                message=f"{request.file_name}: either local_path or content is required",
            )
        if (
            request.collection_type == DocumentCollectionType.CONVERSATION
            and not request.conversation_id
        ):
            raise DocumentValidationError(
                message=f"{request.file_name}: conversation documents need metadata.conversation_id",
            )

        content_type = request.resolve_content_type()
        if content_type is None:
            raise UnsupportedContentTypeError(
                message=f"{request.file_name}: unsupported content type {request.content_type!r}",
            )
        if content_type not in self.SUPPORTED_TYPES:
            raise UnsupportedContentTypeError(
                message=f"{type(self).__name__} cannot ingest {content_type.value}",
            )
        return content_type

    async def ingest(self, request: IngestionRequest) -> IngestionResult:
        """Replace the stored records of one document with freshly built ones.

        Raises
        ------
        DocumentValidationError
            Raised as-is, before any I/O.
        IngestionStageError
            If any later stage fails; ``__cause__`` holds the original error.
        """
        start = time.monotonic()
        content_type = self.validate(request)
        run = IngestionRun(
            request=request,
            content_type=content_type,
            collection_name=self.collection_for(request.collection_type),
        )
        logger.info(
            "ingestion_started",
            file_name=request.clean_file_name,
            content_type=content_type.value,
            collection=run.collection_name,
            batch_size=request.batch_size,
        )

        try:
            run.stage = IngestionStage.ENSURE_COLLECTION
            await self._vector_store.ensure_collection(run.collection_name)

            run.stage = IngestionStage.DELETE_STALE
            run.records_deleted = await delete_document_records(
                self._vector_store,
                run.collection_name,
                request.clean_file_name,
                request.conversation_id
                if request.collection_type == DocumentCollectionType.CONVERSATION
                else None,
            )

            run.stage = IngestionStage.EXTRACT
            async for batch in self._record_batches(run):
                if batch:
                    await self._enrich_and_upsert(run, batch)

            run.stage = IngestionStage.RELEASE_MODELS
            await self._release_models()
        except Exception as exc:
            logger.error(
                "ingestion_stage_failed",
                file_name=request.clean_file_name,
                stage=run.stage.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise IngestionStageError(
                stage=run.stage.value,
                message=f"Ingestion of {request.clean_file_name} failed at {run.stage.value}: {exc}",
                provider_name=getattr(exc, "provider_name", None),
            ) from exc

        run.stage = IngestionStage.DONE
        elapsed = time.monotonic() - start
        result = IngestionResult(
            source_document_id=request.clean_file_name,
            collection_name=run.collection_name,
            content_type=content_type.value,
            records_deleted=run.records_deleted,
            records_upserted=run.records_upserted,
            total_tokens=run.total_tokens,
            batches=run.batches,
            ingestion_time=round(elapsed, 2),
        )
        logger.info(
            "ingestion_complete",
            file_name=request.clean_file_name,
            records=result.records_upserted,
            deleted=result.records_deleted,
            tokens=result.total_tokens,
            batches=result.batches,
            time_s=result.ingestion_time,
        )
        return result

    # ------------------------------------------------------------------
    # Subclass hook
    # ------------------------------------------------------------------

    @abstractmethod
    def _record_batches(self, run: IngestionRun) -> AsyncIterator[list[TextRecord]]:
        """Extract and chunk the document, yielding unenriched record batches.

        Implementations set ``run.stage`` to EXTRACT or CHUNK as they work so
        a failure is attributed to the right stage.
        """

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _enrich_and_upsert(self, run: IngestionRun, records: list[TextRecord]) -> None:
        request = run.request

        run.stage = IngestionStage.ENRICH
        enriched = await self._enricher.enrich_batch(
            records,
            request.file_name,
            request.scope,
            batch_size=request.batch_size,
        )

        run.stage = IngestionStage.UPSERT
        incomplete = sum(1 for record in enriched if not record.is_enriched)
        if incomplete:
            raise PipelineError(
                message=f"{incomplete} of {len(enriched)} records reached upsert without "
                "a key, provenance, token count or embedding",
            )
        if run.batches and request.between_batch_delay > 0:
            await asyncio.sleep(request.between_batch_delay)
        written = await self._vector_store.upsert_records(run.collection_name, enriched)

        run.batches += 1
        run.records_upserted += written
        run.total_tokens += sum(record.token_count or 0 for record in enriched)
        logger.debug(
            "ingestion_batch_upserted",
            file_name=request.clean_file_name,
            batch=run.batches,
            records=written,
        )
        run.stage = IngestionStage.EXTRACT

    async def _release_models(self) -> None:
        """Ask the inference server to unload both models; failures only warn."""
        if self._lifecycle is None:
            return
        outcomes = await asyncio.gather(
            self._lifecycle.unload_vision_model(),
            self._lifecycle.unload_embedding_model(),
            return_exceptions=True,
        )
        for model, outcome in zip(("vision", "embedding"), outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(
                    "model_release_failed",
                    model=model,
                    provider=self._lifecycle.get_provider_name(),
                    error=str(outcome),
                )
