"""Entry point for ingesting any supported document.

:class:`DocumentIngestionService` is a pure mapping from content type to
the orchestrator that handles it, plus the explicit document-delete path.
It performs no processing of its own.
"""

from __future__ import annotations

import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.documents import (
    ContentType,
    DocumentCollectionType,
    IngestionRequest,
    IngestionResult,
    clean_file_name,
)
from src.services.ingestion.ingestion_service import (
    DEFAULT_CONVERSATION_COLLECTION,
    DEFAULT_GLOBAL_COLLECTION,
    IngestionService,
    delete_document_records,
)
from src.utils.errors import DocumentValidationError, UnsupportedContentTypeError

logger = structlog.get_logger(logger_name=__name__)


class DocumentIngestionService:
    """Routes each request to the orchestrator registered for its content type.

    Parameters
    ----------
    services:
        Orchestrators to register; each claims its ``SUPPORTED_TYPES``.
        A content type claimed twice is a configuration error.
    vector_store:
        Gateway used by :meth:`delete_document` and :meth:`count`.
    """

    def __init__(
        self,
        services: list[IngestionService],
        vector_store: IVectorStoreProvider,
        global_collection: str = DEFAULT_GLOBAL_COLLECTION,
        conversation_collection: str = DEFAULT_CONVERSATION_COLLECTION,
    ) -> None:
        self._routes: dict[ContentType, IngestionService] = {}
        for service in services:
            for content_type in service.SUPPORTED_TYPES:
                if content_type in self._routes:
                    raise ValueError(f"Content type {content_type.value} registered twice")
                self._routes[content_type] = service
        self._vector_store = vector_store
        self._collections = {
            DocumentCollectionType.GLOBAL: global_collection,
            DocumentCollectionType.CONVERSATION: conversation_collection,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def supported_types(self) -> frozenset[ContentType]:
        return frozenset(self._routes)

    def service_for(self, content_type: ContentType) -> IngestionService:
        """Return the orchestrator for *content_type*.

        Raises
        ------
        UnsupportedContentTypeError
            If no orchestrator handles *content_type*.
        """
        service = self._routes.get(content_type)
        if service is None:
            raise UnsupportedContentTypeError(
                message=f"No ingestion pipeline for {content_type.value}",
            )
        return service

    async def ingest(self, request: IngestionRequest) -> IngestionResult:
        """Ingest one document with the orchestrator for its content type.

        Raises
        ------
        UnsupportedContentTypeError
            If the content type is unknown or has no orchestrator.
        """
        content_type = request.resolve_content_type()
        if content_type is None:
            raise UnsupportedContentTypeError(
                message=f"{request.file_name}: unsupported content type {request.content_type!r}",
            )
        return await self.service_for(content_type).ingest(request)

    async def delete_document(
        self,
        file_name: str,
        collection_type: DocumentCollectionType = DocumentCollectionType.GLOBAL,
        conversation_id: str | None = None,
    ) -> int:
        """Remove every record of one document and return how many were deleted.

        Raises
        ------
        DocumentValidationError
            If *file_name* is blank, or a conversation delete has no
            *conversation_id*.
        """
        source_document_id = clean_file_name(file_name).strip()
        if not source_document_id:
            raise DocumentValidationError(message="file_name is required")
        if collection_type == DocumentCollectionType.CONVERSATION and not conversation_id:
            raise DocumentValidationError(
                message="conversation_id is required to delete a conversation document",
            )

        collection = self._collections[collection_type]
        await self._vector_store.ensure_collection(collection)
        return await delete_document_records(
            self._vector_store,
            collection,
            source_document_id,
            conversation_id if collection_type == DocumentCollectionType.CONVERSATION else None,
        )

    async def count(self, collection_type: DocumentCollectionType = DocumentCollectionType.GLOBAL) -> int:
        """Return the number of records in the collection for *collection_type*."""
        return await self._vector_store.count(self._collections[collection_type])
