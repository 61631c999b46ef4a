"""Construct providers and the ingestion pipeline from :class:`Settings`.

This is the composition root: the only place that knows which concrete
adapter sits behind each interface.  Services receive everything through
their constructors.
"""

from __future__ import annotations

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.model_lifecycle_provider import IModelLifecycleProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.interfaces.vision_provider import IVisionProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.lifecycle.ollama_model_lifecycle_provider import (
    NullModelLifecycleProvider,
    OllamaModelLifecycleProvider,
)
from src.providers.vision.openai_vision_provider import OpenAIVisionProvider
from src.services.ingestion.chunker import DocumentChunker
from src.services.ingestion.document_ingestion_service import DocumentIngestionService
from src.services.ingestion.embedding_generator import EmbeddingGenerator
from src.services.ingestion.image_ingestion_service import ImageIngestionService
from src.services.ingestion.image_text_extractor import ImageTextExtractor
from src.services.ingestion.pdf_ingestion_service import PdfIngestionService
from src.services.ingestion.record_enricher import RecordEnricher
from src.services.ingestion.text_ingestion_service import TextFileIngestionService
from src.utils.errors import ConfigurationError

_BACKENDS = ("ollama", "openai")


def _check_backend(settings: Settings) -> None:
    if settings.inference_backend not in _BACKENDS:
        raise ConfigurationError(
            message=(
                f"Unknown INFERENCE_BACKEND {settings.inference_backend!r}; "
                f"expected one of {', '.join(_BACKENDS)}"
            ),
        )
    if settings.inference_backend == "openai" and not settings.openai_api_key:
        raise ConfigurationError(
            message="INFERENCE_BACKEND=openai requires OPENAI_API_KEY",
            provider_name="openai",
        )


def build_embedding_provider(settings: Settings) -> IEmbeddingProvider:
    _check_backend(settings)
    return OpenAIEmbeddingProvider(settings=settings)


def build_vision_provider(settings: Settings) -> IVisionProvider:
    _check_backend(settings)
    return OpenAIVisionProvider(settings=settings)


def build_vector_store(settings: Settings) -> IVectorStoreProvider:
    from src.providers.vector_store.chromadb_provider import ChromaDBProvider

    return ChromaDBProvider(persist_directory=settings.chromadb_persist_dir)


def build_lifecycle_provider(settings: Settings) -> IModelLifecycleProvider:
    """Ollama models can be unloaded; hosted backends get the no-op hooks."""
    if settings.inference_backend == "ollama":
        return OllamaModelLifecycleProvider(settings=settings)
    return NullModelLifecycleProvider()


def build_ingestion_service(
    settings: Settings,
    *,
    embedding_provider: IEmbeddingProvider | None = None,
    vision_provider: IVisionProvider | None = None,
    vector_store: IVectorStoreProvider | None = None,
    lifecycle: IModelLifecycleProvider | None = None,
    chunker: DocumentChunker | None = None,
) -> DocumentIngestionService:
    """Wire every orchestrator behind one :class:`DocumentIngestionService`.

    Any provider or chunker passed explicitly replaces the one built from
    *settings*.

    Raises
    ------
    ConfigurationError
        If a provider is misconfigured or the tokenizer cannot be loaded.
    """
    embedding_provider = embedding_provider or build_embedding_provider(settings)
    vision_provider = vision_provider or build_vision_provider(settings)
    vector_store = vector_store or build_vector_store(settings)
    lifecycle = lifecycle or build_lifecycle_provider(settings)

    chunker = chunker or DocumentChunker(
        max_tokens=settings.chunk_max_tokens,
        encoding_name=settings.tokenizer_encoding,
    )
    enricher = RecordEnricher(
        EmbeddingGenerator(
            embedding_provider,
            max_attempts=settings.retry_max_attempts,
            retry_delay=settings.retry_delay_seconds,
        ),
        chunker,
    )
    image_extractor = ImageTextExtractor(
        vision_provider,
        max_attempts=settings.retry_max_attempts,
        retry_delay=settings.retry_delay_seconds,
    )
    collections = {
        "global_collection": settings.global_collection,
        "conversation_collection": settings.conversation_collection,
    }

    services = [
        TextFileIngestionService(
            enricher,
            vector_store,
            chunker,
            lifecycle=lifecycle,
            csv_max_columns_per_chunk=settings.csv_max_columns_per_chunk,
            csv_min_columns_per_chunk=settings.csv_min_columns_per_chunk,
            **collections,
        ),
        ImageIngestionService(
            enricher,
            vector_store,
            chunker,
            image_extractor,
            lifecycle=lifecycle,
            **collections,
        ),
        PdfIngestionService(
            enricher,
            vector_store,
            chunker,
            image_extractor,
            lifecycle=lifecycle,
            **collections,
        ),
    ]
    return DocumentIngestionService(services, vector_store, **collections)
