"""Public interface definitions for all external service providers.

Every external service the ingestion pipeline depends on is reached only
through the abstract base classes in this package.  Concrete adapters live
in ``src/providers/`` and are wired together by ``src/providers/factory.py``,
so tests can inject in-memory fakes without touching the services.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    IEmbeddingProvider         →  OpenAIEmbeddingProvider
    IVisionProvider            →  OpenAIVisionProvider
    IVectorStoreProvider       →  ChromaDBProvider
    IModelLifecycleProvider    →  OllamaModelLifecycleProvider,
                                  NullModelLifecycleProvider
"""

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.model_lifecycle_provider import IModelLifecycleProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.interfaces.vision_provider import IVisionProvider

__all__ = [
    "IEmbeddingProvider",
    "IModelLifecycleProvider",
    "IVectorStoreProvider",
    "IVisionProvider",
]
