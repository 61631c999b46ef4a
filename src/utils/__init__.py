"""Utility modules for chunkwright.

- **errors** -- exception hierarchy rooted at ChunkwrightError; each
  ingestion concern raises its own subclass.
- **logging** -- structlog setup with a console/JSON dual renderer.
- **concurrency** -- semaphore-bounded ``asyncio.gather``.
- **retry** -- fixed-delay retry driven by a caller-supplied predicate.
"""

from src.utils.concurrency import throttled_gather
from src.utils.errors import (
    ChunkwrightError,
    ConfigurationError,
    ConversionError,
    DocumentValidationError,
    EmbeddingError,
    ExtractionError,
    IngestionStageError,
    PipelineError,
    ProviderUnavailableError,
    RateLimitError,
    UnsupportedContentTypeError,
    VectorStoreError,
    VisionExtractionError,
)
from src.utils.retry import is_rate_limited, retry_async

__all__ = [
    "ChunkwrightError",
    "ConfigurationError",
    "ConversionError",
    "DocumentValidationError",
    "EmbeddingError",
    "ExtractionError",
    "IngestionStageError",
    "PipelineError",
    "ProviderUnavailableError",
    "RateLimitError",
    "UnsupportedContentTypeError",
    "VectorStoreError",
    "VisionExtractionError",
    "is_rate_limited",
    "retry_async",
    "throttled_gather",
]
