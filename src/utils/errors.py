"""Custom exception hierarchy for chunkwright.

All application exceptions inherit from :class:`ChunkwrightError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai_embedding", "chromadb", "ollama") caused the
failure.

The hierarchy is organized by ingestion concern:

    ChunkwrightError  (base -- catch-all for any chunkwright error)
    +-- DocumentValidationError      (bad request: missing path / file name)
    |   +-- UnsupportedContentTypeError
    +-- ConversionError              (malformed JSON / XML / CSV / markup)
    +-- ExtractionError              (PDF / raster decoding)
    |   +-- VisionExtractionError    (vision model call failed)
    +-- EmbeddingError               (embedding call failed, not retryable)
    +-- VectorStoreError             (collection read / write failed)
    +-- RateLimitError               (provider capacity exceeded, retryable)
    +-- ProviderUnavailableError     (external service down / unreachable)
    +-- ConfigurationError           (startup / missing config)
    +-- PipelineError                (orchestration)
        +-- IngestionStageError      (a named ingestion stage failed)

Only :class:`RateLimitError` is treated as transient by the retry wrappers;
everything else surfaces on first occurrence.
"""

from __future__ import annotations


class ChunkwrightError(Exception):
    """Base exception for all chunkwright errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai_embedding] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Request validation errors
# ---------------------------------------------------------------------------

class DocumentValidationError(ChunkwrightError):
    """Raised when an ingestion request is rejected before any I/O happens."""

    def __init__(
        self,
        message: str = "Invalid ingestion request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedContentTypeError(DocumentValidationError):
    """Raised when a document's MIME type has no registered handler."""

    def __init__(
        self,
        message: str = "Unsupported content type",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Conversion / extraction errors
# ---------------------------------------------------------------------------

class ConversionError(ChunkwrightError):
    """Raised when a structured or markup document cannot be parsed."""

    def __init__(
        self,
        message: str = "Document conversion failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(ChunkwrightError):
    """Raised when a PDF or raster image cannot be decoded."""

    def __init__(
        self,
        message: str = "Content extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VisionExtractionError(ExtractionError):
    """Raised when the vision model fails to return text for an image."""

    def __init__(
        self,
        message: str = "Vision text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class EmbeddingError(ChunkwrightError):
    """Raised when the embedding service rejects a request."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorStoreError(ChunkwrightError):
    """Raised when a vector-store read, write or delete fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(ChunkwrightError):
    """Raised when a provider signals that its capacity is exhausted.

    The embedding and vision wrappers retry this error with a fixed
    back-off before surfacing it.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(ChunkwrightError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(ChunkwrightError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(ChunkwrightError):
    """Raised when ingestion orchestration fails."""

    def __init__(
        self,
        message: str = "Ingestion pipeline failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionStageError(PipelineError):
    """Raised when one stage of a document's ingestion fails.

    ``stage`` names the failing state (e.g. ``"enrich"``) and the original
    exception is available as ``__cause__``.  Stale records deleted before
    the failure are not restored.
    """

    def __init__(
        self,
        stage: str,
        message: str = "Ingestion stage failed",
        provider_name: str | None = None,
    ) -> None:
        self._stage = stage
        super().__init__(message=message, provider_name=provider_name)

    @property
    def stage(self) -> str:
        return self._stage
