"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Works against hosted OpenAI and against a local Ollama server, which
exposes the same API under ``{OLLAMA_BASE_URL}/v1``; the backend is picked
from ``Settings.inference_backend``.
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Every request asks for ``Settings.embedding_dimension`` dimensions and
    every returned vector is checked against it, so a misconfigured model
    fails loudly instead of writing vectors the collection cannot compare.

    Parameters
    ----------
    settings:
        Backend, model, dimension and endpoint configuration.
    client:
        Optional pre-built ``openai.AsyncOpenAI`` (used by tests).
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._model = settings.embedding_model
        self._dimension = settings.embedding_dimension
        self._api_key = settings.inference_api_key()

        if client is None:
            # base_url is only set when one is configured.
            client_kwargs: dict = {"api_key": self._api_key or "unset"}
            base_url = settings.inference_base_url()
            if base_url:
                client_kwargs["base_url"] = base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client
        self._provider_label = f"{settings.inference_backend}_embedding"

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Automatically splits into batches of 2048 if the input exceeds the
        per-call limit.
        """
        if not texts:
            return []

        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
            batch = texts[start : start + _OPENAI_BATCH_LIMIT]
            try:
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self._model,
                    dimensions=self._dimension,
                )
            except openai.RateLimitError as exc:
                raise RateLimitError(
                    message=f"{self._provider_label} rate limited: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            except openai.APIError as exc:
                logger.error(
                    "embedding_api_error",
                    provider=self._provider_label,
                    model=self._model,
                    status=getattr(exc, "status_code", None),
                    body=exc.body,
                )
                raise EmbeddingError(
                    message=f"{self._provider_label} API error: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

            batch_embeddings = [list(item.embedding) for item in response.data]
            self._check_vectors(batch, batch_embeddings)
            all_embeddings.extend(batch_embeddings)
            logger.debug(
                "embedding_batch",
                model=self._model,
                provider=self._provider_label,
                batch_size=len(batch),
                tokens=response.usage.total_tokens if response.usage else None,
            )
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if a model and credentials (or a local backend) are set."""
        return bool(self._model) and bool(self._api_key)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_vectors(self, batch: list[str], vectors: list[list[float]]) -> None:
        if len(vectors) != len(batch):
            raise EmbeddingError(
                message=f"Expected {len(batch)} embeddings, got {len(vectors)}",
                provider_name=self.get_provider_name(),
            )
        for vector in vectors:
            if len(vector) != self._dimension:
                raise EmbeddingError(
                    message=(
                        f"Model {self._model} returned a {len(vector)}-dimension vector; "
                        f"expected {self._dimension}"
                    ),
                    provider_name=self.get_provider_name(),
                )
