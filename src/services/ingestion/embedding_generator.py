"""Embedding generation with rate-limit retry."""

from __future__ import annotations

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.retry import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
    is_rate_limited,
    retry_async,
)


class EmbeddingGenerator:
    """Calls an embedding provider, retrying only capacity errors.

    The provider enforces the vector dimension; terminal errors (already
    logged by the provider with the raw response) are re-raised at once.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    ) -> None:
        self._provider = provider
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay

    async def generate_embedding(self, text: str) -> list[float]:
        return await retry_async(
            lambda: self._provider.embed_single(text),
            is_retryable=is_rate_limited,
            max_attempts=self._max_attempts,
            delay_seconds=self._retry_delay,
            operation_name=f"{self._provider.get_provider_name()}.embed_single",
        )
