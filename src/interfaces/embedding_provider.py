"""Abstract base class for text-embedding service providers.

Defines the contract for turning chunk text into fixed-length vectors.
Implementations may wrap a hosted OpenAI model, a local Ollama model behind
its OpenAI-compatible endpoint, or any other backend.  Retry policy is not
the provider's concern: :class:`~src.services.ingestion.embedding_generator.
EmbeddingGenerator` wraps providers and retries capacity errors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation:
#   OpenAIEmbeddingProvider -- any OpenAI-compatible embeddings endpoint
# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by record enrichment."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  Each
            inner list has length equal to :meth:`get_dimension`.

        Raises
        ------
        src.utils.errors.RateLimitError
            If the service reports that its capacity is exhausted.  Callers
            may retry.
        src.utils.errors.EmbeddingError
            For any other failure, including a vector of the wrong length.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Convenience wrapper around :meth:`embed`; raises the same errors.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Constant for the provider's lifetime and equal to the dimension of
        every vector already stored in the target collection.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"ollama_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured well enough to call."""
