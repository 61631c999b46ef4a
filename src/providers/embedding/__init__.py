"""Embedding provider implementations.

Embeddings convert chunk text into fixed-length vectors stored alongside the
records in ChromaDB.

One implementation of IEmbeddingProvider:
    OpenAIEmbeddingProvider -- any OpenAI-compatible embeddings endpoint.
       With INFERENCE_BACKEND=ollama it talks to a local Ollama server's
       /v1 API (default model mxbai-embed-large, 1024 dims); with
       INFERENCE_BACKEND=openai it targets the hosted API or OPENAI_BASE_URL.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
