"""Vector store provider implementations.

ChromaDB is the sole vector store implementation. It stores text records and
their embeddings on disk (persistent) under CHROMADB_PERSIST_DIR
(default: ./data/chromadb).

To swap ChromaDB for another vector database (Qdrant, Pinecone, Weaviate),
create a new class implementing IVectorStoreProvider and register it in
src/providers/factory.py.
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
