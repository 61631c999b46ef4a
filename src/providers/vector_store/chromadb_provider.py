"""ChromaDB vector store provider adapter.

Wraps `chromadb.PersistentClient` to implement :class:`IVectorStoreProvider`.
Collections use cosine distance.  Runs in-process with no
external service required.

Records are stored as ``id = record.key``, ``document = record.text``,
``embedding = record.text_embedding``; every other populated field goes into
the metadata together with a ``record_type`` tag so that reads restore the
right :class:`~src.models.records.TextRecord` subtype.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any

# Telemetry must be off before chromadb is imported: its bundled PostHog
# client breaks against newer posthog releases ("capture() takes 1 positional
# argument but 3 were given").  The env var, the posthog flag and the client
# Settings below each cover a different chromadb version.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.records import RECORD_TYPES, TextRecord
from src.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_UPSERT_BATCH_SIZE = 500
# Page size for reads, below SQLite's bind-parameter limit.
_PAGE_SIZE = 5000
_RECORD_TYPE_KEY = "record_type"
_NON_METADATA_FIELDS = {"key", "text", "text_embedding"}


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Records always arrive with pre-computed embeddings, so ChromaDB's
    built-in embedding is never invoked.  Without this, ChromaDB downloads
    and loads the default all-MiniLM-L6-v2 ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "chunkwright uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    One provider serves any number of named collections; collection handles
    are opened lazily and cached.
    """

    def __init__(self, persist_directory: str = "./data/chromadb") -> None:
        self._persist_directory = persist_directory
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collections: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def ensure_collection(self, collection_name: str) -> None:
        try:
            self._collection(collection_name)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB could not open collection {collection_name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def get_records(
        self,
        collection_name: str,
        where: dict[str, str],
    ) -> list[TextRecord]:
        """Return every record matching *where*, paging through large results."""
        where_clause = self._translate_where(where)
        try:
            collection = self._collection(collection_name)
            records: list[TextRecord] = []
            offset = 0
            while True:
                page = collection.get(
                    where=where_clause,
                    include=["documents", "metadatas"],
                    limit=_PAGE_SIZE,
                    offset=offset,
                )
                ids = page.get("ids") or []
                documents = page.get("documents") or []
                metadatas = page.get("metadatas") or []
                for key, text, metadata in zip(ids, documents, metadatas):
                    records.append(self._metadata_to_record(key, text, metadata))
                if len(ids) < _PAGE_SIZE:
                    break
                offset += _PAGE_SIZE
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB get failed on {collection_name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug(
            "chromadb_get_records",
            collection=collection_name,
            where=where,
            count=len(records),
        )
        return records

    async def upsert_records(
        self,
        collection_name: str,
        records: Sequence[TextRecord],
    ) -> int:
        """Upsert fully enriched records in batches of 500."""
        for record in records:
            if record.key is None or record.text_embedding is None:
                raise ValueError(
                    f"Record for {record.reference_description!r} is missing its key or embedding"
                )
        if not records:
            return 0

        try:
            collection = self._collection(collection_name)
            total_stored = 0
            for start in range(0, len(records), _UPSERT_BATCH_SIZE):
                batch = records[start : start + _UPSERT_BATCH_SIZE]
                collection.upsert(
                    ids=[r.key for r in batch],
                    embeddings=[r.text_embedding for r in batch],
                    documents=[r.text for r in batch],
                    metadatas=[self._record_to_metadata(r) for r in batch],
                )
                total_stored += len(batch)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB upsert failed on {collection_name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_upsert_records",
            collection=collection_name,
            count=total_stored,
            batches=(len(records) + _UPSERT_BATCH_SIZE - 1) // _UPSERT_BATCH_SIZE,
        )
        return total_stored

    async def delete_records(self, collection_name: str, keys: Sequence[str]) -> int:
        if not keys:
            return 0
        try:
            collection = self._collection(collection_name)
            for start in range(0, len(keys), _UPSERT_BATCH_SIZE):
                collection.delete(ids=list(keys[start : start + _UPSERT_BATCH_SIZE]))
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete failed on {collection_name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_records", collection=collection_name, count=len(keys))
        return len(keys)

    async def count(self, collection_name: str) -> int:
        try:
            return self._collection(collection_name).count()
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB count failed on {collection_name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """ChromaDB is always available (local, in-process)."""
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _collection(self, collection_name: str) -> Any:
        """Open (creating if needed) and cache a collection handle.

        Newer ChromaDB versions enforce that the embedding function matches
        the one persisted with the collection.  A collection created with
        the default function raises ``ValueError`` when opened with
        :class:`_NoopEmbeddingFunction`; it is then reopened without one.
        """
        collection = self._collections.get(collection_name)
        if collection is not None:
            return collection
        try:
            collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        self._collections[collection_name] = collection
        return collection

    @staticmethod
    def _translate_where(where: dict[str, str]) -> dict[str, Any]:
        """Translate a flat equality filter into a ChromaDB ``where`` clause."""
        if not where:
            raise ValueError("A non-empty filter is required")
        clauses = [{field: value} for field, value in where.items()]
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    @staticmethod
    def _record_to_metadata(record: TextRecord) -> dict[str, Any]:
        """Convert a record to a flat ChromaDB metadata dict (no ``None`` values)."""
        metadata = record.model_dump(exclude=_NON_METADATA_FIELDS, exclude_none=True)
        metadata["created_at"] = record.created_at.isoformat()
        metadata[_RECORD_TYPE_KEY] = type(record).__name__
        return metadata

    @staticmethod
    def _metadata_to_record(key: str, text: str | None, metadata: dict[str, Any] | None) -> TextRecord:
        fields = dict(metadata or {})
        record_cls = RECORD_TYPES.get(str(fields.pop(_RECORD_TYPE_KEY, "")), TextRecord)
        return record_cls(key=key, text=text or "", **fields)
