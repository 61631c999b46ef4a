"""Abstract base class for the vector-store write gateway.

This is the only seam through which ingestion touches persistent storage.
It covers collection creation, a filtered read (used to find a document's
stale records), batched upsert and delete-by-key.  Similarity search is
outside the ingestion write path and deliberately absent here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from src.models.records import TextRecord


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for the vector-store collections ingestion writes to.

    All methods are async so network-backed stores do not block the event
    loop.

    **Filter syntax** for :meth:`get_records`: a flat mapping of metadata
    field to required value, combined with AND, e.g.
    ``{"source_document_id": "report.pdf", "conversation_id": "c-42"}``.
    """

    @abstractmethod
    async def ensure_collection(self, collection_name: str) -> None:
        """Create the collection if it does not exist yet.

        Raises
        ------
        src.utils.errors.VectorStoreError
            If the collection cannot be created or opened.
        """

    @abstractmethod
    async def get_records(
        self,
        collection_name: str,
        where: dict[str, str],
    ) -> list[TextRecord]:
        """Return every record whose metadata matches *where* exactly.

        Records come back without embeddings.  The concrete record subtype
        (e.g. :class:`~src.models.records.CsvTextRecord`) is preserved.

        Raises
        ------
        ValueError
            If *where* is empty.
        src.utils.errors.VectorStoreError
            If the read fails.
        """

    @abstractmethod
    async def upsert_records(
        self,
        collection_name: str,
        records: Sequence[TextRecord],
    ) -> int:
        """Insert or replace fully enriched records, keyed by ``record.key``.

        Returns
        -------
        int
            The number of records written.

        Raises
        ------
        ValueError
            If a record is missing its key or embedding.
        src.utils.errors.VectorStoreError
            If the write fails.
        """

    @abstractmethod
    async def delete_records(self, collection_name: str, keys: Sequence[str]) -> int:
        """Delete records by key and return how many keys were submitted.

        Raises
        ------
        src.utils.errors.VectorStoreError
            If the delete fails.
        """

    @abstractmethod
    async def count(self, collection_name: str) -> int:
        """Return the number of records in the collection (0 if it is missing)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store can be reached."""
