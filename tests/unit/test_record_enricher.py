"""Unit tests for RecordEnricher and the assign-once record semantics."""

from __future__ import annotations

import itertools

import pytest

from src.models.records import CsvTextRecord, RecordScope, TextRecord
from src.services.ingestion.embedding_generator import EmbeddingGenerator
from src.services.ingestion.record_enricher import RecordEnricher, page_locator
from tests.conftest import EMBEDDING_DIM, MockEmbeddingProvider, make_chunker


def _enricher(provider: MockEmbeddingProvider | None = None, keys=None) -> RecordEnricher:  # noqa: ANN001
    counter = itertools.count(1)
    return RecordEnricher(
        EmbeddingGenerator(provider or MockEmbeddingProvider(), retry_delay=0),
        make_chunker(),
        key_generator=keys or (lambda: f"key-{next(counter)}"),
    )


class TestPageLocator:
    def test_without_page(self) -> None:
        assert page_locator("notes.txt", None) == "notes.txt"

    def test_with_page_and_scheme(self) -> None:
        assert page_locator("file://report.pdf", 3) == "report.pdf#page=3"


class TestEnrich:
    @pytest.mark.asyncio
    async def test_fills_provenance_tokens_and_embedding(self) -> None:
        record = TextRecord(text="Page: 3\nQuarterly totals", page_number=3)

        enriched = await _enricher().enrich(record, "file://report.pdf")

        assert enriched.key == "key-1"
        assert enriched.reference_description == "report.pdf#page=3"
        assert enriched.reference_link == "file://report.pdf#page=3"
        assert enriched.source_document_id == "report.pdf"
        assert enriched.token_count and enriched.token_count > 0
        assert len(enriched.text_embedding) == EMBEDDING_DIM
        assert enriched.is_enriched

    @pytest.mark.asyncio
    async def test_scope_is_copied(self) -> None:
        scope = RecordScope(category="finance", conversation_id="c-1")

        enriched = await _enricher().enrich(TextRecord(text="x"), "a.txt", scope)

        assert enriched.category == "finance"
        assert enriched.conversation_id == "c-1"

    @pytest.mark.asyncio
    async def test_existing_values_are_never_replaced(self) -> None:
        provider = MockEmbeddingProvider()
        record = TextRecord(
            text="x",
            key="preset",
            reference_description="custom",
            text_embedding=[0.5] * EMBEDDING_DIM,
        )
        keys_called: list[int] = []

        def keys() -> str:
            keys_called.append(1)
            return "new"

        enriched = await _enricher(provider, keys).enrich(record, "a.txt")

        assert enriched.key == "preset"
        assert enriched.reference_description == "custom"
        assert enriched.reference_link == "file://a.txt"
        assert enriched.text_embedding == [0.5] * EMBEDDING_DIM
        assert keys_called == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_subtype_fields_survive(self) -> None:
        record = CsvTextRecord(text="| a |", csv_path="t.csv:row:1", node_type="Row", parent_info="table")

        enriched = await _enricher().enrich(record, "t.csv")

        assert isinstance(enriched, CsvTextRecord)
        assert enriched.csv_path == "t.csv:row:1"


class TestEnrichBatch:
    @pytest.mark.asyncio
    async def test_preserves_order_and_generates_unique_keys(self) -> None:
        records = [TextRecord(text=f"chunk {i}") for i in range(25)]

        enriched = await _enricher().enrich_batch(records, "doc.txt", batch_size=10)

        assert [r.text for r in enriched] == [r.text for r in records]
        assert len({r.key for r in enriched}) == 25

    @pytest.mark.asyncio
    async def test_rejects_bad_batch_size(self) -> None:
        with pytest.raises(ValueError):
            await _enricher().enrich_batch([TextRecord(text="x")], "a.txt", batch_size=0)

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        assert await _enricher().enrich_batch([], "a.txt") == []


class TestFillMissing:
    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValueError):
            TextRecord(text="x").fill_missing(text="y")

    def test_none_values_ignored(self) -> None:
        record = TextRecord(text="x")
        assert record.fill_missing(key=None) is record

    def test_records_are_frozen(self) -> None:
        record = TextRecord(text="x")
        with pytest.raises(Exception):
            record.key = "k"  # type: ignore[misc]
