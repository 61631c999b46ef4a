"""Unit tests for provider construction and the ingestion CLI."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.cli import ingest as cli
from src.config.settings import Settings
from src.models.documents import ContentType, DocumentCollectionType, IngestionResult
from src.providers.factory import (
    build_embedding_provider,
    build_ingestion_service,
    build_lifecycle_provider,
)
from src.providers.lifecycle.ollama_model_lifecycle_provider import (
    NullModelLifecycleProvider,
    OllamaModelLifecycleProvider,
)
from src.services.ingestion.image_ingestion_service import ImageIngestionService
from src.services.ingestion.pdf_ingestion_service import PdfIngestionService
from src.services.ingestion.text_ingestion_service import TextFileIngestionService
from src.utils.errors import ConfigurationError, DocumentValidationError
from tests.conftest import (
    MockEmbeddingProvider,
    MockVectorStore,
    ScriptedVisionProvider,
    make_chunker,
)

# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestFactory:
    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="INFERENCE_BACKEND"):
            build_embedding_provider(Settings(_env_file=None, inference_backend="llamafile"))

    def test_openai_backend_requires_key(self) -> None:
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            build_embedding_provider(
                Settings(_env_file=None, inference_backend="openai", openai_api_key="")
            )

    def test_lifecycle_selection(self) -> None:
        assert isinstance(
            build_lifecycle_provider(Settings(_env_file=None)), OllamaModelLifecycleProvider
        )
        hosted = Settings(_env_file=None, inference_backend="openai", openai_api_key="sk-x")
        assert isinstance(build_lifecycle_provider(hosted), NullModelLifecycleProvider)

    def test_every_content_type_is_routed(self, test_settings: Settings) -> None:
        service = build_ingestion_service(
            test_settings,
            embedding_provider=MockEmbeddingProvider(),
            vision_provider=ScriptedVisionProvider(),
            vector_store=MockVectorStore(),
            chunker=make_chunker(),
        )

        assert service.supported_types == frozenset(ContentType)
        assert isinstance(service.service_for(ContentType.CSV), TextFileIngestionService)
        assert isinstance(service.service_for(ContentType.TIFF), ImageIngestionService)
        assert isinstance(service.service_for(ContentType.PDF), PdfIngestionService)

    def test_unloadable_tokenizer_fails_service_construction(self) -> None:
        settings = Settings(_env_file=None, tokenizer_encoding="no-such-encoding")

        with pytest.raises(ConfigurationError, match="no-such-encoding"):
            build_ingestion_service(
                settings,
                embedding_provider=MockEmbeddingProvider(),
                vision_provider=ScriptedVisionProvider(),
                vector_store=MockVectorStore(),
            )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _result(**overrides) -> IngestionResult:  # noqa: ANN003
    values = {
        "source_document_id": "notes.txt",
        "collection_name": "global_documents",
        "content_type": "text/plain",
        "records_upserted": 3,
        "total_tokens": 42,
    }
    values.update(overrides)
    return IngestionResult(**values)


class TestCliParser:
    def test_file_command_arguments(self) -> None:
        args = cli._build_parser().parse_args(
            ["file", "a.txt", "b.csv", "--collection", "conversation", "--conversation-id", "c-1"]
        )

        assert args.paths == ["a.txt", "b.csv"]
        assert args.collection == "conversation"
        assert args.conversation_id == "c-1"
        assert args.batch_size is None

    def test_build_request(self, test_settings: Settings, tmp_path) -> None:  # noqa: ANN001
        args = cli._build_parser().parse_args(
            ["file", str(tmp_path / "x.md"), "--category-id", "ops", "--batch-size", "4"]
        )

        request = cli._build_request(tmp_path / "x.md", args, test_settings)

        assert request.file_name == "x.md"
        assert request.local_path == str(tmp_path / "x.md")
        assert request.batch_size == 4
        assert request.metadata == {"category_id": "ops"}
        assert request.collection_type == DocumentCollectionType.GLOBAL

    def test_no_command_prints_help_and_exits(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 1


class TestCliHandlers:
    @pytest.mark.asyncio
    async def test_file_handler_reports_each_file(
        self, test_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        service = MagicMock()
        service.ingest = AsyncMock(
            side_effect=[_result(), DocumentValidationError(message="bad.xyz: unsupported")]
        )
        args = cli._build_parser().parse_args(["file", "notes.txt", "bad.xyz"])

        code = await cli._handle_file(args, service, test_settings)

        out, err = capsys.readouterr()
        assert code == 1
        assert "Records written: 3" in out
        assert "1/2 files ingested." in out
        assert "bad.xyz: unsupported" in err

    @pytest.mark.asyncio
    async def test_delete_handler(self, capsys: pytest.CaptureFixture[str]) -> None:
        service = MagicMock()
        service.delete_document = AsyncMock(return_value=5)
        args = cli._build_parser().parse_args(["delete", "report.pdf"])

        assert await cli._handle_delete(args, service) == 0

        service.delete_document.assert_awaited_once_with(
            "report.pdf",
            collection_type=DocumentCollectionType.GLOBAL,
            conversation_id=None,
        )
        assert "Deleted 5 records" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_count_handler(self, capsys: pytest.CaptureFixture[str]) -> None:
        service = MagicMock()
        service.count = AsyncMock(return_value=12)
        args = cli._build_parser().parse_args(["count", "--collection", "conversation"])

        assert await cli._handle_count(args, service) == 0
        assert "conversation collection: 12 records" in capsys.readouterr().out

    def test_config_command_prints_yaml(
        self, tmp_path, capsys: pytest.CaptureFixture[str]  # noqa: ANN001
    ) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("app:\n  name: chunkwright\n", encoding="utf-8")

        with patch.object(cli, "Settings", return_value=Settings(_env_file=None)):
            with pytest.raises(SystemExit) as exc_info:
                cli.main(["config", "--path", str(path)])

        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "name: chunkwright" in out
        assert "global_collection: global_documents" in out
