"""Shared pytest fixtures for the chunkwright test suite."""

from __future__ import annotations

import hashlib
import io
import re
import struct
from collections.abc import Sequence
from typing import Callable

import fitz
import pytest
from PIL import Image, ImageDraw

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.model_lifecycle_provider import IModelLifecycleProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.interfaces.vision_provider import IVisionProvider
from src.models.records import TextRecord
from src.providers.factory import build_ingestion_service
from src.services.ingestion.chunker import DocumentChunker
from src.services.ingestion.document_ingestion_service import DocumentIngestionService

# ---------------------------------------------------------------------------
# Deterministic tokenizer
# ---------------------------------------------------------------------------

_PIECE_PATTERN = re.compile(r"\s?\w{1,4}|\s?[^\w\s]|\s+")


class PieceEncoding:
    """Offline encoding with the ``encode`` / ``decode`` surface of tiktoken.

    Text splits into runs of up to four word characters (with one optional
    leading space), single punctuation marks and whitespace runs.  Every
    character lands in exactly one piece, so ``decode(encode(t)) == t``.
    """

    name = "test_pieces"

    def __init__(self) -> None:
        self._ids: dict[str, int] = {}
        self._pieces: list[str] = []

    def encode(self, text: str, disallowed_special: object = ()) -> list[int]:
        tokens: list[int] = []
        for piece in _PIECE_PATTERN.findall(text):
            if piece not in self._ids:
                self._ids[piece] = len(self._pieces)
                self._pieces.append(piece)
            tokens.append(self._ids[piece])
        return tokens

    def decode(self, tokens: Sequence[int]) -> str:
        return "".join(self._pieces[t] for t in tokens)


def make_chunker(max_tokens: int = 1024) -> DocumentChunker:
    return DocumentChunker(max_tokens=max_tokens, encoding=PieceEncoding())


# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------

EMBEDDING_DIM = 16


def hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit vector by hashing *text*.

    Same text always produces the same vector.
    """
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    values = [float(v % 1000) + 1.0 for v in struct.unpack(f"<{dim}I", raw[: dim * 4])]
    magnitude = sum(v * v for v in values) ** 0.5
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider; records every call."""

    def __init__(self, dim: int = EMBEDDING_DIM) -> None:
        self.dim = dim
        self.calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.extend(texts)
        return [hash_to_vector(t, self.dim) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        return hash_to_vector(text, self.dim)

    def get_dimension(self) -> int:
        return self.dim

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# In-memory vector store
# ---------------------------------------------------------------------------


class MockVectorStore(IVectorStoreProvider):
    """Dict-backed vector store with exact-match filtering."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, TextRecord]] = {}
        self.ensure_calls: list[str] = []
        self.deleted_keys: list[str] = []
        self.upsert_batches: list[int] = []

    async def ensure_collection(self, collection_name: str) -> None:
        self.ensure_calls.append(collection_name)
        self.collections.setdefault(collection_name, {})

    async def get_records(self, collection_name: str, where: dict[str, str]) -> list[TextRecord]:
        records = self.collections.get(collection_name, {}).values()
        return [
            record
            for record in records
            if all(getattr(record, field, None) == value for field, value in where.items())
        ]

    async def upsert_records(self, collection_name: str, records: Sequence[TextRecord]) -> int:
        for record in records:
            if record.key is None or record.text_embedding is None:
                raise ValueError("record is missing its key or embedding")
        store = self.collections.setdefault(collection_name, {})
        for record in records:
            store[record.key] = record
        self.upsert_batches.append(len(records))
        return len(records)

    async def delete_records(self, collection_name: str, keys: Sequence[str]) -> int:
        store = self.collections.get(collection_name, {})
        for key in keys:
            store.pop(key, None)
        self.deleted_keys.extend(keys)
        return len(keys)

    async def count(self, collection_name: str) -> int:
        return len(self.collections.get(collection_name, {}))

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True

    def records(self, collection_name: str) -> list[TextRecord]:
        return list(self.collections.get(collection_name, {}).values())


# ---------------------------------------------------------------------------
# Scripted vision provider and lifecycle recorder
# ---------------------------------------------------------------------------


class ScriptedVisionProvider(IVisionProvider):
    """Vision provider whose answers come from a script.

    Each call pops the next scripted outcome when one is queued; an
    exception instance is raised, a string is returned.  With an empty
    script every call returns ``default_text``.
    """

    def __init__(self, default_text: str = "Scanned text", script: list | None = None) -> None:
        self.default_text = default_text
        self.script: list = list(script or [])
        self.calls: list[tuple[bytes, str]] = []

    async def extract_text(self, image_bytes: bytes, mime_type: str) -> str:
        self.calls.append((image_bytes, mime_type))
        if self.script:
            outcome = self.script.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return self.default_text

    def get_provider_name(self) -> str:
        return "scripted-vision"

    def is_available(self) -> bool:
        return True


class RecordingLifecycle(IModelLifecycleProvider):
    """Counts unload requests."""

    def __init__(self) -> None:
        self.vision_unloads = 0
        self.embedding_unloads = 0

    async def unload_vision_model(self) -> None:
        self.vision_unloads += 1

    async def unload_embedding_model(self) -> None:
        self.embedding_unloads += 1

    def get_provider_name(self) -> str:
        return "recording-lifecycle"


# ---------------------------------------------------------------------------
# Document builders
# ---------------------------------------------------------------------------


def make_png(text: str = "HELLO", size: tuple[int, int] = (120, 60)) -> bytes:
    img = Image.new("RGB", size, color=(255, 255, 255))
    ImageDraw.Draw(img).text((5, 5), text, fill=(0, 0, 0))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def make_image(fmt: str, size: tuple[int, int] = (40, 30), mode: str = "RGB") -> bytes:
    """Encode a single solid-colour image in *fmt* (e.g. "BMP", "JPEG")."""
    img = Image.new(mode, size, color=(200, 50, 50) if mode == "RGB" else 128)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_tiff(frame_count: int, size: tuple[int, int] = (40, 30)) -> bytes:
    """Encode a multi-frame TIFF whose frames differ in colour."""
    frames = [
        Image.new("RGB", size, color=(40 * i % 256, 80, 120)) for i in range(frame_count)
    ]
    buf = io.BytesIO()
    frames[0].save(buf, format="TIFF", save_all=True, append_images=frames[1:])
    return buf.getvalue()


def make_pdf(page_texts: list[str], image_pages: Sequence[int] = ()) -> bytes:
    """Build a PDF with one text line per page and a PNG on each page in *image_pages* (1-based)."""
    doc = fitz.open()
    try:
        for number, text in enumerate(page_texts, start=1):
            page = doc.new_page()
            if text:
                page.insert_text((72, 72), text, fontsize=12)
            if number in image_pages:
                page.insert_image(fitz.Rect(72, 200, 192, 260), stream=make_png(f"IMG{number}"))
        return doc.tobytes()
    finally:
        doc.close()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated from the environment's .env, with instant retries."""
    return Settings(
        _env_file=None,
        inference_backend="ollama",
        embedding_dimension=EMBEDDING_DIM,
        chromadb_persist_dir=str(tmp_path / "chromadb"),
        retry_delay_seconds=0.0,
        retry_max_attempts=3,
        ingest_batch_size=10,
    )


@pytest.fixture
def chunker() -> DocumentChunker:
    return make_chunker(1024)


@pytest.fixture
def small_chunker() -> DocumentChunker:
    return make_chunker(40)


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    return MockVectorStore()


@pytest.fixture
def vision_provider() -> ScriptedVisionProvider:
    return ScriptedVisionProvider()


@pytest.fixture
def lifecycle() -> RecordingLifecycle:
    return RecordingLifecycle()


@pytest.fixture
def ingestion_service(
    test_settings: Settings,
    mock_embedding_provider: MockEmbeddingProvider,
    vision_provider: ScriptedVisionProvider,
    mock_vector_store: MockVectorStore,
    lifecycle: RecordingLifecycle,
) -> DocumentIngestionService:
    """Fully wired pipeline over in-memory providers."""
    return build_ingestion_service(
        test_settings,
        embedding_provider=mock_embedding_provider,
        vision_provider=vision_provider,
        vector_store=mock_vector_store,
        lifecycle=lifecycle,
        chunker=make_chunker(test_settings.chunk_max_tokens),
    )


@pytest.fixture
def pdf_builder() -> Callable[..., bytes]:
    return make_pdf
