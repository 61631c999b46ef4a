"""Application settings loaded from environment variables via pydantic-settings.

Two sources are read, in priority order:

  1. Environment variables, e.g. ``EMBEDDING_MODEL=mxbai-embed-large``
  2. A ``.env`` file in the working directory

Field ``embedding_model`` maps to env var ``EMBEDDING_MODEL``; defaults
below apply when neither source sets a value.
"""

from __future__ import annotations

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_batch_size() -> int:
    """Half the CPUs plus one, never fewer than 10 records per batch."""
    return max((os.cpu_count() or 1) // 2 + 1, 10)


class Settings(BaseSettings):
    """chunkwright settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Inference backend ===
    # "ollama" talks to a local server through its OpenAI-compatible /v1
    # endpoint and can unload models; "openai" targets a hosted API.
    inference_backend: str = "ollama"
    openai_api_key: str = ""
    openai_base_url: str = ""
    ollama_base_url: str = "http://localhost:11434"

    embedding_model: str = "mxbai-embed-large"
    embedding_dimension: int = Field(default=1024, gt=0)
    # Empty string = vision disabled; image and PDF ingestion then fail
    # with ConfigurationError on the first image.
    vision_model: str = "llava"

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    global_collection: str = "global_documents"
    conversation_collection: str = "conversation_documents"

    # === Chunking ===
    chunk_max_tokens: int = Field(default=1024, gt=0)
    tokenizer_encoding: str = "cl100k_base"
    csv_max_columns_per_chunk: int = Field(default=10, ge=1)
    csv_min_columns_per_chunk: int = Field(default=2, ge=1)

    # === Retry / pacing ===
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=10.0, ge=0.0)
    ingest_batch_size: int = Field(default_factory=default_batch_size, ge=1)
    between_batch_delay_seconds: float = Field(default=0.0, ge=0.0)

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def inference_base_url(self) -> str:
        """Return the OpenAI-compatible base URL for the configured backend."""
        if self.inference_backend == "ollama":
            return f"{self.ollama_base_url.rstrip('/')}/v1"
        return self.openai_base_url

    def inference_api_key(self) -> str:
        """Ollama ignores the key but the openai SDK requires a non-empty one."""
        if self.inference_backend == "ollama":
            return "ollama"
        return self.openai_api_key
