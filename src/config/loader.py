"""YAML configuration loader with environment variable overrides.

Configuration is resolved in layers (later layers win):

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file          -- local overrides (not committed)
  3. Environment variables  -- set at deploy time

:func:`load_config` reads the YAML file first, then deep-merges the values
resolved by :class:`~src.config.settings.Settings` on top, e.g.::

    base      = {"chunking": {"max_tokens": 512, "encoding": "cl100k_base"}}
    overrides = {"chunking": {"max_tokens": 1024}}
    result    = {"chunking": {"max_tokens": 1024, "encoding": "cl100k_base"}}
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from src.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is
            treated as empty.
        settings: Pre-built settings; a fresh :class:`Settings` is read
            from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides: dict[str, Any] = {
        "app": {
            "env": settings.app_env,
        },
        "inference": {
            "backend": settings.inference_backend,
            "base_url": settings.inference_base_url(),
            "embedding_model": settings.embedding_model,
            "embedding_dimension": settings.embedding_dimension,
            "vision_model": settings.vision_model,
        },
        "vector_store": {
            "persist_dir": settings.chromadb_persist_dir,
            "global_collection": settings.global_collection,
            "conversation_collection": settings.conversation_collection,
        },
        "chunking": {
            "max_tokens": settings.chunk_max_tokens,
            "encoding": settings.tokenizer_encoding,
            "csv_max_columns": settings.csv_max_columns_per_chunk,
            "csv_min_columns": settings.csv_min_columns_per_chunk,
        },
        "ingestion": {
            "batch_size": settings.ingest_batch_size,
            "between_batch_delay_s": settings.between_batch_delay_seconds,
            "retry_max_attempts": settings.retry_max_attempts,
            "retry_delay_s": settings.retry_delay_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
