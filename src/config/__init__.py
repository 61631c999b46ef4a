"""Configuration package: pydantic-settings model plus the YAML layer merged over it."""

from src.config.loader import load_config
from src.config.settings import Settings, default_batch_size

__all__ = ["Settings", "default_batch_size", "load_config"]
