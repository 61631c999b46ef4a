"""Model lifecycle provider implementations.

Two implementations of IModelLifecycleProvider:
    OllamaModelLifecycleProvider -- releases models via Ollama's keep_alive=0.
    NullModelLifecycleProvider   -- no-op for hosted APIs.
"""

from src.providers.lifecycle.ollama_model_lifecycle_provider import (
    NullModelLifecycleProvider,
    OllamaModelLifecycleProvider,
)

__all__ = ["NullModelLifecycleProvider", "OllamaModelLifecycleProvider"]
