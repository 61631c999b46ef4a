"""Abstract base class for inference-server model lifecycle hooks.

Local inference servers keep models resident in GPU/CPU memory after use.
Once a document's pipeline finishes, the orchestrator asks the lifecycle
provider to release the vision and embedding models it touched.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OllamaModelLifecycleProvider -- unloads via Ollama's keep_alive=0
#   NullModelLifecycleProvider   -- hosted APIs with nothing to unload
# Located in: src/providers/lifecycle/
class IModelLifecycleProvider(ABC):
    """Contract for releasing models held by the inference layer."""

    @abstractmethod
    async def unload_vision_model(self) -> None:
        """Ask the inference server to release the vision model.

        Raises
        ------
        src.utils.errors.ProviderUnavailableError
            If the server cannot be reached or rejects the request.
        """

    @abstractmethod
    async def unload_embedding_model(self) -> None:
        """Ask the inference server to release the embedding model.

        Raises
        ------
        src.utils.errors.ProviderUnavailableError
            If the server cannot be reached or rejects the request.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"ollama_lifecycle"``."""
