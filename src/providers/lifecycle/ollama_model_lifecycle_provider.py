"""Model lifecycle adapters.

Ollama keeps a model resident for a few minutes after its last request.
Ingestion bursts load a vision and an embedding model side by side, so the
orchestrators ask for both to be released once a document is done.  Ollama
unloads a model when it receives a request with ``keep_alive: 0``; these
calls go to the native API (not the ``/v1`` compatibility layer) through
httpx, the same way the server health check does.

Hosted backends have nothing to unload and use
:class:`NullModelLifecycleProvider`.
"""

from __future__ import annotations

import httpx
import structlog

from src.config.settings import Settings
from src.interfaces.model_lifecycle_provider import IModelLifecycleProvider
from src.utils.errors import ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_UNLOAD_TIMEOUT_SECONDS = 10.0


class OllamaModelLifecycleProvider(IModelLifecycleProvider):
    """Unloads Ollama models with ``keep_alive: 0`` requests.

    Parameters
    ----------
    settings:
        Supplies ``ollama_base_url`` and the two model names.
    transport:
        Optional httpx transport (tests pass an ``httpx.MockTransport``).
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._vision_model = settings.vision_model
        self._embedding_model = settings.embedding_model
        self._transport = transport

    async def unload_vision_model(self) -> None:
        if not self._vision_model:
            return
        await self._post(
            "/api/generate",
            {"model": self._vision_model, "keep_alive": 0},
            model=self._vision_model,
        )

    async def unload_embedding_model(self) -> None:
        if not self._embedding_model:
            return
        await self._post(
            "/api/embed",
            {"model": self._embedding_model, "input": [], "keep_alive": 0},
            model=self._embedding_model,
        )

    def get_provider_name(self) -> str:
        return "ollama_lifecycle"

    async def _post(self, path: str, payload: dict, model: str) -> None:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=_UNLOAD_TIMEOUT_SECONDS,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                message=f"Could not unload {model}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("model_unloaded", model=model, endpoint=path)


class NullModelLifecycleProvider(IModelLifecycleProvider):
    """Lifecycle hooks for backends that manage model residency themselves."""

    async def unload_vision_model(self) -> None:
        return None

    async def unload_embedding_model(self) -> None:
        return None

    def get_provider_name(self) -> str:
        return "null_lifecycle"
