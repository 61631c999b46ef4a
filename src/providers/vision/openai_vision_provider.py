"""OpenAI-compatible vision provider adapter for image text extraction.

Sends one image per chat-completion request, as a base64 data URI next to a
short instruction, with a system prompt that pins the model to verbatim OCR
output.  Works against hosted OpenAI vision models and against Ollama's
``/v1`` endpoint with a local vision model (``llava``,
``llama3.2-vision``, ...).
"""

from __future__ import annotations

import base64

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.vision_provider import IVisionProvider
from src.utils.errors import ConfigurationError, RateLimitError, VisionExtractionError

logger = structlog.get_logger(logger_name=__name__)

OCR_SYSTEM_PROMPT = (
    "You are a precise OCR extraction tool. Analyze the image and extract all "
    "visible text verbatim, preserving original formatting, line breaks, and "
    "structure where possible. Output ONLY the extracted text. Do not include "
    "any introductions, explanations, summaries, or additional words like "
    '"Here is the text" or "No text found." If no text is detectable, output '
    "an empty string."
)

OCR_USER_PROMPT = "Extract and return only the text visible in the provided image as plain text."

_TEMPERATURE = 0.2


class OpenAIVisionProvider(IVisionProvider):
    """Vision provider backed by an OpenAI-compatible chat-completions API.

    Parameters
    ----------
    settings:
        Backend, vision model and endpoint configuration.  An empty
        ``vision_model`` disables the provider.
    client:
        Optional pre-built ``openai.AsyncOpenAI`` (used by tests).
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._model = settings.vision_model
        self._api_key = settings.inference_api_key()

        if client is None:
            client_kwargs: dict = {"api_key": self._api_key or "unset"}
            base_url = settings.inference_base_url()
            if base_url:
                client_kwargs["base_url"] = base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client
        self._provider_label = f"{settings.inference_backend}_vision"

    # ------------------------------------------------------------------
    # IVisionProvider implementation
    # ------------------------------------------------------------------

    async def extract_text(self, image_bytes: bytes, mime_type: str) -> str:
        """Return the text the vision model reads from *image_bytes*."""
        if not self._model:
            raise ConfigurationError(
                message="No vision model configured (set VISION_MODEL)",
                provider_name=self.get_provider_name(),
            )

        b64 = base64.b64encode(image_bytes).decode("utf-8")
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": OCR_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": OCR_USER_PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:{mime_type};base64,{b64}"},
                            },
                        ],
                    },
                ],
                temperature=_TEMPERATURE,
            )
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"{self._provider_label} rate limited: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            logger.error(
                "vision_api_error",
                provider=self._provider_label,
                model=self._model,
                status=getattr(exc, "status_code", None),
                body=exc.body,
            )
            raise VisionExtractionError(
                message=f"{self._provider_label} vision API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        text = (content or "").strip()
        logger.debug(
            "vision_text_extracted",
            model=self._model,
            provider=self._provider_label,
            characters=len(text),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return text

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        return bool(self._model) and bool(self._api_key)
