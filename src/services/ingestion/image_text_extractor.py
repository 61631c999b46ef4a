"""Vision-model text extraction with rate-limit retry.

Wraps an :class:`~src.interfaces.vision_provider.IVisionProvider` so that a
provider reporting exhausted capacity is retried a fixed number of times
with a fixed delay.  Every other failure propagates on first occurrence.
"""

from __future__ import annotations

import structlog

from src.interfaces.vision_provider import IVisionProvider
from src.utils.retry import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
    is_rate_limited,
    retry_async,
)

logger = structlog.get_logger(logger_name=__name__)


class ImageTextExtractor:
    """Extracts the visible text of one image through a vision provider.

    Parameters
    ----------
    vision_provider:
        The vision backend to call.
    max_attempts:
        Total attempts per image, including the first (default 3).
    retry_delay:
        Seconds to wait after a rate-limited attempt (default 10).
    """

    def __init__(
        self,
        vision_provider: IVisionProvider,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    ) -> None:
        self._provider = vision_provider
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay

    async def extract_text(self, image_bytes: bytes, mime_type: str) -> str:
        """Return the image's text, retrying only on rate limits.

        Raises
        ------
        src.utils.errors.RateLimitError
            If every attempt was rate limited.
        src.utils.errors.ChunkwrightError
            Any terminal provider error, unchanged.
        """
        text = await retry_async(
            lambda: self._provider.extract_text(image_bytes, mime_type),
            is_retryable=is_rate_limited,
            max_attempts=self._max_attempts,
            delay_seconds=self._retry_delay,
            operation_name=f"{self._provider.get_provider_name()}.extract_text",
        )
        logger.debug(
            "image_text_extracted",
            provider=self._provider.get_provider_name(),
            mime_type=mime_type,
            image_bytes=len(image_bytes),
            characters=len(text),
        )
        return text
