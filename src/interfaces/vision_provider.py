"""Abstract base class for vision (image-to-text) service providers.

A vision provider turns the bytes of a single raster image into the text a
vision-language model reads from it.  PDF page images, standalone PNG/JPEG
uploads and individual TIFF frames all arrive here as separate calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation:
#   OpenAIVisionProvider -- chat-completions vision over any OpenAI-compatible
#   endpoint (hosted OpenAI, or Ollama's /v1 with llava / llama3.2-vision)
# Located in: src/providers/vision/
class IVisionProvider(ABC):
    """Contract for services that extract visible text from an image."""

    @abstractmethod
    async def extract_text(self, image_bytes: bytes, mime_type: str) -> str:
        """Return the text visible in the image.

        Parameters
        ----------
        image_bytes:
            Encoded image data.
        mime_type:
            MIME type of *image_bytes*, e.g. ``"image/png"``.

        Returns
        -------
        str
            Extracted plain text; an empty string when the image has none.

        Raises
        ------
        src.utils.errors.ConfigurationError
            If no vision model is configured.
        src.utils.errors.RateLimitError
            If the service reports that its capacity is exhausted.
        src.utils.errors.VisionExtractionError
            For any other failure.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"ollama_vision"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if a vision model is configured."""
