"""Vision provider implementations.

One implementation of IVisionProvider:
    OpenAIVisionProvider -- chat-completions vision over an OpenAI-compatible
       endpoint (hosted OpenAI, or a local Ollama server with llava).
"""

from src.providers.vision.openai_vision_provider import OpenAIVisionProvider

__all__ = ["OpenAIVisionProvider"]
