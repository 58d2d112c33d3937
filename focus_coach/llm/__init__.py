"""
LLM gateway for Focus Coach.

Uniform text generation over the local and cloud providers.
"""

from .base import FailureReason, LLMProvider, ProviderError, ProviderResponse
from .gateway import GenerateOptions, GenerationResult, LLMGateway
from .providers import ClaudeProvider, OllamaProvider, OpenAIProvider, build_providers

__all__ = [
    "ClaudeProvider",
    "FailureReason",
    "GenerateOptions",
    "GenerationResult",
    "LLMGateway",
    "LLMProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "ProviderError",
    "ProviderResponse",
    "build_providers",
]
