"""LLM backends, model registry and provider resolution."""

from .anthropic import AnthropicClient
from .client import BackendMessage, LLMClient, StreamChunk, ToolCall, Usage
from .ollama import OllamaClient
from .openai_compat import OpenAICompatibleClient
from .providers import PROVIDERS, ProviderSpec, ProviderTag
from .registry import BUILTIN_MODELS, ModelConfig, ModelRegistry, build_registry
from .resolver import ProviderResolver

__all__ = [
    "BUILTIN_MODELS",
    "PROVIDERS",
    "AnthropicClient",
    "BackendMessage",
    "LLMClient",
    "ModelConfig",
    "ModelRegistry",
    "OllamaClient",
    "OpenAICompatibleClient",
    "ProviderResolver",
    "ProviderSpec",
    "ProviderTag",
    "StreamChunk",
    "ToolCall",
    "Usage",
    "build_registry",
]
