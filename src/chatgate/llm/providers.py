"""Closed mapping from provider tag to backend constructor.

Every provider the gateway can talk to is listed here. A registry entry
names one of these tags; nothing is ever inferred from the shape of a model
identifier.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from chatgate.llm.anthropic import AnthropicClient
from chatgate.llm.client import LLMClient
from chatgate.llm.ollama import OllamaClient
from chatgate.llm.openai_compat import OpenAICompatibleClient


class ProviderTag(str, Enum):
    """Supported generation providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    GROQ = "groq"
    PERPLEXITY = "perplexity"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"


# (provider-native model id, api key or None, timeout seconds) -> client
ClientFactory = Callable[[str, str | None, float], LLMClient]


@dataclass(frozen=True)
class ProviderSpec:
    """Static description of one provider."""

    tag: ProviderTag
    env_var: str | None
    requires_key: bool
    factory: ClientFactory


def _openai_compatible(base_url: str | None, **headers: str) -> ClientFactory:
    def factory(model_id: str, api_key: str | None, timeout: float) -> LLMClient:
        return OpenAICompatibleClient(
            model=model_id,
            base_url=base_url,
            api_key=api_key or "none",
            timeout=timeout,
            default_headers=headers or None,
        )

    return factory


def _anthropic(model_id: str, api_key: str | None, timeout: float) -> LLMClient:
    return AnthropicClient(api_key=api_key or "", model=model_id, timeout=timeout)


def _ollama(model_id: str, api_key: str | None, timeout: float) -> LLMClient:
    return OllamaClient(model=model_id, api_key=api_key, timeout=timeout)


PROVIDERS: dict[ProviderTag, ProviderSpec] = {
    ProviderTag.OPENAI: ProviderSpec(
        tag=ProviderTag.OPENAI,
        env_var="OPENAI_API_KEY",
        requires_key=True,
        factory=_openai_compatible(None),
    ),
    ProviderTag.ANTHROPIC: ProviderSpec(
        tag=ProviderTag.ANTHROPIC,
        env_var="ANTHROPIC_API_KEY",
        requires_key=True,
        factory=_anthropic,
    ),
    ProviderTag.GEMINI: ProviderSpec(
        tag=ProviderTag.GEMINI,
        env_var="GOOGLE_GENERATIVE_AI_API_KEY",
        requires_key=True,
        factory=_openai_compatible("https://generativelanguage.googleapis.com/v1beta/openai/"),
    ),
    ProviderTag.GROQ: ProviderSpec(
        tag=ProviderTag.GROQ,
        env_var="GROQ_API_KEY",
        requires_key=True,
        factory=_openai_compatible("https://api.groq.com/openai/v1"),
    ),
    ProviderTag.PERPLEXITY: ProviderSpec(
        tag=ProviderTag.PERPLEXITY,
        env_var="PERPLEXITY_API_KEY",
        requires_key=True,
        factory=_openai_compatible("https://api.perplexity.ai"),
    ),
    ProviderTag.OPENROUTER: ProviderSpec(
        tag=ProviderTag.OPENROUTER,
        env_var="OPENROUTER_API_KEY",
        requires_key=True,
        factory=_openai_compatible(
            "https://openrouter.ai/api/v1",
            **{"HTTP-Referer": "https://github.com/chatgate", "X-Title": "chatgate"},
        ),
    ),
    ProviderTag.OLLAMA: ProviderSpec(
        tag=ProviderTag.OLLAMA,
        env_var=None,
        requires_key=False,
        factory=_ollama,
    ),
}
