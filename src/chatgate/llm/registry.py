"""Static catalog of selectable models."""

import logging
from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel, Field

from chatgate.errors import ConfigError, UnknownModelError
from chatgate.llm.providers import ProviderTag

logger = logging.getLogger(__name__)


class ModelConfig(BaseModel):
    """One selectable model and its capabilities."""

    value: str = Field(description="Public model identifier sent by clients")
    label: str = Field(default="", description="Human-readable name")
    provider: str = Field(description="Provider tag (see ProviderTag)")
    model_id: str = Field(description="Provider-native model identifier")
    supports_tools: bool = Field(default=False, description="Model can call tools")
    reasoning: bool = Field(default=False, description="Model emits reasoning tokens")
    fast: bool = Field(default=False, description="Low-latency model")
    multimodal: bool = Field(default=False, description="Model accepts image input")


BUILTIN_MODELS: list[ModelConfig] = [
    ModelConfig(
        value="gpt-4o",
        label="GPT-4o",
        provider="openai",
        model_id="gpt-4o",
        supports_tools=True,
        multimodal=True,
    ),
    ModelConfig(
        value="gpt-4o-mini",
        label="GPT-4o mini",
        provider="openai",
        model_id="gpt-4o-mini",
        supports_tools=True,
        fast=True,
        multimodal=True,
    ),
    ModelConfig(
        value="o4-mini",
        label="o4-mini",
        provider="openai",
        model_id="o4-mini",
        supports_tools=True,
        reasoning=True,
    ),
    ModelConfig(
        value="gemini-2.5-flash",
        label="Gemini 2.5 Flash",
        provider="gemini",
        model_id="gemini-2.5-flash",
        supports_tools=True,
        fast=True,
        multimodal=True,
    ),
    ModelConfig(
        value="gemini-2.5-pro",
        label="Gemini 2.5 Pro",
        provider="gemini",
        model_id="gemini-2.5-pro",
        supports_tools=True,
        reasoning=True,
        multimodal=True,
    ),
    ModelConfig(
        value="claude-sonnet-4",
        label="Claude Sonnet 4",
        provider="anthropic",
        model_id="claude-sonnet-4-20250514",
        supports_tools=True,
        multimodal=True,
    ),
    ModelConfig(
        value="llama-3.3-70b",
        label="Llama 3.3 70B (Groq)",
        provider="groq",
        model_id="llama-3.3-70b-versatile",
        supports_tools=True,
        fast=True,
    ),
    ModelConfig(
        value="sonar",
        label="Perplexity Sonar",
        provider="perplexity",
        model_id="sonar",
    ),
    ModelConfig(
        value="deepseek-r1",
        label="DeepSeek R1 (OpenRouter)",
        provider="openrouter",
        model_id="deepseek/deepseek-r1",
        reasoning=True,
    ),
    ModelConfig(
        value="llama3.1-local",
        label="Llama 3.1 (Ollama)",
        provider="ollama",
        model_id="llama3.1",
        supports_tools=True,
    ),
]


class ModelRegistry:
    """Read-only lookup from public model identifier to ModelConfig.

    Provider tags are validated when the registry is built. An entry naming
    an unknown provider either fails the load (``reject``) or is rebound to
    ``fallback_provider`` with a warning (``fallback``).
    """

    def __init__(
        self,
        models: Iterable[ModelConfig],
        unknown_provider: Literal["reject", "fallback"] = "reject",
        fallback_provider: str | None = None,
    ):
        if unknown_provider == "fallback":
            if fallback_provider is None or not _is_known(fallback_provider):
                raise ConfigError(
                    f"unknown_provider='fallback' requires a valid fallback_provider, "
                    f"got {fallback_provider!r}"
                )

        self._models: dict[str, ModelConfig] = {}
        for model in models:
            if not _is_known(model.provider):
                if unknown_provider == "reject":
                    raise ConfigError(
                        f"Model '{model.value}' names unknown provider '{model.provider}'"
                    )
                logger.warning(
                    f"Model '{model.value}' names unknown provider '{model.provider}', "
                    f"using fallback provider '{fallback_provider}'"
                )
                model = model.model_copy(update={"provider": fallback_provider})
            self._models[model.value] = model

    def get(self, value: str) -> ModelConfig:
        """Look up a model by public identifier.

        Raises:
            UnknownModelError: If the identifier is not registered
        """
        try:
            return self._models[value]
        except KeyError:
            raise UnknownModelError(value) from None

    def __contains__(self, value: object) -> bool:
        return value in self._models

    def __len__(self) -> int:
        return len(self._models)

    def list_models(self) -> list[ModelConfig]:
        """All registered models in registration order."""
        return list(self._models.values())

    @staticmethod
    def provider_tag(model: ModelConfig) -> ProviderTag:
        """The validated provider tag of a registered model."""
        return ProviderTag(model.provider)


def _is_known(provider: str) -> bool:
    return provider in {tag.value for tag in ProviderTag}


def build_registry(
    extra_models: Iterable[ModelConfig] = (),
    include_builtin: bool = True,
    unknown_provider: Literal["reject", "fallback"] = "reject",
    fallback_provider: str | None = None,
) -> ModelRegistry:
    """Build the process-wide registry from built-ins plus configured entries.

    Configured entries replace built-ins that share the same ``value``.
    """
    models: dict[str, ModelConfig] = {}
    if include_builtin:
        models.update((m.value, m) for m in BUILTIN_MODELS)
    models.update((m.value, m) for m in extra_models)
    return ModelRegistry(
        models.values(),
        unknown_provider=unknown_provider,
        fallback_provider=fallback_provider,
    )
