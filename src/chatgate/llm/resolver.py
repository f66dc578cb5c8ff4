"""Resolve a public model identifier to a credentialed backend client."""

import logging
import os
from collections.abc import Mapping

from chatgate.errors import MissingCredentialError
from chatgate.llm.client import LLMClient
from chatgate.llm.providers import PROVIDERS, ProviderSpec, ProviderTag
from chatgate.llm.registry import ModelConfig, ModelRegistry

logger = logging.getLogger(__name__)


class ProviderResolver:
    """Builds a fresh backend per request from the registry and credentials.

    Default credentials are captured once at construction: an explicit
    ``default_keys`` entry wins, otherwise the provider's environment
    variable is used. Resolution performs no network I/O.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        default_keys: Mapping[str, str] | None = None,
        timeout: float = 120,
        providers: Mapping[ProviderTag, ProviderSpec] = PROVIDERS,
    ):
        """Initialize the resolver.

        Args:
            registry: Model registry
            default_keys: Process-wide API keys by provider tag
            timeout: Per-request timeout passed to backend clients
            providers: Provider table (overridable for tests)
        """
        self.registry = registry
        self.timeout = timeout
        self.providers = providers
        self.default_keys: dict[ProviderTag, str] = {}

        configured = default_keys or {}
        for tag, spec in providers.items():
            key = configured.get(tag.value)
            if not key and spec.env_var:
                key = os.environ.get(spec.env_var)
            if key:
                self.default_keys[tag] = key

    def select_credential(
        self, tag: ProviderTag, user_credentials: Mapping[str, str] | None
    ) -> str | None:
        """Pick the user's key for ``tag`` if non-empty, else the default.

        Raises:
            MissingCredentialError: If no key exists and the provider needs one
        """
        user_key = ((user_credentials or {}).get(tag.value) or "").strip()
        if user_key:
            return user_key

        default_key = self.default_keys.get(tag)
        if default_key:
            return default_key

        if self.providers[tag].requires_key:
            raise MissingCredentialError(tag.value)
        return None

    def resolve(
        self, model_id: str, user_credentials: Mapping[str, str] | None = None
    ) -> tuple[ModelConfig, LLMClient]:
        """Resolve a model identifier into its config and a bound backend.

        Args:
            model_id: Public model identifier
            user_credentials: The user's API keys by provider tag

        Returns:
            Tuple of (model config, backend client)

        Raises:
            UnknownModelError: If the model is not registered
            MissingCredentialError: If no usable key exists
        """
        model = self.registry.get(model_id)
        tag = ModelRegistry.provider_tag(model)
        api_key = self.select_credential(tag, user_credentials)

        logger.debug(f"Resolved model '{model_id}' to {tag.value}:{model.model_id}")
        backend = self.providers[tag].factory(model.model_id, api_key, self.timeout)
        return model, backend
