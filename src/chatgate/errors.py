"""Error taxonomy for the gateway.

Input and credential errors are raised before a run starts and map to
``400`` responses. Tool errors are folded into the transcript. Backend
errors end a run. Persistence errors are logged and never reach the caller.
"""

from typing import Any


class ChatGateError(Exception):
    """Base class for all gateway errors."""


class InputError(ChatGateError):
    """Malformed request, unknown model or missing required field."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class UnknownModelError(InputError):
    """Requested model identifier is not in the registry."""

    def __init__(self, model_id: str):
        super().__init__(f"Model configuration not found for: {model_id}")
        self.model_id = model_id


class CredentialError(ChatGateError):
    """No usable credential for a provider that requires one."""


class MissingCredentialError(CredentialError):
    """Neither a user key nor a default key exists for the provider."""

    def __init__(self, provider: str):
        super().__init__(f"No API key configured for provider '{provider}'")
        self.provider = provider


class ToolExecutionError(ChatGateError):
    """A tool failed; the message is shown to the model as the tool result."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BackendError(ChatGateError):
    """Transport or provider failure while generating. Fatal to the run."""


class PersistenceError(ChatGateError):
    """The conversation store could not be read or written."""


class ConfigError(ChatGateError):
    """Configuration loading or validation error."""
