"""Ollama LLM client using the OpenAI-compatible API."""

from chatgate.llm.openai_compat import OpenAICompatibleClient


class OllamaClient(OpenAICompatibleClient):
    """LLM client for a local Ollama server.

    Ollama exposes an OpenAI-compatible ``/v1/chat/completions`` endpoint
    and does not check API keys, so this is a thin wrapper with local
    defaults.
    """

    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:11434/v1",
        api_key: str | None = None,
        timeout: float = 120,
    ) -> None:
        """Initialize Ollama client.

        Args:
            model: Model name (e.g., "qwen2.5:7b")
            base_url: Ollama OpenAI-compatible endpoint
            api_key: Ignored by Ollama; the SDK requires a value
            timeout: Request timeout in seconds
        """
        super().__init__(
            model=model,
            base_url=base_url,
            api_key=api_key or "ollama",
            timeout=timeout,
        )
