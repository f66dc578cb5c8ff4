"""Base client for OpenAI-compatible chat completion APIs."""

import logging
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from chatgate.llm.client import (
    BackendMessage,
    StreamChunk,
    ToolCall,
    Usage,
    normalize_finish_reason,
)

logger = logging.getLogger(__name__)


class OpenAICompatibleClient:
    """LLM client for any OpenAI-compatible ``/chat/completions`` endpoint.

    OpenAI, Gemini, Groq, Perplexity, OpenRouter and Ollama all expose this
    API shape. The client is bound to one model and one credential and holds
    no state between calls beyond the SDK's connection pool.
    """

    def __init__(
        self,
        model: str,
        base_url: str | None = None,
        api_key: str = "none",
        timeout: float = 120,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        """Initialise the client.

        Args:
            model: Provider-native model name.
            base_url: OpenAI-compatible endpoint (None = api.openai.com).
            api_key: API key (some backends ignore this but the SDK requires one).
            timeout: Request timeout in seconds.
            default_headers: Extra headers sent with every request.
        """
        self.model = model
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
            default_headers=default_headers,
        )

    def _convert_messages(self, messages: list[BackendMessage]) -> list[dict[str, Any]]:
        """Convert internal BackendMessage format to OpenAI format."""
        openai_messages: list[dict[str, Any]] = []

        for msg in messages:
            content: Any = msg.content
            if msg.images:
                content = [{"type": "text", "text": msg.content}] if msg.content else []
                content.extend(
                    {"type": "image_url", "image_url": {"url": url}} for url in msg.images
                )

            message_dict: dict[str, Any] = {
                "role": msg.role,
                "content": content,
            }

            if msg.tool_calls:
                message_dict["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": tc.arguments_json,
                        },
                    }
                    for tc in msg.tool_calls
                ]

            if msg.tool_call_id:
                message_dict["tool_call_id"] = msg.tool_call_id
            if msg.name:
                message_dict["name"] = msg.name

            openai_messages.append(message_dict)

        return openai_messages

    @staticmethod
    def _parse_usage(usage: Any) -> Usage:
        """Parse a usage block from the final stream chunk."""
        if usage is None:
            return Usage()
        details = getattr(usage, "completion_tokens_details", None)
        return Usage(
            input_tokens=usage.prompt_tokens or 0,
            output_tokens=usage.completion_tokens or 0,
            reasoning_tokens=getattr(details, "reasoning_tokens", None) or 0,
        )

    async def stream_complete(
        self,
        messages: list[BackendMessage],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion.

        Tool call fragments are accumulated per index and emitted whole, in
        index order, once the stream ends.

        Args:
            messages: Conversation history.
            tools: Available tools in OpenAI function format.
            temperature: Sampling temperature override.
            max_tokens: Maximum tokens to generate.

        Yields:
            StreamChunk items, ending with a ``finish`` chunk.
        """
        params: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "stream": True,
            "stream_options": {"include_usage": True},
        }

        if tools:
            params["tools"] = tools
            params["tool_choice"] = "auto"
        if temperature is not None:
            params["temperature"] = temperature
        if max_tokens:
            params["max_tokens"] = max_tokens

        stream = await self.client.chat.completions.create(**params)

        pending: dict[int, dict[str, str]] = {}
        finish_reason: str | None = None
        usage = Usage()

        try:
            async for chunk in stream:
                if chunk.usage is not None:
                    usage = self._parse_usage(chunk.usage)
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta

                # Reasoning-capable providers put thinking tokens in a non-standard field
                reasoning = getattr(delta, "reasoning_content", None) or getattr(
                    delta, "reasoning", None
                )
                if reasoning:
                    yield StreamChunk(kind="reasoning", text=reasoning)
                if delta.content:
                    yield StreamChunk(kind="text", text=delta.content)

                for tc in delta.tool_calls or []:
                    slot = pending.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                    if tc.id:
                        slot["id"] = tc.id
                    if tc.function is not None:
                        if tc.function.name:
                            slot["name"] += tc.function.name
                        if tc.function.arguments:
                            slot["arguments"] += tc.function.arguments

                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        finally:
            await stream.close()

        for index in sorted(pending):
            slot = pending[index]
            yield StreamChunk(
                kind="tool_call",
                tool_call=ToolCall(
                    id=slot["id"] or f"call_{index}",
                    name=slot["name"],
                    arguments_json=slot["arguments"] or "{}",
                ),
            )

        yield StreamChunk(
            kind="finish",
            finish_reason=normalize_finish_reason(finish_reason),
            usage=usage,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()
