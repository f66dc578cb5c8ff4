"""Anthropic Claude LLM client using httpx.

Implements the LLMClient protocol for the Anthropic Messages API.
Uses httpx directly to avoid adding the anthropic SDK as a dependency.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from chatgate.errors import BackendError
from chatgate.llm.client import (
    BackendMessage,
    StreamChunk,
    ToolCall,
    Usage,
    normalize_finish_reason,
)

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com"
ANTHROPIC_API_VERSION = "2023-06-01"


def _image_block(url: str) -> dict[str, Any]:
    """Build an image content block from a URL or a base64 data URI."""
    if url.startswith("data:") and ";base64," in url:
        header, data = url.split(",", 1)
        media_type = header[len("data:") :].split(";", 1)[0]
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": data},
        }
    return {"type": "image", "source": {"type": "url", "url": url}}


class AnthropicClient:
    """LLM client for the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 4096,
        timeout: float = 120,
        base_url: str = ANTHROPIC_API_URL,
    ):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key
            model: Model name (e.g., "claude-sonnet-4-20250514")
            max_tokens: Default max tokens for responses
            timeout: Request timeout in seconds
            base_url: API base URL
        """
        self.model = model
        self.max_tokens = max_tokens

        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_API_VERSION,
                "content-type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
        )

    def _convert_messages(
        self, messages: list[BackendMessage]
    ) -> tuple[str | None, list[dict[str, Any]]]:
        """Convert internal BackendMessage format to Anthropic format.

        Anthropic requires the system message to be separate from the
        messages array, and consecutive tool results to share one user turn.

        Args:
            messages: List of BackendMessage objects

        Returns:
            Tuple of (system_prompt, anthropic_messages)
        """
        system_parts: list[str] = []
        anthropic_messages: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                system_parts.append(msg.content)
                continue

            if msg.role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content,
                }
                previous = anthropic_messages[-1] if anthropic_messages else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    anthropic_messages.append({"role": "user", "content": [block]})
                continue

            content_blocks: list[dict[str, Any]] = []
            if msg.content:
                content_blocks.append({"type": "text", "text": msg.content})
            content_blocks.extend(_image_block(url) for url in msg.images)
            for tc in msg.tool_calls or []:
                content_blocks.append(
                    {
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": tc.arguments or {},
                    }
                )

            anthropic_messages.append({"role": msg.role, "content": content_blocks})

        system_prompt = "\n\n".join(system_parts) if system_parts else None
        return system_prompt, anthropic_messages

    def _convert_tools(self, tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Convert OpenAI function format to Anthropic tool format.

        Args:
            tools: Tools in OpenAI format

        Returns:
            Tools in Anthropic format
        """
        anthropic_tools = []
        for tool in tools:
            func = tool.get("function", tool)
            anthropic_tools.append(
                {
                    "name": func["name"],
                    "description": func.get("description", ""),
                    "input_schema": func.get("parameters", {"type": "object", "properties": {}}),
                }
            )
        return anthropic_tools

    async def stream_complete(
        self,
        messages: list[BackendMessage],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion from Anthropic Claude.

        Args:
            messages: Conversation history
            tools: Available tools in OpenAI function format
            temperature: Sampling temperature override
            max_tokens: Maximum tokens to generate

        Yields:
            StreamChunk items, ending with a ``finish`` chunk
        """
        system_prompt, anthropic_messages = self._convert_messages(messages)

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": anthropic_messages,
            "max_tokens": max_tokens or self.max_tokens,
            "stream": True,
        }

        if system_prompt:
            payload["system"] = system_prompt
        if temperature is not None:
            payload["temperature"] = temperature
        if tools:
            payload["tools"] = self._convert_tools(tools)

        usage = Usage()
        stop_reason: str | None = None
        # Open tool_use blocks keyed by content block index
        blocks: dict[int, dict[str, str]] = {}

        async with self.client.stream("POST", "/v1/messages", json=payload) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue
                data = json.loads(line[6:])
                event_type = data["type"]

                if event_type == "message_start":
                    message_usage = data["message"].get("usage", {})
                    usage.input_tokens = message_usage.get("input_tokens", 0)

                elif event_type == "content_block_start":
                    block = data["content_block"]
                    if block["type"] == "tool_use":
                        blocks[data["index"]] = {
                            "id": block["id"],
                            "name": block["name"],
                            "arguments": "",
                        }

                elif event_type == "content_block_delta":
                    delta = data.get("delta", {})
                    if delta.get("type") == "text_delta":
                        yield StreamChunk(kind="text", text=delta["text"])
                    elif delta.get("type") == "thinking_delta":
                        yield StreamChunk(kind="reasoning", text=delta["thinking"])
                    elif delta.get("type") == "input_json_delta":
                        blocks[data["index"]]["arguments"] += delta["partial_json"]

                elif event_type == "content_block_stop":
                    slot = blocks.pop(data["index"], None)
                    if slot is not None:
                        yield StreamChunk(
                            kind="tool_call",
                            tool_call=ToolCall(
                                id=slot["id"],
                                name=slot["name"],
                                arguments_json=slot["arguments"] or "{}",
                            ),
                        )

                elif event_type == "message_delta":
                    stop_reason = data.get("delta", {}).get("stop_reason") or stop_reason
                    usage.output_tokens = data.get("usage", {}).get(
                        "output_tokens", usage.output_tokens
                    )

                elif event_type == "error":
                    error = data.get("error", {})
                    raise BackendError(
                        f"Anthropic stream error: {error.get('type')}: {error.get('message')}"
                    )

        yield StreamChunk(
            kind="finish",
            finish_reason=normalize_finish_reason(stop_reason),
            usage=usage,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
