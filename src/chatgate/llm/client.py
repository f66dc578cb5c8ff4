"""LLM client protocol and data types."""

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol


@dataclass
class ToolCall:
    """A tool call requested by the LLM.

    ``arguments_json`` is the argument string exactly as the backend produced
    it; ``arguments`` is its parsed form.
    """

    id: str
    name: str
    arguments_json: str = "{}"

    @property
    def arguments(self) -> Any:
        """Parsed arguments (None if the backend sent invalid JSON)."""
        try:
            return json.loads(self.arguments_json) if self.arguments_json else {}
        except json.JSONDecodeError:
            return None


@dataclass
class BackendMessage:
    """A message in the linear role/content form backends expect."""

    role: str  # "system", "user", "assistant", "tool"
    content: str
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None  # For tool response messages
    name: str | None = None  # Tool name for tool response messages
    images: list[str] = field(default_factory=list)  # URLs or data: URIs


@dataclass
class Usage:
    """Token usage counters."""

    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, other: "Usage") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.reasoning_tokens += other.reasoning_tokens

    def to_dict(self) -> dict[str, int]:
        return {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "reasoningTokens": self.reasoning_tokens,
            "totalTokens": self.total_tokens,
        }


ChunkKind = Literal["text", "reasoning", "tool_call", "finish"]


@dataclass
class StreamChunk:
    """One incremental item of a streamed completion.

    A stream yields any number of ``text``/``reasoning`` deltas, complete
    ``tool_call`` chunks, and ends with exactly one ``finish`` chunk carrying
    the normalized finish reason (``stop``, ``length`` or ``tool-calls``)
    and the usage for that call.
    """

    kind: ChunkKind
    text: str = ""
    tool_call: ToolCall | None = None
    finish_reason: str | None = None
    usage: Usage | None = None


def normalize_finish_reason(reason: str | None) -> str:
    """Map provider-specific stop reasons onto stop/length/tool-calls."""
    if reason in ("length", "max_tokens"):
        return "length"
    if reason in ("tool_calls", "tool_use", "function_call"):
        return "tool-calls"
    return "stop"


class LLMClient(Protocol):
    """Protocol for LLM client implementations."""

    model: str

    def stream_complete(
        self,
        messages: list[BackendMessage],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a completion from the LLM.

        Args:
            messages: Conversation history
            tools: Available tools in OpenAI function format
            temperature: Sampling temperature override
            max_tokens: Maximum tokens to generate

        Yields:
            StreamChunk items, ending with a ``finish`` chunk
        """
        ...

    async def close(self) -> None:
        """Release underlying HTTP resources."""
        ...
