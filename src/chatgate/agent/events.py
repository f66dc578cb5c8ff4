"""Events and results produced by the orchestration loop."""

from dataclasses import dataclass, field
from typing import Any, Literal, Union

from chatgate.conversation.schema import Message, ToolResultPart
from chatgate.llm.client import ToolCall, Usage

FinishReason = Literal["stop", "length", "tool-limit", "error"]


@dataclass
class Step:
    """One generate-then-optionally-act iteration."""

    number: int
    text: str = ""
    reasoning: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResultPart] = field(default_factory=list)
    finish_reason: str | None = None
    usage: Usage = field(default_factory=Usage)


@dataclass
class RunResult:
    """Terminal artifact of one run."""

    messages: list[Message]
    finish_reason: FinishReason
    usage: Usage
    steps: list[Step] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.finish_reason == "error"


@dataclass(frozen=True)
class PartDelta:
    """Incremental text or reasoning from the backend."""

    kind: Literal["text", "reasoning"]
    delta: str
    step: int


@dataclass(frozen=True)
class ToolCallEvent:
    """The model requested a tool call."""

    call_id: str
    tool_name: str
    input: Any
    step: int


@dataclass(frozen=True)
class ToolResultEvent:
    """A tool call completed, successfully or with an error."""

    call_id: str
    tool_name: str
    output: Any
    error_text: str | None
    step: int


@dataclass(frozen=True)
class RunFinished:
    """Terminal event; always the last event of a run."""

    result: RunResult


AgentEvent = Union[PartDelta, ToolCallEvent, ToolResultEvent, RunFinished]
