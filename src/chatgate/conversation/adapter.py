"""Conversion between stored messages and backend wire messages.

Decoding is lenient: a malformed message or a part the backend cannot
represent is dropped with a warning, never failing the request.
"""

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from pydantic import TypeAdapter, ValidationError

from chatgate.conversation.schema import (
    FilePart,
    Message,
    MessagePart,
    ReasoningPart,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from chatgate.llm.client import BackendMessage, ToolCall

logger = logging.getLogger(__name__)

_PART_ADAPTER: TypeAdapter[Any] = TypeAdapter(MessagePart)

UNEXECUTED_TOOL_CALL = "Error: tool call was not executed"


def decode_messages(raw: Iterable[Any]) -> list[Message]:
    """Validate transport messages, dropping anything malformed.

    Each item needs a ``role`` and either a ``parts`` list or a plain string
    ``content``. Invalid parts are dropped individually.

    Args:
        raw: Items from the request body

    Returns:
        Validated messages in input order
    """
    messages: list[Message] = []

    for index, item in enumerate(raw):
        if isinstance(item, Message):
            messages.append(item)
            continue
        if not isinstance(item, dict):
            logger.warning(f"Dropping message {index}: expected an object, got {type(item).__name__}")
            continue

        raw_parts = item.get("parts")
        if raw_parts is None and isinstance(item.get("content"), str):
            raw_parts = [{"type": "text", "content": item["content"]}]
        if not isinstance(raw_parts, list):
            logger.warning(f"Dropping parts of message {index}: 'parts' is not a list")
            raw_parts = []

        parts: list[Any] = []
        for part_index, raw_part in enumerate(raw_parts):
            try:
                parts.append(_PART_ADAPTER.validate_python(raw_part))
            except ValidationError as e:
                logger.warning(
                    f"Dropping part {part_index} of message {index}: "
                    f"{e.error_count()} validation error(s)"
                )

        envelope = {k: v for k, v in item.items() if k not in ("parts", "content")}
        envelope["parts"] = parts
        try:
            messages.append(Message.model_validate(envelope))
        except ValidationError as e:
            logger.warning(f"Dropping message {index}: {e.error_count()} validation error(s)")

    return messages


@dataclass
class _Segment:
    """One assistant turn: text and tool calls, then their results."""

    text: list[str] = field(default_factory=list)
    calls: list[ToolCall] = field(default_factory=list)
    results: dict[str, ToolResultPart] = field(default_factory=dict)
    late_results: list[ToolResultPart] = field(default_factory=list)

    @property
    def has_results(self) -> bool:
        return bool(self.results or self.late_results)

    def emit(self, out: list[BackendMessage]) -> None:
        if not self.text and not self.calls:
            if self.late_results:
                out.extend(_tool_message(r) for r in self.late_results)
            return

        out.append(
            BackendMessage(
                role="assistant",
                content="".join(self.text),
                tool_calls=list(self.calls) or None,
            )
        )
        for call in self.calls:
            result = self.results.get(call.id)
            if result is None:
                logger.warning(f"Tool call '{call.id}' has no result, marking it unexecuted")
                out.append(
                    BackendMessage(
                        role="tool",
                        content=UNEXECUTED_TOOL_CALL,
                        tool_call_id=call.id,
                        name=call.name,
                    )
                )
            else:
                out.append(_tool_message(result))
        out.extend(_tool_message(r) for r in self.late_results)


def _tool_output_text(part: ToolResultPart) -> str:
    if part.is_error:
        return f"Error: {part.error_text}"
    if isinstance(part.output, str):
        return part.output
    return json.dumps(part.output, ensure_ascii=False, default=str)


def _tool_message(part: ToolResultPart) -> BackendMessage:
    return BackendMessage(
        role="tool",
        content=_tool_output_text(part),
        tool_call_id=part.call_id,
        name=part.tool_name,
    )


def _tool_call(part: ToolCallPart) -> ToolCall:
    raw = part.raw_input
    if raw is None:
        raw = json.dumps(part.input if part.input is not None else {})
    return ToolCall(id=part.call_id, name=part.tool_name, arguments_json=raw)


def to_backend_format(
    messages: list[Message],
    system_prompt: str | None = None,
    multimodal: bool = False,
) -> list[BackendMessage]:
    """Convert stored messages into the linear list a backend expects.

    Args:
        messages: Conversation history
        system_prompt: Optional system prompt to prepend
        multimodal: Whether image attachments can be sent

    Returns:
        Backend messages
    """
    out: list[BackendMessage] = []
    if system_prompt:
        out.append(BackendMessage(role="system", content=system_prompt))

    seen_calls: set[str] = set()

    for message in messages:
        if message.role == "assistant":
            _encode_assistant(message, out, seen_calls)
            continue

        texts: list[str] = []
        images: list[str] = []
        for part in message.parts:
            if isinstance(part, TextPart):
                texts.append(part.content)
            elif isinstance(part, FilePart) and multimodal and part.media_type.startswith("image/"):
                images.append(part.url)
            else:
                logger.warning(
                    f"Dropping unsupported '{part.type}' part from {message.role} message {message.id}"
                )

        if texts or images:
            out.append(BackendMessage(role=message.role, content="\n".join(texts), images=images))

    return out


def _encode_assistant(
    message: Message, out: list[BackendMessage], seen_calls: set[str]
) -> None:
    segment = _Segment()

    for part in message.parts:
        if isinstance(part, TextPart | ToolCallPart) and segment.has_results:
            segment.emit(out)
            segment = _Segment()

        if isinstance(part, TextPart):
            segment.text.append(part.content)
        elif isinstance(part, ToolCallPart):
            segment.calls.append(_tool_call(part))
            seen_calls.add(part.call_id)
        elif isinstance(part, ToolResultPart):
            if part.call_id not in seen_calls:
                logger.warning(f"Dropping tool result for unknown call '{part.call_id}'")
            elif any(c.id == part.call_id for c in segment.calls):
                segment.results[part.call_id] = part
            else:
                segment.late_results.append(part)
        elif isinstance(part, ReasoningPart):
            logger.debug(f"Omitting reasoning part from assistant message {message.id}")
        else:
            logger.warning(
                f"Dropping unsupported '{part.type}' part from assistant message {message.id}"
            )

    segment.emit(out)


def from_backend_output(
    text: str = "",
    reasoning: str = "",
    tool_calls: list[ToolCall] | None = None,
) -> list[MessagePart]:
    """Convert one generation step's output into storable parts.

    Tool calls keep the backend's call id and verbatim argument JSON.
    """
    parts: list[MessagePart] = []
    if reasoning:
        parts.append(ReasoningPart(content=reasoning))
    if text:
        parts.append(TextPart(content=text))
    for call in tool_calls or []:
        parts.append(
            ToolCallPart(
                tool_name=call.name,
                call_id=call.id,
                input=call.arguments,
                raw_input=call.arguments_json,
            )
        )
    return parts
