"""Pydantic models for stored and transported conversations.

Field names are snake_case in Python and camelCase on the wire
(``toolName``, ``callId``, ``errorText``...). Dump with ``by_alias=True``
when sending to clients or storing.
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["user", "assistant", "system"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _Part(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TextPart(_Part):
    """Plain text."""

    type: Literal["text"] = "text"
    content: str = Field(validation_alias=AliasChoices("content", "text"))


class ReasoningPart(_Part):
    """Model reasoning / thinking text."""

    type: Literal["reasoning"] = "reasoning"
    content: str = Field(validation_alias=AliasChoices("content", "text"))


class ToolCallPart(_Part):
    """A tool invocation requested by the model.

    ``raw_input`` holds the argument JSON exactly as the backend produced it,
    so a replay can reconstruct the identical call.
    """

    type: Literal["tool-call"] = "tool-call"
    tool_name: str
    call_id: str
    input: Any = None
    raw_input: str | None = None


class ToolResultPart(_Part):
    """The outcome of a tool call: either ``output`` or ``error_text``."""

    type: Literal["tool-result"] = "tool-result"
    call_id: str
    tool_name: str | None = None
    output: Any = None
    error_text: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error_text is not None


class FilePart(_Part):
    """An attached file, by URL or inline ``data:`` URI."""

    type: Literal["file"] = "file"
    media_type: str
    filename: str | None = None
    url: str


MessagePart = Annotated[
    Union[TextPart, ReasoningPart, ToolCallPart, ToolResultPart, FilePart],
    Field(discriminator="type"),
]


class Message(BaseModel):
    """A single message within a conversation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: Role = Field(frozen=True)
    created_at: datetime = Field(default_factory=_now)
    parts: list[MessagePart] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated text parts."""
        return "".join(p.content for p in self.parts if isinstance(p, TextPart))


class Conversation(BaseModel):
    """A stored conversation. Messages are append-only."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(frozen=True)
    owner_id: str | None = None
    title: str = "New Conversation"
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
