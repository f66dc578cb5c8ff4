"""Conversation data model and conversion to backend messages.

Usage::

    from chatgate.conversation.adapter import decode_messages, to_backend_format

    messages = decode_messages(request_body["messages"])
    backend_messages = to_backend_format(messages, system_prompt="Be brief.")
"""

from chatgate.conversation.adapter import decode_messages, from_backend_output, to_backend_format
from chatgate.conversation.schema import (
    Conversation,
    FilePart,
    Message,
    MessagePart,
    ReasoningPart,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)

__all__ = [
    "Conversation",
    "FilePart",
    "Message",
    "MessagePart",
    "ReasoningPart",
    "TextPart",
    "ToolCallPart",
    "ToolResultPart",
    "decode_messages",
    "from_backend_output",
    "to_backend_format",
]
