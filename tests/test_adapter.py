"""Tests for message decoding and backend conversion."""

import logging

import pytest
from pydantic import ValidationError

from chatgate.conversation.adapter import (
    UNEXECUTED_TOOL_CALL,
    decode_messages,
    from_backend_output,
    to_backend_format,
)
from chatgate.conversation.schema import (
    FilePart,
    Message,
    ReasoningPart,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from chatgate.llm.client import ToolCall


def test_decode_accepts_parts_and_content_shorthand():
    messages = decode_messages(
        [
            {"id": "m1", "role": "user", "parts": [{"type": "text", "text": "hello"}]},
            {"role": "assistant", "content": "hi there"},
        ]
    )

    assert [m.role for m in messages] == ["user", "assistant"]
    assert messages[0].id == "m1"
    assert messages[0].text == "hello"
    assert messages[1].text == "hi there"


def test_decode_reads_camel_case_parts():
    (message,) = decode_messages(
        [
            {
                "role": "assistant",
                "parts": [
                    {"type": "tool-call", "toolName": "search", "callId": "c1", "input": {"q": 1}},
                    {"type": "tool-result", "callId": "c1", "errorText": "offline"},
                ],
            }
        ]
    )

    call, result = message.parts
    assert isinstance(call, ToolCallPart)
    assert call.tool_name == "search"
    assert isinstance(result, ToolResultPart)
    assert result.is_error


def test_decode_drops_invalid_parts_and_messages(caplog):
    with caplog.at_level(logging.WARNING):
        messages = decode_messages(
            [
                "not a message",
                {"role": "wizard", "parts": []},
                {
                    "role": "user",
                    "parts": [
                        {"type": "text", "content": "kept"},
                        {"type": "hologram", "content": "dropped"},
                        {"type": "file", "filename": "no-url.png"},
                    ],
                },
            ]
        )

    assert len(messages) == 1
    assert [p.type for p in messages[0].parts] == ["text"]
    assert "Dropping" in caplog.text


def test_role_is_frozen():
    message = Message(role="user")

    with pytest.raises(ValidationError):
        message.role = "assistant"
    assert message.role == "user"


def test_round_trip_preserves_text_and_argument_bytes():
    raw = '{ "expression" :"2 + 2",  "note": "spacing kept" }'
    parts = from_backend_output(
        text="Let me compute that.",
        tool_calls=[ToolCall(id="call_9", name="calculate", arguments_json=raw)],
    )
    parts.append(ToolResultPart(call_id="call_9", tool_name="calculate", output={"result": 4}))

    # Through the wire format and back
    stored = Message(role="assistant", parts=parts).model_dump(mode="json", by_alias=True)
    (decoded,) = decode_messages([stored])
    backend = to_backend_format([decoded])

    assert backend[0].role == "assistant"
    assert backend[0].content == "Let me compute that."
    assert backend[0].tool_calls[0].id == "call_9"
    assert backend[0].tool_calls[0].arguments_json == raw
    assert backend[1].role == "tool"
    assert backend[1].tool_call_id == "call_9"


def test_to_backend_format_prepends_system_prompt():
    messages = [Message(role="user", parts=[TextPart(content="hi")])]

    backend = to_backend_format(messages, system_prompt="You are terse.")

    assert [(m.role, m.content) for m in backend] == [
        ("system", "You are terse."),
        ("user", "hi"),
    ]


def test_reasoning_is_not_sent_back():
    message = Message(
        role="assistant",
        parts=[ReasoningPart(content="secret thoughts"), TextPart(content="answer")],
    )

    (backend,) = to_backend_format([message])

    assert backend.content == "answer"


def test_orphan_tool_result_is_dropped(caplog):
    message = Message(
        role="assistant",
        parts=[
            TextPart(content="no calls here"),
            ToolResultPart(call_id="ghost", output="boo"),
        ],
    )

    with caplog.at_level(logging.WARNING):
        backend = to_backend_format([message])

    assert [m.role for m in backend] == ["assistant"]
    assert "ghost" in caplog.text


def test_unanswered_tool_call_gets_placeholder_result():
    message = Message(
        role="assistant",
        parts=[ToolCallPart(tool_name="search", call_id="c1", input={"query": "x"})],
    )

    backend = to_backend_format([message])

    assert backend[0].tool_calls[0].arguments_json == '{"query": "x"}'
    assert backend[1].role == "tool"
    assert backend[1].content == UNEXECUTED_TOOL_CALL


def test_multi_step_assistant_message_splits_into_turns():
    message = Message(
        role="assistant",
        parts=[
            ToolCallPart(tool_name="a", call_id="c1", raw_input="{}"),
            ToolResultPart(call_id="c1", tool_name="a", output="one"),
            TextPart(content="then"),
            ToolCallPart(tool_name="b", call_id="c2", raw_input="{}"),
            ToolResultPart(call_id="c2", tool_name="b", output="two"),
            TextPart(content="done"),
        ],
    )

    backend = to_backend_format([message])

    assert [m.role for m in backend] == ["assistant", "tool", "assistant", "tool", "assistant"]
    assert backend[2].content == "then"
    assert backend[2].tool_calls[0].id == "c2"
    assert backend[4].content == "done"
    assert backend[4].tool_calls is None


def test_files_only_for_multimodal_images():
    message = Message(
        role="user",
        parts=[
            TextPart(content="what is this?"),
            FilePart(media_type="image/png", url="data:image/png;base64,AAAA"),
            FilePart(media_type="application/pdf", url="https://example.com/a.pdf"),
        ],
    )

    (plain,) = to_backend_format([message])
    (multimodal,) = to_backend_format([message], multimodal=True)

    assert plain.images == []
    assert multimodal.images == ["data:image/png;base64,AAAA"]
    assert multimodal.content == "what is this?"


def test_error_results_are_prefixed():
    message = Message(
        role="assistant",
        parts=[
            ToolCallPart(tool_name="t", call_id="c1", raw_input="{}"),
            ToolResultPart(call_id="c1", tool_name="t", error_text="denied"),
        ],
    )

    backend = to_backend_format([message])

    assert backend[1].content == "Error: denied"
