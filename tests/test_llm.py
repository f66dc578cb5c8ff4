"""Tests for the streaming LLM clients."""

import json

import httpx
import openai
import pytest
import respx
from httpx import Response

from chatgate.errors import BackendError
from chatgate.llm.anthropic import AnthropicClient
from chatgate.llm.client import BackendMessage, ToolCall, normalize_finish_reason
from chatgate.llm.ollama import OllamaClient
from chatgate.llm.openai_compat import OpenAICompatibleClient

BASE_URL = "https://llm.test/v1"


def sse(*payloads: dict | str) -> bytes:
    lines = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        lines.append(f"data: {data}\n\n")
    return "".join(lines).encode()


def chunk(delta: dict, finish_reason: str | None = None) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": "gpt-4o",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


USAGE_CHUNK = {
    "id": "chatcmpl-1",
    "object": "chat.completion.chunk",
    "created": 1700000000,
    "model": "gpt-4o",
    "choices": [],
    "usage": {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15},
}


@pytest.fixture
def openai_client():
    """Create an OpenAI-compatible client for testing."""
    return OpenAICompatibleClient(model="gpt-4o", base_url=BASE_URL, api_key="sk-test")


async def collect(stream):
    return [c async for c in stream]


@pytest.mark.asyncio
@respx.mock
async def test_openai_streams_text_and_usage(openai_client):
    body = sse(
        chunk({"role": "assistant", "content": "Hel"}),
        chunk({"content": "lo"}),
        chunk({}, finish_reason="stop"),
        USAGE_CHUNK,
        "[DONE]",
    )
    route = respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=Response(200, content=body, headers={"content-type": "text/event-stream"})
    )

    chunks = await collect(
        openai_client.stream_complete([BackendMessage(role="user", content="Hi")])
    )

    assert [c.text for c in chunks if c.kind == "text"] == ["Hel", "lo"]
    finish = chunks[-1]
    assert finish.kind == "finish"
    assert finish.finish_reason == "stop"
    assert finish.usage.input_tokens == 12
    assert finish.usage.output_tokens == 3

    request = json.loads(route.calls.last.request.content)
    assert request["model"] == "gpt-4o"
    assert request["stream"] is True
    assert "tools" not in request


@pytest.mark.asyncio
@respx.mock
async def test_openai_accumulates_tool_call_fragments(openai_client):
    body = sse(
        chunk(
            {
                "tool_calls": [
                    {
                        "index": 0,
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "calculate", "arguments": ""},
                    }
                ]
            }
        ),
        chunk({"tool_calls": [{"index": 0, "function": {"arguments": '{"expression"'}}]}),
        chunk({"tool_calls": [{"index": 0, "function": {"arguments": ': "2+2"}'}}]}),
        chunk({}, finish_reason="tool_calls"),
        "[DONE]",
    )
    respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=Response(200, content=body, headers={"content-type": "text/event-stream"})
    )

    tools = [{"type": "function", "function": {"name": "calculate", "parameters": {}}}]
    chunks = await collect(
        openai_client.stream_complete([BackendMessage(role="user", content="2+2")], tools=tools)
    )

    calls = [c.tool_call for c in chunks if c.kind == "tool_call"]
    assert len(calls) == 1
    assert calls[0].id == "call_1"
    assert calls[0].name == "calculate"
    assert calls[0].arguments_json == '{"expression": "2+2"}'
    assert chunks[-1].finish_reason == "tool-calls"


@pytest.mark.asyncio
@respx.mock
async def test_openai_sends_tool_history_verbatim(openai_client):
    route = respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=Response(
            200,
            content=sse(chunk({"content": "4"}, finish_reason="stop"), "[DONE]"),
            headers={"content-type": "text/event-stream"},
        )
    )
    raw = '{"expression":"2+2"}'
    history = [
        BackendMessage(role="user", content="2+2?", images=["data:image/png;base64,AA"]),
        BackendMessage(
            role="assistant",
            content="",
            tool_calls=[ToolCall(id="call_1", name="calculate", arguments_json=raw)],
        ),
        BackendMessage(role="tool", content='{"result": 4}', tool_call_id="call_1"),
    ]

    await collect(openai_client.stream_complete(history, temperature=0.2))

    request = json.loads(route.calls.last.request.content)
    user, assistant, tool = request["messages"]
    assert user["content"][1] == {
        "type": "image_url",
        "image_url": {"url": "data:image/png;base64,AA"},
    }
    assert assistant["tool_calls"][0]["function"]["arguments"] == raw
    assert tool["tool_call_id"] == "call_1"
    assert request["temperature"] == 0.2


@pytest.mark.asyncio
@respx.mock
async def test_openai_http_error_raises(openai_client):
    respx.post(f"{BASE_URL}/chat/completions").mock(
        return_value=Response(401, json={"error": {"message": "bad key"}})
    )

    with pytest.raises(openai.APIStatusError):
        await collect(openai_client.stream_complete([BackendMessage(role="user", content="x")]))


def test_ollama_defaults():
    client = OllamaClient(model="llama3.1")

    assert client.model == "llama3.1"
    assert str(client.client.base_url).startswith("http://localhost:11434/v1")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("stop", "stop"),
        ("end_turn", "stop"),
        (None, "stop"),
        ("length", "length"),
        ("max_tokens", "length"),
        ("tool_calls", "tool-calls"),
        ("tool_use", "tool-calls"),
    ],
)
def test_normalize_finish_reason(raw, expected):
    assert normalize_finish_reason(raw) == expected


ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"


@pytest.fixture
def anthropic_client():
    return AnthropicClient(api_key="sk-ant-test", model="claude-sonnet-4-20250514")


@pytest.mark.asyncio
@respx.mock
async def test_anthropic_streams_text_and_tool_use(anthropic_client):
    body = sse(
        {"type": "message_start", "message": {"usage": {"input_tokens": 20}}},
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "On it"}},
        {"type": "content_block_stop", "index": 0},
        {
            "type": "content_block_start",
            "index": 1,
            "content_block": {"type": "tool_use", "id": "toolu_1", "name": "search", "input": {}},
        },
        {
            "type": "content_block_delta",
            "index": 1,
            "delta": {"type": "input_json_delta", "partial_json": '{"query": '},
        },
        {
            "type": "content_block_delta",
            "index": 1,
            "delta": {"type": "input_json_delta", "partial_json": '"python"}'},
        },
        {"type": "content_block_stop", "index": 1},
        {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 9}},
        {"type": "message_stop"},
    )
    route = respx.post(ANTHROPIC_URL).mock(
        return_value=Response(200, content=body, headers={"content-type": "text/event-stream"})
    )

    chunks = await collect(
        anthropic_client.stream_complete(
            [
                BackendMessage(role="system", content="Be brief."),
                BackendMessage(role="user", content="Search python"),
            ],
            tools=[{"type": "function", "function": {"name": "search", "description": "Search"}}],
        )
    )

    assert [c.kind for c in chunks] == ["text", "tool_call", "finish"]
    assert chunks[0].text == "On it"
    assert chunks[1].tool_call.arguments_json == '{"query": "python"}'
    assert chunks[2].finish_reason == "tool-calls"
    assert chunks[2].usage.input_tokens == 20
    assert chunks[2].usage.output_tokens == 9

    request = route.calls.last.request
    assert request.headers["x-api-key"] == "sk-ant-test"
    payload = json.loads(request.content)
    assert payload["system"] == "Be brief."
    assert payload["tools"][0]["name"] == "search"
    assert payload["tools"][0]["input_schema"] == {"type": "object", "properties": {}}


@pytest.mark.asyncio
@respx.mock
async def test_anthropic_error_event_raises(anthropic_client):
    body = sse(
        {"type": "message_start", "message": {"usage": {"input_tokens": 1}}},
        {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}},
    )
    respx.post(ANTHROPIC_URL).mock(return_value=Response(200, content=body))

    with pytest.raises(BackendError, match="overloaded_error"):
        await collect(anthropic_client.stream_complete([BackendMessage(role="user", content="x")]))


@pytest.mark.asyncio
@respx.mock
async def test_anthropic_http_error_raises(anthropic_client):
    respx.post(ANTHROPIC_URL).mock(return_value=Response(529, json={"type": "error"}))

    with pytest.raises(httpx.HTTPStatusError):
        await collect(anthropic_client.stream_complete([BackendMessage(role="user", content="x")]))


def test_anthropic_groups_tool_results_and_images(anthropic_client):
    system, messages = anthropic_client._convert_messages(
        [
            BackendMessage(role="system", content="sys"),
            BackendMessage(role="user", content="look", images=["data:image/png;base64,QUJD"]),
            BackendMessage(
                role="assistant",
                content="",
                tool_calls=[
                    ToolCall(id="t1", name="a", arguments_json='{"x": 1}'),
                    ToolCall(id="t2", name="b", arguments_json="{}"),
                ],
            ),
            BackendMessage(role="tool", content="one", tool_call_id="t1"),
            BackendMessage(role="tool", content="two", tool_call_id="t2"),
        ]
    )

    assert system == "sys"
    assert messages[0]["content"][1]["source"] == {
        "type": "base64",
        "media_type": "image/png",
        "data": "QUJD",
    }
    assert messages[1]["content"][0]["input"] == {"x": 1}
    assert messages[2]["role"] == "user"
    assert [b["tool_use_id"] for b in messages[2]["content"]] == ["t1", "t2"]
