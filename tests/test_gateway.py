"""Tests for the request pipeline."""

from contextlib import aclosing

import pytest
from conftest import text_turn, tool_turn

from chatgate.config.schema import AgentConfig, GatewayConfig, ToolsConfig
from chatgate.errors import InputError, MissingCredentialError, UnknownModelError
from chatgate.gateway import ChatGateway
from chatgate.llm.client import ToolCall

BODY = {
    "id": "conv-1",
    "model": "gpt-4o",
    "messages": [{"id": "m1", "role": "user", "content": "hello"}],
}


@pytest.mark.asyncio
async def test_prepare_resolves_model_and_tools(make_gateway):
    gateway, backends = make_gateway()

    prepared = await gateway.prepare(BODY, user_id=None)

    assert prepared.model.value == "gpt-4o"
    assert prepared.backend is backends[0]
    assert "calculate" in prepared.agent.tools
    assert "deepresearch" not in prepared.agent.tools
    assert prepared.agent.max_steps == 20
    assert prepared.messages[0].text == "hello"


@pytest.mark.asyncio
async def test_prepare_honours_deepresearch_and_tool_flags(make_gateway):
    config = GatewayConfig(tools=ToolsConfig(search=False, scrape=False))
    gateway, _ = make_gateway(config)

    prepared = await gateway.prepare({**BODY, "deepresearch": True})

    assert "deepresearch" in prepared.agent.tools
    assert "search" not in prepared.agent.tools
    assert "scrape" not in prepared.agent.tools


@pytest.mark.asyncio
async def test_model_without_tools_gets_no_tools(make_gateway):
    gateway, _ = make_gateway()
    gateway.resolver.default_keys.update(
        {tag: "key" for tag in gateway.resolver.providers}
    )

    prepared = await gateway.prepare({**BODY, "model": "sonar", "deepresearch": True})

    assert prepared.agent.tools == {}


@pytest.mark.asyncio
async def test_prepare_errors(make_gateway):
    gateway, backends = make_gateway()

    with pytest.raises(InputError) as exc_info:
        await gateway.prepare({"id": "c", "messages": []})
    assert exc_info.value.details

    with pytest.raises(UnknownModelError):
        await gateway.prepare({**BODY, "model": "nope"})

    with pytest.raises(MissingCredentialError):
        await gateway.prepare({**BODY, "model": "gemini-2.5-flash"})

    assert backends == []


@pytest.mark.asyncio
async def test_stream_persists_after_finish(make_gateway):
    gateway, backends = make_gateway()
    prepared = await gateway.prepare(BODY, user_id="u1")

    events = [sse async for sse in gateway.stream(prepared)]

    assert events[-1]["event"] == "finish"
    assert backends[0].closed
    conversation = gateway.store.get_conversation("conv-1")
    assert [m.text for m in conversation.messages] == ["hello", "4"]


@pytest.mark.asyncio
async def test_full_tool_round_trip(make_gateway):
    call = ToolCall(id="call_1", name="calculate", arguments_json='{"expression":"2+2"}')
    gateway, _ = make_gateway(turns=[tool_turn(call), text_turn("4")])
    prepared = await gateway.prepare(BODY, user_id="u1")

    kinds = [sse["event"] async for sse in gateway.stream(prepared)]

    assert kinds == ["tool-call", "tool-result", "part-delta", "finish"]
    stored = gateway.store.get_conversation("conv-1").messages[-1]
    assert [p.type for p in stored.parts] == ["tool-call", "tool-result", "text"]
    assert stored.parts[0].raw_input == '{"expression":"2+2"}'


async def _cancel_after_first_event(gateway: ChatGateway) -> None:
    prepared = await gateway.prepare(BODY, user_id="u1")
    async with aclosing(gateway.stream(prepared)) as stream:
        async for _sse in stream:
            break


@pytest.mark.asyncio
async def test_cancelled_run_is_not_saved_by_default(make_gateway):
    gateway, backends = make_gateway(turns=[text_turn("partial", "answer")])

    await _cancel_after_first_event(gateway)

    assert backends[0].closed
    assert gateway.store.get_conversation("conv-1") is None


@pytest.mark.asyncio
async def test_cancelled_run_saved_with_save_partial(make_gateway):
    config = GatewayConfig(agent=AgentConfig(save_partial=True))
    gateway, _ = make_gateway(config, turns=[text_turn("partial", "answer")])

    await _cancel_after_first_event(gateway)

    conversation = gateway.store.get_conversation("conv-1")
    assert [m.text for m in conversation.messages] == ["hello", "partial"]


def test_from_config_wires_defaults(tmp_path):
    config = GatewayConfig.model_validate(
        {"storage": {"backend": "sqlite", "path": str(tmp_path / "db.sqlite")}}
    )

    gateway = ChatGateway.from_config(config)

    assert "gpt-4o" in gateway.registry
    assert gateway.identity.header == "X-User-Id"
    assert type(gateway.store).__name__ == "SQLiteConversationStore"
