"""Pytest configuration and shared fixtures."""

import asyncio
import copy
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from chatgate.config.schema import GatewayConfig
from chatgate.llm.client import BackendMessage, StreamChunk, ToolCall, Usage
from chatgate.tools import registry as tool_registry


def text_turn(*deltas: str, finish: str = "stop", usage: Usage | None = None) -> list[StreamChunk]:
    """A backend turn that streams text and stops."""
    chunks = [StreamChunk(kind="text", text=delta) for delta in deltas]
    chunks.append(
        StreamChunk(kind="finish", finish_reason=finish, usage=usage or Usage(10, len(deltas)))
    )
    return chunks


def tool_turn(*calls: ToolCall, text: str = "") -> list[StreamChunk]:
    """A backend turn that requests tool calls."""
    chunks = [StreamChunk(kind="text", text=text)] if text else []
    chunks.extend(StreamChunk(kind="tool_call", tool_call=call) for call in calls)
    chunks.append(StreamChunk(kind="finish", finish_reason="tool-calls", usage=Usage(10, 5)))
    return chunks


class ScriptedLLM:
    """Fake backend that replays scripted stream turns.

    Once the script runs out the last turn repeats, which makes an endless
    tool-calling backend a one-turn script.
    """

    def __init__(
        self,
        turns: list[list[StreamChunk]],
        model: str = "fake-model",
        delay: float = 0.0,
        error: Exception | None = None,
    ):
        self.turns = turns
        self.model = model
        self.delay = delay
        self.error = error
        self.call_count = 0
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def stream_complete(
        self,
        messages: list[BackendMessage],
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamChunk]:
        self.calls.append({"messages": copy.deepcopy(messages), "tools": tools})
        turn = self.turns[min(self.call_count, len(self.turns) - 1)]
        self.call_count += 1

        if self.error is not None:
            raise self.error
        for chunk in turn:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def default_config() -> GatewayConfig:
    """Provide a default configuration for tests."""
    return GatewayConfig()


@pytest.fixture
def scripted_llm() -> Callable[..., ScriptedLLM]:
    """Factory for scripted fake backends."""
    return ScriptedLLM


@pytest.fixture
def builtin_tools() -> None:
    """Make sure the built-in tools are registered."""
    tool_registry.load_builtin_tools()


@pytest.fixture
def isolated_tools():
    """Snapshot the global tool registry and restore it afterwards."""
    tool_registry.load_builtin_tools()
    saved = dict(tool_registry._TOOLS)
    yield tool_registry
    tool_registry.clear_tools()
    tool_registry._TOOLS.update(saved)


@pytest.fixture(autouse=True)
def no_provider_env(monkeypatch):
    """Keep real provider keys in the environment out of the tests."""
    from chatgate.llm.providers import PROVIDERS

    for spec in PROVIDERS.values():
        if spec.env_var:
            monkeypatch.delenv(spec.env_var, raising=False)


@pytest.fixture
def make_gateway():
    """Build a gateway whose providers all hand out scripted backends.

    Returns a factory ``(config=None, turns=None) -> (gateway, backends)``;
    ``backends`` collects every backend the resolver built, with the API key
    it was given stored as ``api_key``.
    """
    from dataclasses import replace

    from chatgate.auth import HeaderIdentityProvider
    from chatgate.gateway import ChatGateway
    from chatgate.llm.providers import PROVIDERS
    from chatgate.llm.registry import build_registry
    from chatgate.llm.resolver import ProviderResolver
    from chatgate.memory.storage import InMemoryConversationStore

    def build(config: GatewayConfig | None = None, turns: list | None = None):
        config = config or GatewayConfig()
        backends: list[ScriptedLLM] = []

        def factory(model_id: str, api_key: str | None, timeout: float) -> ScriptedLLM:
            llm = ScriptedLLM(turns or [text_turn("4")], model=model_id)
            llm.api_key = api_key
            backends.append(llm)
            return llm

        providers = {tag: replace(spec, factory=factory) for tag, spec in PROVIDERS.items()}
        registry = build_registry(config.models, include_builtin=config.include_builtin_models)
        resolver = ProviderResolver(
            registry, default_keys={"openai": "sk-default"}, providers=providers
        )
        store = InMemoryConversationStore()
        identity = HeaderIdentityProvider(store, header=config.storage.user_header)
        return ChatGateway(config, registry, resolver, store, identity), backends

    return build
