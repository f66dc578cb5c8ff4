"""Request pipeline: validate, resolve, run, stream, persist."""

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from chatgate.agent.loop import Agent, AgentRun
from chatgate.agent.stream import StreamEmitter
from chatgate.auth import HeaderIdentityProvider, IdentityProvider
from chatgate.config.schema import GatewayConfig
from chatgate.conversation.adapter import decode_messages
from chatgate.conversation.schema import Message
from chatgate.errors import InputError
from chatgate.llm.client import LLMClient
from chatgate.llm.registry import ModelConfig, ModelRegistry, build_registry
from chatgate.llm.resolver import ProviderResolver
from chatgate.memory.hook import persist_run
from chatgate.memory.storage import ConversationStore, create_store
from chatgate.tools.registry import compose_toolset, load_builtin_tools

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    """Body of ``POST /api/chat``."""

    id: str = Field(min_length=1, description="Conversation id")
    messages: list[Any] = Field(description="Conversation history, oldest first")
    model: str = Field(min_length=1, description="Public model identifier")
    deepresearch: bool = Field(default=False, description="Offer the deep research tool")
    title: str | None = Field(default=None, description="Title for a new conversation")


@dataclass
class PreparedRun:
    """Everything needed to stream one request, resolved up front."""

    request: ChatRequest
    user_id: str | None
    model: ModelConfig
    backend: LLMClient
    agent: Agent
    messages: list[Message]


class ChatGateway:
    """Turns validated chat requests into streamed, persisted agent runs.

    :meth:`prepare` does all the work that can fail with a client error, so
    an unknown model or missing credential is reported before any stream
    event is produced.
    """

    def __init__(
        self,
        config: GatewayConfig,
        registry: ModelRegistry,
        resolver: ProviderResolver,
        store: ConversationStore,
        identity: IdentityProvider,
    ):
        self.config = config
        self.registry = registry
        self.resolver = resolver
        self.store = store
        self.identity = identity
        load_builtin_tools()

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "ChatGateway":
        """Wire the default collaborators from configuration."""
        registry = build_registry(
            config.models,
            include_builtin=config.include_builtin_models,
            unknown_provider=config.providers.unknown_provider,
            fallback_provider=config.providers.fallback_provider,
        )
        resolver = ProviderResolver(
            registry,
            default_keys=config.providers.api_keys,
            timeout=config.agent.backend_timeout,
        )
        store = create_store(config.storage.backend, config.storage.path)
        identity = HeaderIdentityProvider(store, header=config.storage.user_header)
        return cls(config, registry, resolver, store, identity)

    @staticmethod
    def parse_request(body: Any) -> ChatRequest:
        """Validate a raw request body.

        Raises:
            InputError: With pydantic error details if the body is malformed
        """
        try:
            return ChatRequest.model_validate(body)
        except ValidationError as e:
            raise InputError(
                "Invalid request body",
                details=e.errors(include_url=False, include_context=False),
            ) from e

    async def prepare(self, body: Any, user_id: str | None = None) -> PreparedRun:
        """Validate the request and resolve its model, backend and tools.

        Raises:
            InputError: Malformed body, no usable messages or unknown model
            CredentialError: No key available for the model's provider
        """
        request = self.parse_request(body)

        messages = decode_messages(request.messages)
        if not messages:
            raise InputError(
                "Invalid request body",
                details=[{"loc": ["messages"], "msg": "No valid messages", "type": "value_error"}],
            )

        user_keys: Mapping[str, str] = {}
        if user_id is not None:
            user_keys = await self.identity.get_user_api_keys(user_id)

        model, backend = self.resolver.resolve(request.model, user_keys)

        agent_config = self.config.agent
        tools = compose_toolset(model, deepresearch=request.deepresearch, enabled=self.config.tools)
        agent = Agent(
            llm=backend,
            tools=tools,
            max_steps=agent_config.max_steps,
            system_prompt=agent_config.system_prompt,
            backend_timeout=agent_config.backend_timeout,
            tool_timeout=agent_config.tool_timeout,
            run_timeout=agent_config.run_timeout,
            temperature=agent_config.temperature,
            max_tokens=agent_config.max_tokens,
            multimodal=model.multimodal,
        )

        logger.info(
            f"Chat {request.id}: model={model.value} tools={len(tools)} "
            f"messages={len(messages)} user={user_id or 'anonymous'}"
        )
        return PreparedRun(
            request=request,
            user_id=user_id,
            model=model,
            backend=backend,
            agent=agent,
            messages=messages,
        )

    async def stream(self, prepared: PreparedRun) -> AsyncIterator[dict[str, str]]:
        """Run the agent and yield SSE events, persisting after ``finish``."""
        run = prepared.agent.start(prepared.messages)
        emitter = StreamEmitter(prepared.model.value)
        try:
            async with aclosing(run.events()) as events:
                async with aclosing(emitter.emit(events)) as sse_events:
                    async for sse in sse_events:
                        yield sse
        finally:
            try:
                await prepared.backend.close()
            except Exception as e:
                logger.warning(f"Failed to close backend for {prepared.model.value}: {e}")
            await self._persist(prepared, run)

    async def _persist(self, prepared: PreparedRun, run: AgentRun) -> None:
        if prepared.user_id is None and not self.config.storage.persist_anonymous:
            return

        result = run.result
        if result is None:
            if not self.config.agent.save_partial:
                logger.info(f"Chat {prepared.request.id} cancelled, transcript not saved")
                return
            result = run.partial_result()

        await persist_run(
            self.store,
            prepared.request.id,
            prepared.user_id,
            prepared.messages,
            result,
            title=prepared.request.title,
        )
