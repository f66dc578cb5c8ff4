"""Bounded generate/act agent loop.

A run moves through an explicit state machine::

    GENERATING --no tool calls--------------> DONE (stop | length)
    GENERATING --tool calls, step < limit---> AWAITING_TOOLS
    GENERATING --tool calls, step == limit--> DONE (tool-limit)
    AWAITING_TOOLS --all results in---------> RESUMING
    RESUMING --history extended-------------> GENERATING
    any non-terminal --backend error--------> FAILED

Tool failures never leave this machine: they become error results the
model sees on the next step.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from enum import Enum
from typing import Any

from pydantic import ValidationError

from chatgate.agent.events import (
    AgentEvent,
    FinishReason,
    PartDelta,
    RunFinished,
    RunResult,
    Step,
    ToolCallEvent,
    ToolResultEvent,
)
from chatgate.conversation.adapter import from_backend_output, to_backend_format
from chatgate.conversation.schema import Message, MessagePart, ToolResultPart
from chatgate.errors import BackendError, ToolExecutionError
from chatgate.llm.client import BackendMessage, LLMClient, StreamChunk, ToolCall, Usage
from chatgate.tools.base import Tool

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """States of a single run."""

    GENERATING = "generating"
    AWAITING_TOOLS = "awaiting_tools"
    RESUMING = "resuming"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.GENERATING: frozenset({RunState.AWAITING_TOOLS, RunState.DONE, RunState.FAILED}),
    RunState.AWAITING_TOOLS: frozenset({RunState.RESUMING, RunState.FAILED}),
    RunState.RESUMING: frozenset({RunState.GENERATING, RunState.FAILED}),
    RunState.DONE: frozenset(),
    RunState.FAILED: frozenset(),
}


class Agent:
    """Tool-calling agent bound to one backend and one toolset."""

    def __init__(
        self,
        llm: LLMClient,
        tools: list[Tool],
        max_steps: int = 20,
        system_prompt: str | None = None,
        backend_timeout: float = 120.0,
        tool_timeout: float = 30.0,
        run_timeout: float = 300.0,
        temperature: float | None = None,
        max_tokens: int | None = None,
        multimodal: bool = False,
    ):
        """Initialize the agent.

        Args:
            llm: Backend client for generation
            tools: Tools offered to the model
            max_steps: Maximum generation steps per run
            system_prompt: System prompt prepended to the history
            backend_timeout: Timeout in seconds for one generation call
            tool_timeout: Timeout in seconds for one tool execution
            run_timeout: Wall-clock ceiling in seconds for a whole run
            temperature: Sampling temperature override
            max_tokens: Maximum output tokens per generation call
            multimodal: Whether image attachments are sent to the backend
        """
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")

        self.llm = llm
        self.tools = {tool.name: tool for tool in tools}
        self.max_steps = max_steps
        self.system_prompt = system_prompt
        self.backend_timeout = backend_timeout
        self.tool_timeout = tool_timeout
        self.run_timeout = run_timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.multimodal = multimodal

        self.tool_schemas = [tool.schema.to_openai_format() for tool in tools]

    def start(self, messages: list[Message]) -> "AgentRun":
        """Create a single-use run over a conversation."""
        return AgentRun(self, messages)

    async def run(self, messages: list[Message]) -> RunResult:
        """Run to completion and return the result, discarding events."""
        agent_run = self.start(messages)
        async for event in agent_run.events():
            if isinstance(event, RunFinished):
                return event.result
        raise RuntimeError("run ended without a terminal event")


class AgentRun:
    """One execution of the loop. Not reusable once started."""

    def __init__(self, agent: Agent, messages: list[Message]):
        self.agent = agent
        self.messages = list(messages)
        self.state = RunState.GENERATING
        self.steps: list[Step] = []
        self.usage = Usage()
        self.parts: list[MessagePart] = []
        self.result: RunResult | None = None
        self._open_step: Step | None = None
        self.cancelled = False
        self._started = False
        self._deadline = 0.0

    def _transition(self, new_state: RunState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal run transition {self.state.value} -> {new_state.value}")
        logger.debug(f"run state {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _generated_messages(self) -> list[Message]:
        if not self.parts:
            return []
        return [Message(role="assistant", parts=list(self.parts))]

    def _close_open_step(self) -> None:
        """Keep text and reasoning already streamed by an interrupted step.

        Tool calls of an interrupted step were never surfaced and are dropped.
        """
        step, self._open_step = self._open_step, None
        if step is not None:
            self.parts.extend(from_backend_output(step.text, step.reasoning))

    def _finish(self, state: RunState, reason: FinishReason, error: str | None = None) -> RunResult:
        self._transition(state)
        self.result = RunResult(
            messages=self._generated_messages(),
            finish_reason=reason,
            usage=self.usage,
            steps=self.steps,
            error=error,
        )
        return self.result

    def partial_result(self) -> RunResult:
        """The result so far, for runs that were cancelled mid-flight."""
        if self.result is not None:
            return self.result
        self._close_open_step()
        return RunResult(
            messages=self._generated_messages(),
            finish_reason="error",
            usage=self.usage,
            steps=self.steps,
            error="cancelled",
        )

    async def events(self) -> AsyncIterator[AgentEvent]:
        """Drive the run, yielding events as they happen.

        The last event is always :class:`RunFinished`. Closing the iterator
        early stops the run: no further backend calls are issued and
        in-flight tool executions are cancelled.
        """
        if self._started:
            raise RuntimeError("AgentRun is single-use")
        self._started = True

        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self.agent.run_timeout
        history = to_backend_format(
            self.messages,
            system_prompt=self.agent.system_prompt,
            multimodal=self.agent.multimodal,
        )
        tool_schemas = self.agent.tool_schemas or None

        try:
            while True:
                step = Step(number=len(self.steps) + 1)
                self.steps.append(step)
                self._open_step = step

                async with aclosing(self._generate(history, tool_schemas)) as chunks:
                    async for chunk in chunks:
                        if chunk.kind == "text":
                            step.text += chunk.text
                            yield PartDelta(kind="text", delta=chunk.text, step=step.number)
                        elif chunk.kind == "reasoning":
                            step.reasoning += chunk.text
                            yield PartDelta(kind="reasoning", delta=chunk.text, step=step.number)
                        elif chunk.kind == "tool_call" and chunk.tool_call is not None:
                            step.tool_calls.append(chunk.tool_call)
                        elif chunk.kind == "finish":
                            step.finish_reason = chunk.finish_reason
                            step.usage = chunk.usage or Usage()
                            self.usage.add(step.usage)

                step_parts = from_backend_output(step.text, step.reasoning, step.tool_calls)
                self.parts.extend(step_parts)
                self._open_step = None

                if not step.tool_calls:
                    reason: FinishReason = "length" if step.finish_reason == "length" else "stop"
                    yield RunFinished(self._finish(RunState.DONE, reason))
                    return

                for call in step.tool_calls:
                    yield ToolCallEvent(
                        call_id=call.id,
                        tool_name=call.name,
                        input=call.arguments,
                        step=step.number,
                    )

                if step.number >= self.agent.max_steps:
                    logger.warning(
                        f"Step limit {self.agent.max_steps} reached with "
                        f"{len(step.tool_calls)} pending tool call(s)"
                    )
                    yield RunFinished(self._finish(RunState.DONE, "tool-limit"))
                    return

                self._transition(RunState.AWAITING_TOOLS)
                step.tool_results = await self._execute_tools(step.tool_calls)
                self.parts.extend(step.tool_results)
                for result in step.tool_results:
                    yield ToolResultEvent(
                        call_id=result.call_id,
                        tool_name=result.tool_name or "",
                        output=result.output,
                        error_text=result.error_text,
                        step=step.number,
                    )

                self._transition(RunState.RESUMING)
                history.extend(
                    to_backend_format(
                        [Message(role="assistant", parts=[*step_parts, *step.tool_results])]
                    )
                )
                self._transition(RunState.GENERATING)

        except BackendError as e:
            logger.error(f"Run failed at step {len(self.steps)}: {e}")
            self._close_open_step()
            yield RunFinished(self._finish(RunState.FAILED, "error", error=str(e)))
        except (asyncio.CancelledError, GeneratorExit):
            if self.result is None:
                self.cancelled = True
                logger.info(f"Run cancelled during step {len(self.steps)}")
            raise

    async def _generate(
        self,
        history: list[BackendMessage],
        tool_schemas: list[dict[str, Any]] | None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream one backend call under the call and run deadlines."""
        loop = asyncio.get_running_loop()
        call_deadline = min(loop.time() + self.agent.backend_timeout, self._deadline)
        run_bound = call_deadline == self._deadline

        stream = self.agent.llm.stream_complete(
            history,
            tools=tool_schemas,
            temperature=self.agent.temperature,
            max_tokens=self.agent.max_tokens,
        )
        try:
            while True:
                remaining = call_deadline - loop.time()
                if remaining <= 0:
                    raise TimeoutError
                try:
                    chunk = await asyncio.wait_for(anext(stream), timeout=remaining)
                except StopAsyncIteration:
                    break
                yield chunk
        except TimeoutError as e:
            if run_bound:
                raise BackendError(
                    f"Run exceeded wall-clock limit of {self.agent.run_timeout:g}s"
                ) from e
            raise BackendError(
                f"Backend call timed out after {self.agent.backend_timeout:g}s"
            ) from e
        except BackendError:
            raise
        except Exception as e:
            raise BackendError(f"{type(e).__name__}: {e}") from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _execute_tools(self, calls: list[ToolCall]) -> list[ToolResultPart]:
        """Run one step's tool calls concurrently; results keep call order."""
        return list(await asyncio.gather(*(self._execute_tool_call(call) for call in calls)))

    async def _execute_tool_call(self, call: ToolCall) -> ToolResultPart:
        """Validate and execute one tool call, converting failures to results."""

        def error(message: str) -> ToolResultPart:
            logger.warning(f"Tool call {call.id} ({call.name}) failed: {message}")
            return ToolResultPart(call_id=call.id, tool_name=call.name, error_text=message)

        tool = self.agent.tools.get(call.name)
        if tool is None:
            return error(f"Unknown tool '{call.name}'")

        arguments = call.arguments
        if arguments is None:
            return error(f"Arguments for tool '{call.name}' are not valid JSON")

        try:
            kwargs = tool.validate(arguments)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc']) or 'input'}: {err['msg']}"
                for err in e.errors()
            )
            return error(f"Invalid arguments for tool '{call.name}': {problems}")

        remaining = self._deadline - asyncio.get_running_loop().time()
        timeout = max(0.0, min(self.agent.tool_timeout, remaining))
        try:
            output = await asyncio.wait_for(tool.execute(**kwargs), timeout=timeout)
        except TimeoutError:
            return error(f"Tool '{call.name}' timed out after {timeout:g}s")
        except ToolExecutionError as e:
            return error(e.message or f"Tool '{call.name}' failed")
        except Exception as e:
            return error(f"Error executing tool '{call.name}': {str(e) or type(e).__name__}")

        return ToolResultPart(call_id=call.id, tool_name=call.name, output=output)
