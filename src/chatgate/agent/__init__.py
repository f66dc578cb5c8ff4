"""Agent orchestration: the bounded generate/act loop and its event stream.

Example:
    agent = Agent(llm=client, tools=compose_toolset(model))
    run = agent.start(messages)
    async for sse in StreamEmitter(model.value).emit(run.events()):
        ...
"""

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
from chatgate.agent.loop import Agent, AgentRun, RunState
from chatgate.agent.stream import StreamEmitter

__all__ = [
    "Agent",
    "AgentEvent",
    "AgentRun",
    "FinishReason",
    "PartDelta",
    "RunFinished",
    "RunResult",
    "RunState",
    "Step",
    "StreamEmitter",
    "ToolCallEvent",
    "ToolResultEvent",
]
