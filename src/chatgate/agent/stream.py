"""Translate loop events into Server-Sent Events for sse-starlette."""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from chatgate.agent.events import (
    AgentEvent,
    PartDelta,
    RunFinished,
    RunResult,
    ToolCallEvent,
    ToolResultEvent,
)
from chatgate.llm.client import Usage

logger = logging.getLogger(__name__)


def _sse(kind: str, payload: dict[str, Any]) -> dict[str, str]:
    return {"event": kind, "data": json.dumps(payload, ensure_ascii=False, default=str)}


class StreamEmitter:
    """Serialize one run's events to the client wire format.

    Every emitted stream ends with exactly one ``finish`` event. Model and
    usage metadata are attached to ``finish`` only.
    """

    def __init__(self, model_id: str):
        self.model_id = model_id
        self.result: RunResult | None = None
        self._finished = False

    def _finish(self, reason: str, usage: Usage) -> dict[str, str]:
        self._finished = True
        return _sse(
            "finish",
            {"usage": usage.to_dict(), "reason": reason, "model": self.model_id},
        )

    def encode(self, event: AgentEvent) -> list[dict[str, str]]:
        """Encode one event. A failed terminal event becomes error + finish."""
        if self._finished:
            raise RuntimeError("stream already finished")

        if isinstance(event, PartDelta):
            return [_sse("part-delta", {"type": event.kind, "delta": event.delta})]

        if isinstance(event, ToolCallEvent):
            return [
                _sse(
                    "tool-call",
                    {"callId": event.call_id, "toolName": event.tool_name, "input": event.input},
                )
            ]

        if isinstance(event, ToolResultEvent):
            payload: dict[str, Any] = {"callId": event.call_id, "toolName": event.tool_name}
            if event.error_text is not None:
                payload["errorText"] = event.error_text
            else:
                payload["output"] = event.output
            return [_sse("tool-result", payload)]

        if isinstance(event, RunFinished):
            result = event.result
            self.result = result
            out = []
            if result.failed:
                out.append(_sse("error", {"errorText": result.error or "Generation failed"}))
            out.append(self._finish(result.finish_reason, result.usage))
            return out

        raise TypeError(f"unknown event type {type(event).__name__}")

    async def emit(self, events: AsyncIterator[AgentEvent]) -> AsyncIterator[dict[str, str]]:
        """Yield SSE dicts for ``events``, always closing with ``finish``."""
        try:
            async for event in events:
                for sse in self.encode(event):
                    yield sse
                if self._finished:
                    return
        except Exception as e:
            logger.error(f"Event source for {self.model_id} raised: {e}")
            yield _sse("error", {"errorText": str(e) or type(e).__name__})
            yield self._finish("error", Usage())
            return

        if not self._finished:
            logger.error(f"Event source for {self.model_id} ended without a finish event")
            yield _sse("error", {"errorText": "Stream ended unexpectedly"})
            yield self._finish("error", Usage())
