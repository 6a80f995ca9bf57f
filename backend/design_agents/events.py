"""Events emitted by the agent loop while a request is running.

Consumers (the WebSocket session, the NDJSON chat endpoint, tests) receive
them through an ``EventCallback`` and can render frame placeholders and
updates straight from ``tool-input-preview`` / ``tool-output`` without waiting
for ``done``.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable


@dataclass(frozen=True)
class AgentEvent:
    type: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, **self.data}

    # -- loop ---------------------------------------------------------------

    @classmethod
    def status(cls, status: str, message: str = "") -> "AgentEvent":
        return cls("status", {"status": status, "message": message})

    @classmethod
    def text_delta(cls, delta: str, step: int) -> "AgentEvent":
        return cls("text-delta", {"delta": delta, "step": step})

    @classmethod
    def reasoning_delta(cls, delta: str, step: int) -> "AgentEvent":
        return cls("reasoning-delta", {"delta": delta, "step": step})

    @classmethod
    def step_boundary(cls, step: int, tool_calls: int) -> "AgentEvent":
        return cls("step-boundary", {"step": step, "tool_calls": tool_calls})

    @classmethod
    def done(cls, reason: str, steps: int) -> "AgentEvent":
        return cls("done", {"reason": reason, "steps": steps})

    # -- tool calls ---------------------------------------------------------

    @classmethod
    def tool_input_start(cls, call_id: str, name: str) -> "AgentEvent":
        return cls("tool-input-start", {"id": call_id, "name": name})

    @classmethod
    def tool_input_preview(cls, call_id: str, partial_args: dict) -> "AgentEvent":
        return cls("tool-input-preview", {"id": call_id, "partial_args": dict(partial_args)})

    @classmethod
    def tool_input_complete(cls, call_id: str, name: str, args: dict) -> "AgentEvent":
        return cls("tool-input-complete", {"id": call_id, "name": name, "args": args})

    @classmethod
    def tool_output(cls, call_id: str, result: Any) -> "AgentEvent":
        return cls("tool-output", {"id": call_id, "result": result})

    @classmethod
    def tool_error(cls, call_id: str, message: str) -> "AgentEvent":
        return cls("tool-error", {"id": call_id, "message": message})

    # -- canvas -------------------------------------------------------------

    @classmethod
    def frame_added(cls, frame: dict) -> "AgentEvent":
        return cls("frame-added", {"frame": frame})

    @classmethod
    def frame_updated(cls, frame: dict) -> "AgentEvent":
        return cls("frame-updated", {"frame": frame})

    @classmethod
    def theme_updated(cls, theme: dict, replaced: bool = False) -> "AgentEvent":
        return cls("theme-updated", {"theme": dict(theme), "replaced": replaced})


EventCallback = Callable[[AgentEvent], Awaitable[None]]
