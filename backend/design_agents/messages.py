"""Provider-neutral conversation model.

Messages are immutable; the agent loop only ever appends new ones.  Provider
adapters in ``providers.py`` turn them into Anthropic / Gemini request
payloads.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Union

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant", "tool")


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ReasoningPart:
    text: str
    # Anthropic thinking blocks must be sent back with their signature.
    signature: str | None = None


@dataclass(frozen=True)
class ToolCallPart:
    id: str
    name: str
    args: dict = field(default_factory=dict)
    continuity_token: str | None = None


@dataclass(frozen=True)
class ToolResultPart:
    id: str
    name: str
    result: Any = None
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def payload(self) -> dict:
        """``{"error": ...}`` or ``{"result": ...}`` as seen by the model."""
        if self.error is not None:
            return {"error": self.error}
        return {"result": self.result}


Part = Union[TextPart, ReasoningPart, ToolCallPart, ToolResultPart]


@dataclass(frozen=True)
class Message:
    role: str
    parts: tuple = ()

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls("user", (TextPart(text),))

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [p for p in self.parts if isinstance(p, ToolCallPart)]

    @property
    def tool_results(self) -> list[ToolResultPart]:
        return [p for p in self.parts if isinstance(p, ToolResultPart)]

    def is_empty(self) -> bool:
        for p in self.parts:
            if isinstance(p, (TextPart, ReasoningPart)):
                if p.text:
                    return False
            else:
                return False
        return True

    # -- (de)serialization --------------------------------------------------

    def to_dict(self) -> dict:
        parts = []
        for p in self.parts:
            if isinstance(p, TextPart):
                parts.append({"type": "text", "text": p.text})
            elif isinstance(p, ReasoningPart):
                parts.append({"type": "reasoning", "text": p.text, "signature": p.signature})
            elif isinstance(p, ToolCallPart):
                parts.append({
                    "type": "tool-call",
                    "id": p.id,
                    "name": p.name,
                    "args": p.args,
                    "continuity_token": p.continuity_token,
                })
            elif isinstance(p, ToolResultPart):
                parts.append({"type": "tool-result", "id": p.id, "name": p.name, **p.payload()})
        return {"role": self.role, "parts": parts}

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        """Parse ``{"role", "content": str}`` or ``{"role", "parts": [...]}``.

        Raises ValueError for unsupported roles.
        """
        role = data.get("role")
        if role == "model":
            role = "assistant"
        if role not in ROLES:
            raise ValueError(f"Unsupported message role: {role!r}")

        raw_parts = data.get("parts")
        if raw_parts is None:
            raw_parts = data.get("content", "")
        if isinstance(raw_parts, str):
            return cls(role, (TextPart(raw_parts),) if raw_parts else ())

        parts: list = []
        for raw in raw_parts or []:
            if isinstance(raw, str):
                parts.append(TextPart(raw))
                continue
            if not isinstance(raw, dict):
                continue
            kind = raw.get("type")
            if kind == "text" and raw.get("text"):
                parts.append(TextPart(raw["text"]))
            elif kind == "reasoning" and raw.get("text"):
                parts.append(ReasoningPart(raw["text"], raw.get("signature")))
            elif kind == "tool-call" and raw.get("name"):
                parts.append(ToolCallPart(
                    id=raw.get("id") or raw.get("toolCallId") or "",
                    name=raw["name"],
                    args=raw.get("args") or raw.get("input") or {},
                    continuity_token=raw.get("continuity_token"),
                ))
            elif kind == "tool-result" and raw.get("name"):
                error = raw.get("error")
                parts.append(ToolResultPart(
                    id=raw.get("id") or raw.get("toolCallId") or "",
                    name=raw["name"],
                    result=raw.get("result", raw.get("output")),
                    error=str(error) if error is not None else None,
                ))
        return cls(role, tuple(parts))


def parse_history(raw_messages: list | None) -> list[Message]:
    """Parse caller-supplied history, dropping invalid and empty messages."""
    history: list[Message] = []
    for raw in raw_messages or []:
        if not isinstance(raw, dict):
            continue
        try:
            msg = Message.from_dict(raw)
        except ValueError as e:
            logger.debug("Skipping history entry: %s", e)
            continue
        if not msg.is_empty():
            history.append(msg)
    return history
