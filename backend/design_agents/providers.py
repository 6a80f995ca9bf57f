"""Model provider adapters.

Each adapter turns its SDK's streaming response into a small set of tagged
chunks before anything reaches the agent loop:

* ``TextChunk`` / ``ReasoningChunk`` for assistant text and thinking;
* ``FunctionCallDelta`` for a piece of a streaming tool call, either raw
  JSON text (Anthropic) or a list of path patches (Gemini);
* ``FunctionCallFinal`` when the provider closes a call, optionally with the
  authoritative arguments.

Adapters also serialize the provider-neutral ``Message`` history back into
their request format, echoing tool calls together with their continuity
tokens.
"""

import base64
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Protocol, Union

import anthropic
from google import genai

from config import Settings
from design_agents.errors import ConfigError
from design_agents.messages import Message, ReasoningPart, TextPart, ToolCallPart, ToolResultPart
from design_agents.patches import ArgPatch

logger = logging.getLogger(__name__)

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-6"
DEFAULT_GEMINI_MODEL = "gemini-3-pro-preview"
DEFAULT_GEMINI_PLANNER_MODEL = "gemini-2.0-flash"

# Gemini rejects function calls echoed without a thought signature unless
# this value is sent in its place.
SKIP_SIGNATURE = b"skip_thought_signature_validator"


# ---------------------------------------------------------------------------
# Stream chunks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextChunk:
    text: str


@dataclass(frozen=True)
class ReasoningChunk:
    text: str
    # Set on the chunk that closes a thinking block.
    signature: str | None = None


@dataclass(frozen=True)
class FunctionCallDelta:
    call_id: str
    name: str
    text: str | None = None
    patches: tuple = ()
    continuity_token: str | None = None


@dataclass(frozen=True)
class FunctionCallFinal:
    call_id: str
    name: str
    args: dict | None = None
    continuity_token: str | None = None


StreamChunk = Union[TextChunk, ReasoningChunk, FunctionCallDelta, FunctionCallFinal]


class ModelClient(Protocol):
    provider: str

    def stream(self, system: str, messages: list[Message], tools: list[dict]) -> AsyncIterator[StreamChunk]:
        ...

    async def complete(self, system: str, prompt: str, max_tokens: int = 1024) -> str:
        ...


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

def to_anthropic_messages(messages: list[Message]) -> list[dict]:
    """Serialize history for ``messages.create`` / ``messages.stream``.

    Tool results become ``tool_result`` blocks in a user turn; consecutive user
    turns are merged.  Thinking without a signature cannot be replayed and is
    dropped.
    """
    out: list[dict] = []
    for msg in messages:
        if msg.role == "assistant":
            role = "assistant"
            content: list[dict] = []
            for p in msg.parts:
                if isinstance(p, ReasoningPart):
                    if p.signature:
                        content.append({"type": "thinking", "thinking": p.text, "signature": p.signature})
                elif isinstance(p, TextPart):
                    if p.text:
                        content.append({"type": "text", "text": p.text})
                elif isinstance(p, ToolCallPart):
                    content.append({"type": "tool_use", "id": p.id, "name": p.name, "input": p.args})
        else:
            role = "user"
            content = []
            for p in msg.parts:
                if isinstance(p, ToolResultPart):
                    block = {
                        "type": "tool_result",
                        "tool_use_id": p.id,
                        "content": json.dumps(p.payload(), ensure_ascii=False),
                    }
                    if p.is_error:
                        block["is_error"] = True
                    content.append(block)
                elif isinstance(p, TextPart) and p.text:
                    content.append({"type": "text", "text": p.text})
        if not content:
            continue
        if out and out[-1]["role"] == role:
            out[-1]["content"].extend(content)
        else:
            out.append({"role": role, "content": content})
    return out


class AnthropicModel:
    """Streams through ``client.messages.stream``; tool args arrive as raw JSON text."""

    provider = "anthropic"

    def __init__(
        self,
        client: anthropic.AsyncAnthropic | None = None,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        max_tokens: int = 32000,
        thinking: bool = True,
        planner_model: str | None = None,
    ) -> None:
        self.client = client or anthropic.AsyncAnthropic()
        self.model = model
        self.max_tokens = max_tokens
        self.thinking = thinking
        self.planner_model = planner_model or model

    async def stream(self, system: str, messages: list[Message], tools: list[dict]) -> AsyncIterator[StreamChunk]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system,
            "tools": tools,
            "messages": to_anthropic_messages(messages),
        }
        if self.thinking:
            kwargs["thinking"] = {"type": "adaptive"}

        # content block index -> (type, tool call id, tool name)
        blocks: dict[int, tuple[str, str, str]] = {}
        async with self.client.messages.stream(**kwargs) as stream:
            async for event in stream:
                if event.type == "content_block_start":
                    block = event.content_block
                    if block.type == "tool_use":
                        blocks[event.index] = ("tool_use", block.id, block.name)
                        yield FunctionCallDelta(block.id, block.name, text="")
                    else:
                        blocks[event.index] = (block.type, "", "")

                elif event.type == "content_block_delta":
                    delta = event.delta
                    delta_type = getattr(delta, "type", "")
                    if delta_type == "text_delta" and delta.text:
                        yield TextChunk(delta.text)
                    elif delta_type == "thinking_delta" and delta.thinking:
                        yield ReasoningChunk(delta.thinking)
                    elif delta_type == "signature_delta":
                        yield ReasoningChunk("", signature=delta.signature)
                    elif delta_type == "input_json_delta":
                        kind, call_id, name = blocks.get(event.index, ("", "", ""))
                        if kind == "tool_use" and delta.partial_json:
                            yield FunctionCallDelta(call_id, name, text=delta.partial_json)

                elif event.type == "content_block_stop":
                    kind, call_id, name = blocks.pop(event.index, ("", "", ""))
                    if kind == "tool_use":
                        block = getattr(event, "content_block", None)
                        final = getattr(block, "input", None)
                        yield FunctionCallFinal(call_id, name, final if isinstance(final, dict) else None)

    async def complete(self, system: str, prompt: str, max_tokens: int = 1024) -> str:
        resp = await self.client.messages.create(
            model=self.planner_model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(b.text for b in resp.content if getattr(b, "type", "") == "text")


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------

def encode_signature(raw) -> str | None:
    """Thought signatures are bytes on the wire; keep them as base64 text."""
    if raw is None:
        return None
    if isinstance(raw, bytes):
        return base64.b64encode(raw).decode("ascii")
    return str(raw)


def decode_signature(token: str | None) -> bytes:
    if not token:
        return SKIP_SIGNATURE
    try:
        return base64.b64decode(token, validate=True)
    except ValueError:
        return token.encode("utf-8")


def to_gemini_tools(tools: list[dict]) -> list[dict]:
    return [{
        "function_declarations": [
            {
                "name": t["name"],
                "description": t.get("description", ""),
                "parameters_json_schema": t.get("input_schema", {"type": "object", "properties": {}}),
            }
            for t in tools
        ],
    }]


def to_gemini_contents(messages: list[Message]) -> list[dict]:
    """Serialize history as ``generate_content`` contents.

    Model turns echo each function call with its thought signature; tool
    results go back as ``function_response`` parts carrying ``{result}`` or
    ``{error}``.
    """
    contents: list[dict] = []
    for msg in messages:
        parts: list[dict] = []
        if msg.role == "assistant":
            role = "model"
            for p in msg.parts:
                if isinstance(p, TextPart) and p.text:
                    parts.append({"text": p.text})
                elif isinstance(p, ToolCallPart):
                    call: dict[str, Any] = {"name": p.name, "args": p.args}
                    if p.id:
                        call["id"] = p.id
                    parts.append({
                        "function_call": call,
                        "thought_signature": decode_signature(p.continuity_token),
                    })
        else:
            role = "user"
            for p in msg.parts:
                if isinstance(p, TextPart) and p.text:
                    parts.append({"text": p.text})
                elif isinstance(p, ToolResultPart):
                    response: dict[str, Any] = {"name": p.name, "response": p.payload()}
                    if p.id:
                        response["id"] = p.id
                    parts.append({"function_response": response})
        if not parts:
            continue
        if contents and contents[-1]["role"] == role:
            contents[-1]["parts"].extend(parts)
        else:
            contents.append({"role": role, "parts": parts})
    return contents


class GeminiModel:
    """Streams through ``client.aio.models.generate_content_stream``.

    Function calls arrive either whole (``args``) or, when argument streaming
    is enabled, as ``partial_args`` patches with ``will_continue`` set until
    the last piece.
    """

    provider = "gemini"

    def __init__(
        self,
        client: genai.Client | None = None,
        model: str = DEFAULT_GEMINI_MODEL,
        max_tokens: int = 32768,
        stream_args: bool = False,
        planner_model: str = DEFAULT_GEMINI_PLANNER_MODEL,
    ) -> None:
        self.client = client or genai.Client()
        self.model = model
        self.max_tokens = max_tokens
        self.stream_args = stream_args
        self.planner_model = planner_model

    def _config(self, system: str, tools: list[dict]) -> dict:
        calling: dict[str, Any] = {"mode": "AUTO"}
        if self.stream_args:
            calling["stream_function_call_arguments"] = True
        return {
            "system_instruction": system,
            "tools": to_gemini_tools(tools),
            "tool_config": {"function_calling_config": calling},
            "thinking_config": {"include_thoughts": True},
            "max_output_tokens": self.max_tokens,
        }

    async def stream(self, system: str, messages: list[Message], tools: list[dict]) -> AsyncIterator[StreamChunk]:
        response = await self.client.aio.models.generate_content_stream(
            model=self.model,
            contents=to_gemini_contents(messages),
            config=self._config(system, tools),
        )
        # Gemini streams at most one call at a time; pieces carry no call id.
        streaming: tuple[str, str] | None = None
        async for chunk in response:
            candidates = getattr(chunk, "candidates", None) or []
            content = getattr(candidates[0], "content", None) if candidates else None
            for part in getattr(content, "parts", None) or []:
                if part.text:
                    if part.thought:
                        yield ReasoningChunk(part.text)
                    else:
                        yield TextChunk(part.text)
                fc = part.function_call
                if fc is None:
                    continue
                name = (fc.name or "").strip()
                token = encode_signature(part.thought_signature)
                partial = list(getattr(fc, "partial_args", None) or [])
                will_continue = bool(getattr(fc, "will_continue", None))

                if streaming is None and name in ("", "unknown"):
                    continue
                if partial or will_continue:
                    if streaming is None:
                        streaming = (fc.id or uuid.uuid4().hex, name)
                    call_id, call_name = streaming
                    yield FunctionCallDelta(
                        call_id,
                        call_name,
                        patches=tuple(ArgPatch.from_wire(p) for p in partial),
                        continuity_token=token,
                    )
                    if not will_continue:
                        yield FunctionCallFinal(call_id, call_name, fc.args or None, token)
                        streaming = None
                elif streaming is not None:
                    # Closing piece of a streamed call.
                    call_id, call_name = streaming
                    yield FunctionCallFinal(call_id, call_name, fc.args or None, token)
                    streaming = None
                else:
                    call_id = fc.id or uuid.uuid4().hex
                    yield FunctionCallDelta(call_id, name, continuity_token=token)
                    yield FunctionCallFinal(call_id, name, dict(fc.args or {}), token)

    async def complete(self, system: str, prompt: str, max_tokens: int = 1024) -> str:
        resp = await self.client.aio.models.generate_content(
            model=self.planner_model,
            contents=prompt,
            config={"system_instruction": system, "max_output_tokens": max_tokens},
        )
        return resp.text or ""


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_model(settings: Settings) -> ModelClient:
    """Build the model client selected by ``DESIGN_AGENT_PROVIDER``."""
    if settings.provider == "anthropic":
        if not settings.anthropic_api_key:
            raise ConfigError("ANTHROPIC_API_KEY is not set")
        return AnthropicModel(
            anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key),
            model=settings.model or DEFAULT_ANTHROPIC_MODEL,
            thinking=settings.thinking,
        )
    if settings.provider == "gemini":
        if not settings.google_api_key:
            raise ConfigError("GOOGLE_API_KEY is not set")
        return GeminiModel(
            genai.Client(api_key=settings.google_api_key),
            model=settings.model or DEFAULT_GEMINI_MODEL,
            stream_args=settings.stream_args,
        )
    raise ConfigError(f"Unknown model provider: {settings.provider!r}")
