"""Agent execution loop: model step → tool calls → results → next step."""

import logging
from contextlib import aclosing
from dataclasses import dataclass, field

from design_state import DesignState
from design_agents.assembler import ToolCallAssembler
from design_agents.cancellation import CancellationToken
from design_agents.errors import AgentError, DeadlineExceeded
from design_agents.events import AgentEvent, EventCallback
from design_agents.handlers import ToolRegistry
from design_agents.images import ImageResolver
from design_agents.messages import Message, ReasoningPart, TextPart, parse_history
from design_agents.planner import plan_request
from design_agents.prompts import SystemPromptProvider, get_system_prompt, is_initial_request
from design_agents.providers import (
    FunctionCallDelta,
    FunctionCallFinal,
    ModelClient,
    ReasoningChunk,
    TextChunk,
)
from design_agents.steps import execute_step
from design_agents.throttle import STREAM_THROTTLE_MS, ThrottledPreviewEmitter

logger = logging.getLogger(__name__)

MAX_STEPS = 10


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------

@dataclass
class AgentRequest:
    """Prior messages, the canvas snapshot and an optional new user utterance."""

    messages: list[Message] = field(default_factory=list)
    state: DesignState = field(default_factory=DesignState)
    prompt: str = ""

    @classmethod
    def from_payload(cls, body: dict) -> "AgentRequest":
        """``{"messages", "frames", "theme", "prompt"?}`` as sent by the canvas UI."""
        return cls(
            messages=parse_history(body.get("messages")),
            state=DesignState.from_payload(body.get("frames"), body.get("theme")),
            prompt=str(body.get("prompt") or ""),
        )

    @property
    def user_prompt(self) -> str:
        if self.prompt:
            return self.prompt
        for msg in reversed(self.messages):
            if msg.role == "user" and msg.text:
                return msg.text
        return ""

    def conversation(self) -> list[Message]:
        messages = list(self.messages)
        if self.prompt.strip():
            messages.append(Message.user(self.prompt))
        if not messages:
            messages.append(Message.user(self.prompt.strip() or "Hello"))
        return messages


@dataclass
class AgentResult:
    status: str  # "completed" | "max_steps" | "cancelled" | "timeout"
    state: DesignState
    messages: list[Message]
    steps: int
    text: str = ""


# ---------------------------------------------------------------------------
# Per-step stream routing
# ---------------------------------------------------------------------------

class _StepStream:
    """Routes the chunks of one model response."""

    def __init__(self, step: int, assembler: ToolCallAssembler, emit: EventCallback) -> None:
        self.step = step
        self.assembler = assembler
        self.emit = emit
        self.text: list[str] = []
        self.reasoning: list[ReasoningPart] = []
        self._thinking: list[str] = []

    async def route(self, chunk) -> None:
        if isinstance(chunk, TextChunk):
            self.text.append(chunk.text)
            await self.emit(AgentEvent.text_delta(chunk.text, self.step))
        elif isinstance(chunk, ReasoningChunk):
            if chunk.text:
                self._thinking.append(chunk.text)
                await self.emit(AgentEvent.reasoning_delta(chunk.text, self.step))
            if chunk.signature:
                self.reasoning.append(ReasoningPart("".join(self._thinking), chunk.signature))
                self._thinking = []
        elif isinstance(chunk, FunctionCallDelta):
            if chunk.call_id not in self.assembler.records:
                await self.assembler.on_start(chunk.call_id, chunk.name)
            await self.assembler.on_delta(
                chunk.call_id,
                text=chunk.text,
                patches=list(chunk.patches) or None,
                continuity_token=chunk.continuity_token,
            )
        elif isinstance(chunk, FunctionCallFinal):
            if chunk.call_id not in self.assembler.records:
                await self.assembler.on_start(chunk.call_id, chunk.name)
            await self.assembler.on_complete(chunk.call_id, chunk.args, chunk.continuity_token)
        else:
            logger.debug("Ignoring unknown stream chunk %r", chunk)

    def close(self) -> None:
        if self._thinking:
            self.reasoning.append(ReasoningPart("".join(self._thinking)))
            self._thinking = []

    @property
    def full_text(self) -> str:
        return "".join(self.text)


# ---------------------------------------------------------------------------
# Agent execution loop
# ---------------------------------------------------------------------------

async def run_agent(
    request: AgentRequest,
    model: ModelClient,
    emit: EventCallback,
    *,
    token: CancellationToken | None = None,
    images: ImageResolver | None = None,
    registry: ToolRegistry | None = None,
    system_prompt: SystemPromptProvider = get_system_prompt,
    max_steps: int = MAX_STEPS,
    throttle_ms: int = STREAM_THROTTLE_MS,
    planner: bool = True,
) -> AgentResult:
    """Run the agent for one request.

    Mutates ``request.state`` in place and returns it with the extended
    conversation.  Raises AgentError when a model call fails.
    """
    token = token or CancellationToken()
    state = request.state

    async def guarded_emit(event: AgentEvent) -> None:
        # Nothing reaches the consumer once the run is cancelled.
        if not token.cancelled:
            await emit(event)

    registry = registry or ToolRegistry(state, guarded_emit, images)
    messages = request.conversation()
    prompt = request.user_prompt

    logger.info("Starting agent (%s) for: %r", getattr(model, "provider", "model"), prompt[:200])
    await guarded_emit(AgentEvent.status("received", "Request received, AI responding…"))

    planning = ""
    if planner and prompt.strip() and is_initial_request(state.summary(), state.theme):
        try:
            planning = await token.wait(plan_request(model, prompt, guarded_emit))
        except DeadlineExceeded:
            logger.info("Planning ran out of time, stopping")

    steps = 0
    last_text = ""
    status = "completed"

    for step in range(max_steps):
        if token.cancelled:
            break
        steps = step + 1
        assembler = ToolCallAssembler(state, guarded_emit, ThrottledPreviewEmitter(throttle_ms))
        routed = _StepStream(step, assembler, guarded_emit)
        system = system_prompt(state.summary(), state.theme, planning)

        try:
            async with aclosing(model.stream(system, messages, registry.schemas())) as stream:
                while not token.cancelled:
                    try:
                        chunk = await token.wait(anext(stream))
                    except StopAsyncIteration:
                        break
                    await routed.route(chunk)
        except DeadlineExceeded:
            logger.info("Model stream ran out of time at step %d", step)
        except Exception as e:
            logger.error("Model request failed at step %d: %s", step, e)
            raise AgentError(str(e) or type(e).__name__, step=step) from e

        if token.cancelled:
            break
        routed.close()
        if routed.full_text:
            last_text = routed.full_text

        records = await assembler.finish()
        if not records:
            parts = list(routed.reasoning)
            if routed.full_text:
                parts.append(TextPart(routed.full_text))
            if parts:
                messages.append(Message("assistant", tuple(parts)))
            await guarded_emit(AgentEvent.step_boundary(step, 0))
            break

        outcome = await execute_step(
            records, registry, guarded_emit, token,
            text=routed.full_text, reasoning=routed.reasoning,
        )
        if outcome.assistant_turn is not None:
            messages.append(outcome.assistant_turn)
            messages.append(outcome.tool_turn)
        await guarded_emit(AgentEvent.step_boundary(step, len(outcome.executed)))

        if outcome.cancelled:
            break
        if not outcome.executed:
            logger.info("No known tool was called at step %d, stopping", step)
            break
        if step == max_steps - 1:
            logger.info("Reached MAX_STEPS=%d with tool calls outstanding, stopping", max_steps)
            status = "max_steps"

    if token.cancelled:
        status = token.reason or "cancelled"
        logger.info("Agent %s after %d step(s)", status, steps)
    else:
        logger.info("Agent finished: %s, steps: %d", status, steps)
        await guarded_emit(AgentEvent.done(status, steps))

    return AgentResult(status=status, state=state, messages=messages, steps=steps, text=last_text)
