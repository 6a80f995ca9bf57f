"""Execution of the tool calls produced by one model step."""

import logging
from dataclasses import dataclass, field

from design_agents.assembler import CallStatus, ToolCallRecord
from design_agents.cancellation import CancellationToken
from design_agents.errors import DeadlineExceeded, ToolError
from design_agents.events import AgentEvent, EventCallback
from design_agents.handlers import ToolRegistry
from design_agents.messages import Message, ReasoningPart, TextPart, ToolCallPart, ToolResultPart

logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    """Turns to append to the conversation after a step.

    ``assistant_turn`` echoes the text, reasoning and the calls that were run
    (with their continuity tokens); ``tool_turn`` carries one result per call.
    Both are None when no call was run.
    """

    assistant_turn: Message | None = None
    tool_turn: Message | None = None
    executed: list[ToolCallRecord] = field(default_factory=list)
    cancelled: bool = False


def _returned_failure(result) -> str | None:
    """Handlers may also report failure as ``{"success": False, "error": ...}``."""
    if isinstance(result, dict) and result.get("success") is False:
        return str(result.get("error") or "Tool failed")
    return None


async def execute_step(
    records: list[ToolCallRecord],
    registry: ToolRegistry,
    emit: EventCallback,
    token: CancellationToken | None = None,
    text: str = "",
    reasoning: list[ReasoningPart] | None = None,
) -> StepOutcome:
    """Run *records* one after another, in the order the model emitted them."""
    outcome = StepOutcome()
    call_parts: list[ToolCallPart] = []
    result_parts: list[ToolResultPart] = []

    for record in records:
        if token is not None and token.cancelled:
            logger.info("Step cancelled (%s) before %s", token.reason, record.name)
            outcome.cancelled = True
            break
        if record.status is not CallStatus.AVAILABLE:
            logger.debug("Skipping tool call %s in state %s", record.id, record.status.value)
            continue
        if record.name not in registry:
            logger.warning("Model called unknown tool %r, skipping", record.name)
            record.status = CallStatus.ERRORED
            record.error = f"Unknown tool: {record.name}"
            continue

        error: str | None = None
        result = None
        try:
            call = registry.execute(record.name, record.id, record.arguments)
            result = await (token.wait(call) if token is not None else call)
            error = _returned_failure(result)
        except DeadlineExceeded:
            logger.info("Tool %s ran out of time, stopping the step", record.name)
            outcome.cancelled = True
            break
        except ToolError as e:
            error = str(e) or "Tool error"
        except Exception as e:
            logger.exception("Tool %s failed", record.name)
            error = str(e) or "Tool error"

        call_parts.append(ToolCallPart(
            id=record.id,
            name=record.name,
            args=record.arguments,
            continuity_token=record.continuity_token,
        ))
        if error is None:
            record.status = CallStatus.EXECUTED
            record.result = result
            await emit(AgentEvent.tool_output(record.id, result))
            result_parts.append(ToolResultPart(record.id, record.name, result=result))
        else:
            logger.info("Tool %s returned an error: %s", record.name, error)
            record.status = CallStatus.ERRORED
            record.error = error
            await emit(AgentEvent.tool_error(record.id, error))
            result_parts.append(ToolResultPart(record.id, record.name, error=error))
        outcome.executed.append(record)

    if call_parts:
        parts: list = list(reasoning or [])
        if text:
            parts.append(TextPart(text))
        parts.extend(call_parts)
        outcome.assistant_turn = Message("assistant", tuple(parts))
        outcome.tool_turn = Message("tool", tuple(result_parts))
    return outcome
