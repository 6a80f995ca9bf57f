"""Assembly of streamed tool calls.

Providers report a tool call as ``on_start`` → ``on_delta``* → ``on_complete``.
Deltas are either raw JSON text (Anthropic ``input_json_delta``) or lists of
path patches (Gemini ``partial_args``); the first delta of a call fixes which
one it uses.  While a call streams, throttled ``tool-input-preview`` events and
optimistic canvas updates let the UI show the screen growing before the tool
runs.
"""

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from design_state import LOADING_LABEL, DesignState
from design_agents.events import AgentEvent, EventCallback
from design_agents.partial_json import extract_partial_string, repair_partial_json
from design_agents.patches import ArgPatch, merge_partial_args
from design_agents.throttle import ThrottledPreviewEmitter

logger = logging.getLogger(__name__)

BODY_FIELD = "screen_html"
SCREEN_TOOLS = ("create_screen", "update_screen")


class CallStatus(str, Enum):
    STREAMING = "streaming"
    AVAILABLE = "available"
    EXECUTED = "executed"
    ERRORED = "errored"


class WireFormat(str, Enum):
    RAW_TEXT = "raw_text"
    PATCH_LIST = "patch_list"


@dataclass
class ToolCallRecord:
    id: str
    name: str
    arguments: dict = field(default_factory=dict)
    continuity_token: str | None = None
    status: CallStatus = CallStatus.STREAMING
    wire_format: WireFormat | None = None
    # Raw argument text while streaming; cleared once the call is available.
    buffer: str = ""
    preview_body: str = ""
    preview_label: str | None = None
    last_preview: dict | None = None
    result: Any = None
    error: str | None = None


class ToolCallAssembler:
    """Tracks every tool call of one model step, in emission order."""

    def __init__(
        self,
        state: DesignState,
        emit: EventCallback,
        throttle: ThrottledPreviewEmitter | None = None,
    ) -> None:
        self.state = state
        self.emit = emit
        self.throttle = throttle or ThrottledPreviewEmitter()
        self.records: dict[str, ToolCallRecord] = {}

    def __len__(self) -> int:
        return len(self.records)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def on_start(self, call_id: str, name: str) -> ToolCallRecord:
        existing = self.records.get(call_id)
        if existing is not None:
            return existing
        record = ToolCallRecord(id=call_id, name=name)
        self.records[call_id] = record
        await self.emit(AgentEvent.tool_input_start(call_id, name))

        if name == "create_screen":
            if self.state.get(call_id) is None:
                screen = self.state.add_screen(LOADING_LABEL, "", screen_id=call_id)
                await self.emit(AgentEvent.frame_added(screen.to_frame(self.state.theme)))
            else:
                logger.warning("Screen %s already exists, not adding a placeholder", call_id)
        return record

    async def on_delta(
        self,
        call_id: str,
        text: str | None = None,
        patches: list | None = None,
        continuity_token: str | None = None,
    ) -> ToolCallRecord | None:
        record = self.records.get(call_id)
        if record is None:
            logger.warning("Delta for unknown tool call %s dropped", call_id)
            return None
        if record.status is not CallStatus.STREAMING:
            logger.debug("Delta for finished tool call %s ignored", call_id)
            return record
        if continuity_token:
            record.continuity_token = continuity_token

        if text is not None:
            wire_format = WireFormat.RAW_TEXT
        elif patches:
            wire_format = WireFormat.PATCH_LIST
        else:
            return record

        if record.wire_format is None:
            record.wire_format = wire_format
        elif record.wire_format is not wire_format:
            logger.warning(
                "Tool call %s switched from %s to %s deltas, ignoring",
                call_id, record.wire_format.value, wire_format.value,
            )
            return record

        if wire_format is WireFormat.RAW_TEXT:
            record.buffer += text
            parsed = repair_partial_json(record.buffer)
            if parsed is not None:
                record.arguments = parsed
        else:
            merge_partial_args(
                record.arguments,
                [p if isinstance(p, ArgPatch) else ArgPatch.from_wire(p) for p in patches],
            )
            record.buffer = json.dumps(record.arguments)

        await self._preview(record, terminal=False)
        return record

    async def on_complete(
        self,
        call_id: str,
        final_args: dict | None = None,
        continuity_token: str | None = None,
    ) -> ToolCallRecord | None:
        record = self.records.get(call_id)
        if record is None:
            logger.warning("Completion for unknown tool call %s dropped", call_id)
            return None
        if record.status is not CallStatus.STREAMING:
            return record
        if continuity_token:
            record.continuity_token = continuity_token

        if record.wire_format is WireFormat.RAW_TEXT and record.buffer:
            parsed = repair_partial_json(record.buffer)
            if parsed is not None:
                record.arguments = parsed
        if isinstance(final_args, dict):
            record.arguments = {**record.arguments, **final_args}

        record.status = CallStatus.AVAILABLE
        await self._preview(record, terminal=True)
        record.buffer = ""
        self.throttle.forget(call_id)
        await self.emit(AgentEvent.tool_input_complete(call_id, record.name, record.arguments))
        return record

    async def finish(self) -> list[ToolCallRecord]:
        """Complete calls the provider never closed; return all records in order."""
        for record in list(self.records.values()):
            if record.status is CallStatus.STREAMING:
                logger.debug("Tool call %s still streaming at end of response, completing", record.id)
                await self.on_complete(record.id)
        return list(self.records.values())

    # ------------------------------------------------------------------
    # Previews
    # ------------------------------------------------------------------

    def _best_body(self, record: ToolCallRecord, terminal: bool) -> str:
        parsed = record.arguments.get(BODY_FIELD)
        candidate = parsed if isinstance(parsed, str) else ""
        if terminal:
            return candidate or record.preview_body
        if len(candidate) <= len(record.preview_body) and record.buffer:
            scanned = extract_partial_string(record.buffer, BODY_FIELD)
            if scanned and len(scanned) > len(candidate):
                candidate = scanned
        # Never show less than what was already shown.
        if len(candidate) < len(record.preview_body):
            return record.preview_body
        return candidate

    async def _preview(self, record: ToolCallRecord, terminal: bool) -> None:
        if not self.throttle.should_emit(record.id, terminal=terminal):
            return

        snapshot = dict(record.arguments)
        if record.name in SCREEN_TOOLS:
            body = self._best_body(record, terminal)
            if body:
                snapshot[BODY_FIELD] = body
        # Nothing parsed yet: keep the first-preview slot for real content.
        if not terminal and (not snapshot or snapshot == record.last_preview):
            return

        self.throttle.mark(record.id)
        record.last_preview = snapshot
        await self.emit(AgentEvent.tool_input_preview(record.id, snapshot))

        if record.name in SCREEN_TOOLS:
            await self._preview_screen(record, snapshot)

    async def _preview_screen(self, record: ToolCallRecord, snapshot: dict) -> None:
        body = snapshot.get(BODY_FIELD) or ""
        if record.name == "create_screen":
            screen = self.state.get(record.id)
            if screen is None:
                return
            name = snapshot.get("name")
            label = name if isinstance(name, str) and name.strip() else None
            if body == record.preview_body and label in (None, record.preview_label):
                return
            self.state.set_body(record.id, body or screen.body, label=label)
        else:
            target = snapshot.get("id")
            screen = self.state.get(target) if isinstance(target, str) else None
            if screen is None or not body or body == record.preview_body:
                return
            # Canvas only; the state changes when the tool runs, after the
            # calls emitted before it.
            screen = dataclasses.replace(screen, body=body)
            label = None

        record.preview_body = body or record.preview_body
        if label is not None:
            record.preview_label = label
        await self.emit(AgentEvent.frame_updated(screen.to_frame(self.state.theme)))
