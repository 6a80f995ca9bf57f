"""Tests for sequential tool execution within one step."""

import asyncio
import time

import pytest

from design_state import DesignState, Screen
from design_agents.assembler import CallStatus, ToolCallRecord
from design_agents.cancellation import CancellationToken
from design_agents.handlers import ToolRegistry, ToolSpec
from design_agents.messages import ReasoningPart, TextPart, ToolCallPart
from design_agents.steps import execute_step


def available(call_id, name, args, token=None):
    return ToolCallRecord(
        id=call_id, name=name, arguments=args, continuity_token=token, status=CallStatus.AVAILABLE,
    )


def make_registry(recorder):
    return ToolRegistry(DesignState([Screen("s1", "Home", body="<p>Hi</p>")]), recorder)


class TestExecuteStep:
    @pytest.mark.asyncio
    async def test_runs_in_emission_order(self, recorder):
        """Later calls see the effects of earlier ones."""
        registry = make_registry(recorder)
        records = [
            available("c1", "edit_screen", {"id": "s1", "find": "Hi", "replace": "Hello"}),
            available("c2", "read_screen", {"id": "s1"}),
        ]
        outcome = await execute_step(records, registry, recorder)
        assert [r.status for r in records] == [CallStatus.EXECUTED, CallStatus.EXECUTED]
        assert outcome.tool_turn.tool_results[1].result == "<p>Hello</p>"

    @pytest.mark.asyncio
    async def test_failure_does_not_abort_step(self, recorder):
        """A failing call becomes an error result and the next call still runs."""
        registry = make_registry(recorder)
        records = [
            available("c1", "edit_screen", {"id": "s1", "find": "Nope", "replace": "x"}),
            available("c2", "update_theme", {"updates": {"--primary": "#000"}}),
        ]
        outcome = await execute_step(records, registry, recorder)
        results = outcome.tool_turn.tool_results
        assert results[0].payload() == {"error": "Find string not found - ensure exact match from read_screen"}
        assert results[1].payload() == {"result": {"success": True}}
        assert records[0].status is CallStatus.ERRORED
        assert recorder.types().count("tool-error") == 1
        assert recorder.types().count("tool-output") == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_a_tool_error(self, recorder):
        """Any exception from a handler is reported, never raised."""
        registry = make_registry(recorder)

        async def boom(reg, call_id, args):
            raise RuntimeError("disk on fire")

        registry.register(ToolSpec("explode", "", {}, boom))
        outcome = await execute_step([available("c1", "explode", {})], registry, recorder)
        assert outcome.tool_turn.tool_results[0].error == "disk on fire"

    @pytest.mark.asyncio
    async def test_unknown_tool_is_skipped_silently(self, recorder):
        """Unknown tools leave no model-visible trace and emit nothing."""
        registry = make_registry(recorder)
        records = [available("c1", "delete_everything", {}), available("c2", "read_theme", {})]
        outcome = await execute_step(records, registry, recorder)
        assert [p.id for p in outcome.assistant_turn.tool_calls] == ["c2"]
        assert [p.id for p in outcome.tool_turn.tool_results] == ["c2"]
        assert [e.data["id"] for e in recorder.events if e.type.startswith("tool-")] == ["c2"]
        assert [r.id for r in outcome.executed] == ["c2"]

    @pytest.mark.asyncio
    async def test_assistant_turn_echoes_calls(self, recorder):
        """Reasoning, text and calls with their continuity tokens are echoed."""
        registry = make_registry(recorder)
        reasoning = [ReasoningPart("thinking", "sig-r")]
        outcome = await execute_step(
            [available("c1", "read_screen", {"id": "s1"}, token="sig-1")],
            registry, recorder, text="Let me look.", reasoning=reasoning,
        )
        parts = outcome.assistant_turn.parts
        assert parts[0] == ReasoningPart("thinking", "sig-r")
        assert parts[1] == TextPart("Let me look.")
        assert parts[2] == ToolCallPart("c1", "read_screen", {"id": "s1"}, continuity_token="sig-1")
        assert outcome.tool_turn.role == "tool"

    @pytest.mark.asyncio
    async def test_cancellation_stops_before_next_tool(self, recorder):
        """Once cancelled no further tool runs."""
        registry = make_registry(recorder)
        token = CancellationToken(timeout=None)
        token.cancel()
        records = [available("c1", "update_theme", {"updates": {"--primary": "#000"}})]
        outcome = await execute_step(records, registry, recorder, token)
        assert outcome.cancelled
        assert outcome.assistant_turn is None
        assert registry.state.theme == {}
        assert records[0].status is CallStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_returned_failure_is_an_error(self, recorder):
        """Handlers may report failure with success=False."""
        registry = make_registry(recorder)

        async def soft_fail(reg, call_id, args):
            return {"success": False, "error": "nope"}

        registry.register(ToolSpec("soft", "", {}, soft_fail))
        outcome = await execute_step([available("c1", "soft", {})], registry, recorder)
        assert outcome.tool_turn.tool_results[0].error == "nope"

    @pytest.mark.asyncio
    async def test_slow_tool_is_cut_off_by_deadline(self, recorder):
        """A tool that outlives the time budget ends the step as a timeout."""
        registry = make_registry(recorder)

        async def slow(reg, call_id, args):
            await asyncio.sleep(5)
            return {"success": True}

        registry.register(ToolSpec("slow", "", {}, slow))
        token = CancellationToken(timeout=0.2)
        records = [available("c1", "slow", {}), available("c2", "read_theme", {})]
        started = time.monotonic()
        outcome = await execute_step(records, registry, recorder, token)

        assert time.monotonic() - started < 2
        assert outcome.cancelled
        assert token.reason == "timeout"
        assert outcome.assistant_turn is None
        assert recorder.of_type("tool-output") == []
        assert records[1].status is CallStatus.AVAILABLE
