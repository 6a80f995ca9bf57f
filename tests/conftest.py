"""Shared fixtures: an event recorder and a scripted fake model."""

import json

import pytest

from design_agents.providers import FunctionCallDelta, FunctionCallFinal, TextChunk


class EventRecorder:
    """Async event callback that keeps everything it receives."""

    def __init__(self):
        self.events = []

    async def __call__(self, event):
        self.events.append(event)

    def types(self):
        return [e.type for e in self.events]

    def of_type(self, event_type):
        return [e for e in self.events if e.type == event_type]


class FakeModel:
    """Model client that replays one scripted chunk list per step.

    A step may also be an exception instance, which is raised when the step's
    stream is consumed.  Steps past the end of the script produce an empty
    response.
    """

    provider = "fake"

    def __init__(self, steps=None, replies=None, complete_error=None):
        self.steps = list(steps or [])
        self.replies = list(replies or [])
        self.complete_error = complete_error
        self.calls = []
        self.complete_calls = []
        self.closed = 0

    async def stream(self, system, messages, tools):
        index = len(self.calls)
        self.calls.append({"system": system, "messages": list(messages), "tools": tools})
        script = self.steps[index] if index < len(self.steps) else []
        if isinstance(script, Exception):
            raise script
        try:
            for chunk in script:
                yield chunk
        finally:
            self.closed += 1

    async def complete(self, system, prompt, max_tokens=1024):
        self.complete_calls.append((system, prompt))
        if self.complete_error is not None:
            raise self.complete_error
        return self.replies.pop(0) if self.replies else ""


def tool_call(call_id, name, args, chunk_size=None):
    """Chunks for one raw-text streamed call, optionally split into pieces."""
    raw = json.dumps(args)
    size = chunk_size or len(raw)
    chunks = [FunctionCallDelta(call_id, name, text="")]
    chunks += [FunctionCallDelta(call_id, name, text=raw[i:i + size]) for i in range(0, len(raw), size)]
    chunks.append(FunctionCallFinal(call_id, name, args))
    return chunks


def text(content):
    return [TextChunk(content)]


@pytest.fixture
def recorder():
    return EventRecorder()
