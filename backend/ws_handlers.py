"""WebSocket message handlers for the Sleek design agent.

Each handler is an ``async def handle_xxx(ws, msg, ctx)`` function.
A dispatch table ``HANDLERS`` maps message type strings to handlers.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Callable

import config
from config import Settings
from design_state import DesignState
from design_agents import (
    AgentError,
    AgentRequest,
    CancellationToken,
    ConfigError,
    ImageResolver,
    create_model,
    run_agent,
)
from design_agents.messages import Message

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared context
# ---------------------------------------------------------------------------

@dataclass
class WsContext:
    settings: Settings = field(default_factory=Settings)
    state: DesignState = field(default_factory=DesignState)
    messages: list[Message] = field(default_factory=list)
    agent_busy: bool = False
    agent_task: asyncio.Task | None = None  # reference to running agent task
    token: CancellationToken | None = None
    manager: object = None  # ConnectionManager instance
    # Canvas edits received while the agent owns the state; applied after the run.
    pending_edits: asyncio.Queue = field(default_factory=asyncio.Queue)
    model_factory: Callable = create_model
    images_factory: Callable = ImageResolver.from_settings


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _state_message(ctx: WsContext) -> dict:
    return {"type": "state", **ctx.state.to_dict(), "busy": ctx.agent_busy}


def _apply_edit(ctx: WsContext, payload: dict) -> None:
    ctx.state = DesignState.from_payload(
        payload.get("frames", payload.get("screens")),
        payload.get("theme"),
    )


async def _apply_pending_edits(ctx: WsContext) -> None:
    """Apply canvas edits queued during the run, oldest first."""
    applied = 0
    while not ctx.pending_edits.empty():
        try:
            payload = ctx.pending_edits.get_nowait()
        except asyncio.QueueEmpty:
            break
        _apply_edit(ctx, payload)
        applied += 1
    if applied:
        logger.info("Applied %d queued canvas edit(s)", applied)
        await ctx.manager.broadcast(_state_message(ctx))


async def _run_agent_task(ctx: WsContext, prompt: str) -> None:
    async def emit(event):
        await ctx.manager.broadcast(event.to_dict())

    try:
        model = ctx.model_factory(ctx.settings)
        request = AgentRequest(messages=list(ctx.messages), state=ctx.state, prompt=prompt)
        result = await run_agent(
            request,
            model,
            emit,
            token=ctx.token,
            images=ctx.images_factory(ctx.settings),
            max_steps=ctx.settings.max_steps,
            throttle_ms=ctx.settings.throttle_ms,
            planner=ctx.settings.planner,
        )
        ctx.messages = result.messages
        await ctx.manager.broadcast({"type": "chat_done", "status": result.status})

    except asyncio.CancelledError:
        logger.info("Agent task cancelled by user")
        await ctx.manager.broadcast({"type": "chat_done", "status": "cancelled"})

    except (AgentError, ConfigError) as e:
        logger.error("Agent error: %s", e)
        await ctx.manager.broadcast({"type": "agent_error", "error": str(e)})
        await ctx.manager.broadcast({"type": "chat_done", "status": "error"})

    except Exception as e:
        logger.exception("Unexpected agent failure")
        await ctx.manager.broadcast({"type": "agent_error", "error": f"Agent error: {e}"})
        await ctx.manager.broadcast({"type": "chat_done", "status": "error"})

    finally:
        ctx.agent_task = None
        ctx.token = None
        ctx.agent_busy = False
        await _apply_pending_edits(ctx)


# ---------------------------------------------------------------------------
# Handlers: each is async def handle_xxx(ws, msg, ctx)
# ---------------------------------------------------------------------------

async def handle_set_api_key(ws, msg, ctx: WsContext):
    provider = msg.get("provider") or ctx.settings.provider
    key = msg.get("key", "").strip()
    valid, error = await config.validate_api_key(key, provider)
    if valid:
        config.save_api_key(key, provider)
        if provider == "gemini":
            ctx.settings.google_api_key = key
        else:
            ctx.settings.anthropic_api_key = key
        await ws.send_text(json.dumps({"type": "api_key_valid"}))
    else:
        await ws.send_text(json.dumps({
            "type": "api_key_invalid",
            "error": error,
        }))


async def handle_prompt(ws, msg, ctx: WsContext):
    if not ctx.settings.api_key:
        await ws.send_text(json.dumps({"type": "api_key_required"}))
        return

    if ctx.agent_busy:
        await ws.send_text(json.dumps({
            "type": "agent_busy",
            "message": "Agent is busy, please wait...",
        }))
        return

    user_prompt = msg.get("text", "")
    if not user_prompt.strip():
        return

    ctx.agent_busy = True
    ctx.token = CancellationToken(timeout=ctx.settings.timeout_s)
    ctx.agent_task = asyncio.create_task(_run_agent_task(ctx, user_prompt))


async def handle_cancel_agent(ws, msg, ctx: WsContext):
    """Cancel the currently running agent task."""
    if ctx.token is not None:
        ctx.token.cancel()
    if ctx.agent_task and not ctx.agent_task.done():
        ctx.agent_task.cancel()
        logger.info("Agent cancel requested by user")


async def handle_new_chat(ws, msg, ctx: WsContext):
    ctx.messages = []
    await ws.send_text(json.dumps({"type": "chat_cleared"}))


async def handle_sync_state(ws, msg, ctx: WsContext):
    """The canvas UI pushes its frames/theme after user edits."""
    if ctx.agent_busy:
        ctx.pending_edits.put_nowait(msg)
        await ws.send_text(json.dumps({"type": "state_queued"}))
        return
    _apply_edit(ctx, msg)
    await ctx.manager.broadcast(_state_message(ctx))


async def handle_request_state(ws, msg, ctx: WsContext):
    await ws.send_text(json.dumps(_state_message(ctx)))


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "set_api_key": handle_set_api_key,
    "prompt": handle_prompt,
    "cancel_agent": handle_cancel_agent,
    "new_chat": handle_new_chat,
    "sync_state": handle_sync_state,
    "request_state": handle_request_state,
}
