"""
Sleek Backend: FastAPI + WebSocket server.
Screens are rendered client-side in iframes. Backend runs the design agent and owns canvas state.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
import uvicorn

from config import Settings
from design_state import extract_body_content, render_document
from design_agents import AgentError, AgentRequest, CancellationToken, ConfigError, run_agent
from ws_handlers import HANDLERS, WsContext

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Connection manager
# ---------------------------------------------------------------------------

class ConnectionManager:
    def __init__(self):
        self.active: list[WebSocket] = []

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.active.append(ws)

    def disconnect(self, ws: WebSocket):
        if ws in self.active:
            self.active.remove(ws)

    async def broadcast(self, message: dict):
        data = json.dumps(message)
        dead = []
        for ws in self.active:
            try:
                await ws.send_text(data)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug("Dropping dead connection: %s", e)
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)


manager = ConnectionManager()
ctx = WsContext(manager=manager)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ctx.settings = Settings.from_env()
    logger.info("Model provider: %s", ctx.settings.provider)
    yield
    if ctx.token is not None:
        ctx.token.cancel()


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(title="Sleek", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# REST endpoints
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health():
    return {"status": "ok", "provider": ctx.settings.provider, "busy": ctx.agent_busy}


@app.post("/api/render")
async def render_screen(request: Request):
    """Full HTML document for one screen, for iframe previews."""
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"error": "Expected a JSON object"}, status_code=400)
    markup = body.get("body")
    if markup is None:
        markup = extract_body_content(body.get("html") or "")
    theme = body.get("theme") if isinstance(body.get("theme"), dict) else None
    return HTMLResponse(render_document(markup, theme))


@app.post("/api/chat")
async def chat(request: Request):
    """Run one agent request and stream its events as NDJSON.

    The last line is either ``{"type": "result", ...}`` with the final screens,
    theme and messages, or a single ``{"type": "error"}``.
    """
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"error": "Expected a JSON object"}, status_code=400)

    settings = ctx.settings
    try:
        model = ctx.model_factory(settings)
    except ConfigError as e:
        return JSONResponse({"error": str(e)}, status_code=500)

    agent_request = AgentRequest.from_payload(body)
    token = CancellationToken(timeout=settings.timeout_s)
    queue: asyncio.Queue = asyncio.Queue()
    done = object()

    async def emit(event):
        await queue.put(event.to_dict())

    async def _run():
        try:
            result = await run_agent(
                agent_request,
                model,
                emit,
                token=token,
                images=ctx.images_factory(settings),
                max_steps=settings.max_steps,
                throttle_ms=settings.throttle_ms,
                planner=settings.planner,
            )
            await queue.put({
                "type": "result",
                "status": result.status,
                "steps": result.steps,
                **result.state.to_dict(),
                "messages": [m.to_dict() for m in result.messages],
            })
        except AgentError as e:
            await queue.put({"type": "error", "error": str(e)})
        except Exception as e:
            logger.exception("Chat request failed")
            await queue.put({"type": "error", "error": str(e) or "Chat API error"})
        finally:
            await queue.put(done)

    async def _lines():
        task = asyncio.create_task(_run())
        try:
            while True:
                item = await queue.get()
                if item is done:
                    break
                yield json.dumps(item, ensure_ascii=False) + "\n"
        finally:
            # Client went away or the stream finished: stop the run either way.
            token.cancel()
            if not task.done():
                task.cancel()

    return StreamingResponse(_lines(), media_type="application/x-ndjson")


# ---------------------------------------------------------------------------
# WebSocket endpoint
# ---------------------------------------------------------------------------

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await manager.connect(ws)

    await ws.send_text(json.dumps({
        "type": "init",
        **ctx.state.to_dict(),
        "provider": ctx.settings.provider,
        "busy": ctx.agent_busy,
    }))
    if not ctx.settings.api_key:
        await ws.send_text(json.dumps({"type": "api_key_required"}))

    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await ws.send_text(json.dumps({"type": "error", "error": "Invalid JSON"}))
                continue
            handler = HANDLERS.get(msg.get("type")) if isinstance(msg, dict) else None
            if handler is None:
                logger.warning("Unknown message type: %r", msg.get("type") if isinstance(msg, dict) else msg)
                continue
            await handler(ws, msg, ctx)
    except (WebSocketDisconnect, RuntimeError):
        manager.disconnect(ws)


if __name__ == "__main__":
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=False)
