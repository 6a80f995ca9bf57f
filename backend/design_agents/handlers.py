"""Tool registry + built-in tool handlers for the design agent."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from design_state import EMPTY_SCREEN, DesignState, extract_body_content
from design_agents.errors import ToolError
from design_agents.events import AgentEvent, EventCallback
from design_agents.images import ImageResolver, placeholder_url
from design_agents.tools import TOOLS

logger = logging.getLogger(__name__)

ToolExecutor = Callable[["ToolRegistry", str, dict], Awaitable[Any]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_schema: dict
    executor: ToolExecutor

    def schema(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def substitute_placeholders(html: str, image_map: dict[str, str]) -> str:
    """Replace every ``placeholder:{id}`` with its resolved URL."""
    # Longest ids first so "img-1" never eats the prefix of "img-10".
    for image_id in sorted(image_map, key=len, reverse=True):
        html = html.replace(f"placeholder:{image_id}", image_map[image_id])
    return html


def _str_arg(args: dict, key: str, default: str = "") -> str:
    value = args.get(key)
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


# ---------------------------------------------------------------------------
# Tool handlers
# ---------------------------------------------------------------------------

async def _read_screen(reg: "ToolRegistry", call_id: str, args: dict) -> str:
    screen = reg.state.get(_str_arg(args, "id"))
    if screen is None or not screen.body:
        return EMPTY_SCREEN
    return screen.body


async def _read_theme(reg: "ToolRegistry", call_id: str, args: dict) -> str:
    return json.dumps(reg.state.theme, indent=2)


async def _create_screen(reg: "ToolRegistry", call_id: str, args: dict) -> dict:
    name = _str_arg(args, "name").strip() or "Untitled"
    body = extract_body_content(_str_arg(args, "screen_html"))
    body = substitute_placeholders(body, reg.image_map)

    # Bind to the placeholder allocated when the call started streaming.
    screen = reg.state.set_body(call_id, body, label=name)
    if screen is not None:
        await reg.emit(AgentEvent.frame_updated(screen.to_frame(reg.state.theme)))
    else:
        screen = reg.state.add_screen(name, body, screen_id=call_id)
        await reg.emit(AgentEvent.frame_added(screen.to_frame(reg.state.theme)))
    logger.info("Created screen %s (%s)", screen.id, name)
    return {"success": True, "id": screen.id, "message": f'Created screen "{name}"'}


async def _update_screen(reg: "ToolRegistry", call_id: str, args: dict) -> dict:
    screen_id = _str_arg(args, "id")
    body = extract_body_content(_str_arg(args, "screen_html"))
    body = substitute_placeholders(body, reg.image_map)
    screen = reg.state.set_body(screen_id, body)
    if screen is None:
        logger.info("update_screen: unknown screen %s, nothing to do", screen_id)
        return {"success": True, "updated": False}
    await reg.emit(AgentEvent.frame_updated(screen.to_frame(reg.state.theme)))
    return {"success": True, "updated": True}


async def _edit_screen(reg: "ToolRegistry", call_id: str, args: dict) -> dict:
    screen_id = _str_arg(args, "id")
    find = _str_arg(args, "find")
    replace = substitute_placeholders(_str_arg(args, "replace"), reg.image_map)

    screen = reg.state.get(screen_id)
    if screen is None or not screen.body:
        raise ToolError("Screen not found")
    if not find:
        raise ToolError("find must not be empty")
    if find not in screen.body:
        raise ToolError("Find string not found - ensure exact match from read_screen")

    reg.state.set_body(screen_id, screen.body.replace(find, replace, 1))
    await reg.emit(AgentEvent.frame_updated(screen.to_frame(reg.state.theme)))
    return {"success": True}


async def _update_theme(reg: "ToolRegistry", call_id: str, args: dict) -> dict:
    updates = args.get("updates")
    if not isinstance(updates, dict):
        logger.warning("update_theme without an updates object, ignoring")
        updates = {}
    reg.state.merge_theme(updates)
    await reg.emit(AgentEvent.theme_updated(reg.state.theme))
    return {"success": True}


async def _build_theme(reg: "ToolRegistry", call_id: str, args: dict) -> dict:
    theme_vars = args.get("theme_vars")
    if not isinstance(theme_vars, dict):
        raise ToolError(
            'theme_vars is required. Pass an object like '
            '{"--primary":"#2563eb","--background":"#0f172a"}'
        )
    reg.state.replace_theme(theme_vars)
    await reg.emit(AgentEvent.theme_updated(reg.state.theme, replaced=True))
    return {"success": True, "message": "Theme built"}


async def _generate_image(reg: "ToolRegistry", call_id: str, args: dict) -> dict:
    image_id = _str_arg(args, "id").strip() or f"img-{len(reg.image_map) + 1}"
    aspect_ratio = _str_arg(args, "aspect_ratio", "square")
    if reg.images is not None:
        url = await reg.images.resolve(
            image_id,
            _str_arg(args, "prompt"),
            aspect_ratio,
            _str_arg(args, "background", "opaque"),
        )
    else:
        url = placeholder_url(image_id, aspect_ratio)
    reg.image_map[image_id] = url
    return {"success": True, "url": url}


_EXECUTORS: dict[str, ToolExecutor] = {
    "read_screen": _read_screen,
    "read_theme": _read_theme,
    "create_screen": _create_screen,
    "update_screen": _update_screen,
    "edit_screen": _edit_screen,
    "update_theme": _update_theme,
    "build_theme": _build_theme,
    "generate_image": _generate_image,
}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class ToolRegistry:
    """The tool set for one request.

    Holds that request's ``DesignState``, the ids of images generated so far
    and the event callback; build a new one per request.
    """

    def __init__(
        self,
        state: DesignState,
        emit: EventCallback,
        images: ImageResolver | None = None,
        tools: list[dict] | None = None,
    ) -> None:
        self.state = state
        self.emit = emit
        self.images = images
        self.image_map: dict[str, str] = {}
        self._specs: dict[str, ToolSpec] = {}
        for tool in tools if tools is not None else TOOLS:
            executor = _EXECUTORS.get(tool["name"])
            if executor is None:
                logger.warning("No handler for tool %s, not registering", tool["name"])
                continue
            self.register(ToolSpec(
                name=tool["name"],
                description=tool.get("description", ""),
                input_schema=tool.get("input_schema", {"type": "object", "properties": {}}),
                executor=executor,
            ))

    def register(self, spec: ToolSpec) -> None:
        self._specs[spec.name] = spec

    def get(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def schemas(self) -> list[dict]:
        return [spec.schema() for spec in self._specs.values()]

    async def execute(self, name: str, call_id: str, args: dict) -> Any:
        """Run tool *name*. Raises KeyError for unknown tools, ToolError on domain failures."""
        spec = self._specs.get(name)
        if spec is None:
            raise KeyError(name)
        return await spec.executor(self, call_id, args if isinstance(args, dict) else {})
