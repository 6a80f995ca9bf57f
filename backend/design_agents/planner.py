"""Planning pipeline run before the first step of an initial request.

Three short model calls (intent, screen list, visual guidelines) produce a
"## Planning" section for the system prompt.  Planning is advisory: any
failure is logged and the agent runs without a plan.
"""

import json
import logging
import re

from design_agents.events import AgentEvent, EventCallback

logger = logging.getLogger(__name__)

_CLASSIFY_SYSTEM = """\
You classify user requests for a mobile app design assistant.
Reply with ONLY one word: GENERATE or EDIT.

GENERATE: the user wants new screens created (a new app, a new flow, another page)
EDIT: the user wants existing screens or the theme changed

When in doubt, reply GENERATE."""

_SCREENS_SYSTEM = """\
Given a request for a mobile app, list the screens to create. Each screen has \
a short name and a one-sentence description.
Reply with ONLY a JSON object: {"screens": [{"name": "...", "description": "..."}]}"""

_STYLE_SYSTEM = """\
Given a request for a mobile app and the screens to create, describe the visual \
guidelines (colors, mood, typography) in a few sentences, and whether new \
designs should be generated.
Reply with ONLY a JSON object: {"guidelines": "...", "should_generate": true}"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _parse_json_object(text: str) -> dict:
    """Parse a JSON object reply, tolerating code fences and surrounding prose."""
    cleaned = _FENCE_RE.sub("", text.strip())
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end < start:
        raise ValueError(f"No JSON object in planner reply: {text[:200]!r}")
    data = json.loads(cleaned[start:end + 1])
    if not isinstance(data, dict):
        raise ValueError("Planner reply is not a JSON object")
    return data


async def classify_intent(model, prompt: str) -> str:
    """Returns 'generate' or 'edit'."""
    reply = await model.complete(_CLASSIFY_SYSTEM, prompt[:2000], max_tokens=16)
    return "edit" if "EDIT" in reply.strip().upper() else "generate"


async def plan_screens(model, prompt: str) -> list[dict]:
    data = _parse_json_object(await model.complete(_SCREENS_SYSTEM, prompt, max_tokens=1024))
    screens = []
    for item in data.get("screens") or []:
        if isinstance(item, dict) and item.get("name"):
            screens.append({
                "name": str(item["name"]),
                "description": str(item.get("description") or ""),
            })
    return screens


async def plan_style(model, prompt: str, screens: list[dict]) -> tuple[str, bool]:
    request = f"User request:\n{prompt}\n\nScreens: {json.dumps(screens)}"
    data = _parse_json_object(await model.complete(_STYLE_SYSTEM, request, max_tokens=1024))
    return str(data.get("guidelines") or ""), bool(data.get("should_generate", True))


async def plan_request(model, prompt: str, emit: EventCallback) -> str:
    """Run the pipeline and return the planning context ("" on failure)."""
    try:
        await emit(AgentEvent.status("planning", "Understanding your request…"))
        intent = await classify_intent(model, prompt)

        screens: list[dict] = []
        if intent == "generate":
            await emit(AgentEvent.status("planning", "Planning screens…"))
            screens = await plan_screens(model, prompt)

        await emit(AgentEvent.status("planning", "Choosing a visual style…"))
        guidelines, should_generate = await plan_style(model, prompt, screens)
    except Exception as e:
        logger.warning("Planner failed, continuing without a plan: %s", e)
        return ""

    logger.info("Plan: intent=%s screens=%d generate=%s", intent, len(screens), should_generate)
    return (
        "## Planning (from pipeline)\n"
        f"- Intent: {intent}\n"
        f"- Screens to create: {json.dumps(screens, indent=2)}\n"
        f"- Visual guidelines: {guidelines}\n"
    )
