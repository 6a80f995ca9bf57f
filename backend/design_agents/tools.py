"""Anthropic tool definitions (JSON Schema) for the design agent.

The Gemini adapter in ``providers.py`` converts the same list into function
declarations, so this is the single source of tool schemas.
"""

TOOLS = [
    {
        "name": "read_screen",
        "description": (
            "Returns the current HTML of a screen. Call this before editing. "
            "id must be from the Current Screens table in the system context."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "Screen id."},
            },
            "required": ["id"],
        },
    },
    {
        "name": "read_theme",
        "description": "Returns the current CSS theme variables and fonts.",
        "input_schema": {
            "type": "object",
            "properties": {},
        },
    },
    {
        "name": "create_screen",
        "description": (
            "Creates a new screen. screen_html is inner body content only "
            "(no html, head, or body tags). Use src=\"placeholder:{id}\" for "
            "AI-generated images; call generate_image first with the same id."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Screen label/name."},
                "screen_html": {"type": "string", "description": "HTML for body content only."},
            },
            "required": ["name", "screen_html"],
        },
    },
    {
        "name": "update_screen",
        "description": (
            "Replaces the ENTIRE screen body. Use only for broad layout "
            "redesigns. Do NOT use for small targeted edits."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "Screen id."},
                "screen_html": {"type": "string", "description": "HTML for body content only."},
            },
            "required": ["id", "screen_html"],
        },
    },
    {
        "name": "edit_screen",
        "description": (
            "Targeted find/replace on screen HTML. Use for specific-section "
            "edits (e.g. change one button color); the rest of the UI is "
            "preserved. find must match read_screen output exactly. "
            "One edit per screen."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "id": {"type": "string"},
                "find": {"type": "string", "description": "Exact string to find (from read_screen)."},
                "replace": {"type": "string", "description": "Replacement string."},
            },
            "required": ["id", "find", "replace"],
        },
    },
    {
        "name": "update_theme",
        "description": "Updates CSS theme variables. Example: {\"--primary\": \"#2563EB\"}",
        "input_schema": {
            "type": "object",
            "properties": {
                "updates": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                    "description": "CSS variable names to values.",
                },
            },
            "required": ["updates"],
        },
    },
    {
        "name": "build_theme",
        "description": (
            "Creates or replaces the global theme. Pass theme_vars as an "
            "object of CSS variable names (with -- prefix) to values. Required "
            "keys: --background, --foreground, --primary, --primary-foreground, "
            "--secondary, --muted, --card, --border, --radius, --font-sans, "
            "--font-heading."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "description": {"type": "string"},
                "theme_vars": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                },
            },
            "required": ["theme_vars"],
        },
    },
    {
        "name": "generate_image",
        "description": (
            "Generates an AI image. Call FIRST before the create_screen / "
            "update_screen that uses it, then reference it in HTML with "
            "src=\"placeholder:{id}\". background: opaque (photos) or "
            "transparent (icons)."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "Placeholder id, e.g. img-1."},
                "prompt": {"type": "string", "description": "Detailed image description."},
                "aspect_ratio": {"type": "string", "enum": ["square", "landscape", "portrait"]},
                "background": {"type": "string", "enum": ["opaque", "transparent"]},
            },
            "required": ["id", "prompt", "aspect_ratio", "background"],
        },
    },
]

TOOL_NAMES = frozenset(t["name"] for t in TOOLS)
