"""
Design state for one agent request: the screens on the canvas and the theme.

A ``DesignState`` is owned by exactly one running agent loop.  Screens keep
insertion order (= left-to-right placement on the canvas) and store only the
inner body markup; wrapping into a full HTML document happens on render.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FRAME_SPACING = 420
LOADING_LABEL = "Loading…"
EMPTY_SCREEN = "(empty screen)"

EMPTY_THEME_FALLBACK = {
    "--background": "#ffffff",
    "--foreground": "#000000",
    "--primary": "#2563eb",
    "--primary-foreground": "#ffffff",
    "--secondary": "#f1f5f9",
    "--secondary-foreground": "#1e293b",
    "--muted": "#f1f5f9",
    "--muted-foreground": "#64748b",
    "--card": "#ffffff",
    "--card-foreground": "#0f172a",
    "--border": "#e2e8f0",
    "--input": "#f0f2f1",
    "--ring": "#2563eb",
    "--radius": "0.5rem",
    "--font-sans": "system-ui,sans-serif",
    "--font-heading": "system-ui,sans-serif",
}

SCREEN_HTML_HEAD = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Screen</title>
    <link rel="preconnect" href="https://fonts.googleapis.com" />
    <link rel="preconnect" href="https://fonts.gstatic.com" crossorigin />
    <link href="https://fonts.googleapis.com/css2?family=Inter:wght@100..900&family=Poppins:wght@100..900&family=Plus+Jakarta+Sans:wght@200..800&display=swap" rel="stylesheet" />
    <script src="https://cdn.jsdelivr.net/npm/@tailwindcss/browser@4"></script>
    <script src="https://code.iconify.design/iconify-icon/3.0.0/iconify-icon.min.js"></script>
    <style type="text/tailwindcss">
      @theme inline {
        --color-background: var(--background);
        --color-foreground: var(--foreground);
        --color-primary: var(--primary);
        --color-primary-foreground: var(--primary-foreground);
        --color-secondary: var(--secondary);
        --color-secondary-foreground: var(--secondary-foreground);
        --color-muted: var(--muted);
        --color-muted-foreground: var(--muted-foreground);
        --color-accent: var(--accent);
        --color-destructive: var(--destructive);
        --color-card: var(--card);
        --color-card-foreground: var(--card-foreground);
        --color-border: var(--border);
        --color-input: var(--input);
        --color-ring: var(--ring);
        --radius-sm: calc(var(--radius) - 4px);
        --radius-md: calc(var(--radius) - 2px);
        --radius-lg: var(--radius);
      }
      :root { /* THEME_VARS */ }
    </style>
  </head>
  <body>"""

SCREEN_HTML_TAIL = "</body></html>"

_THEME_PLACEHOLDER = "/* THEME_VARS */"
_BODY_RE = re.compile(r"<body[^>]*>([\s\S]*?)</body>", re.IGNORECASE)
_HIDE_SCROLLBARS = (
    "<style>html,body{-ms-overflow-style:none;scrollbar-width:none}"
    "html::-webkit-scrollbar,body::-webkit-scrollbar{display:none}</style>"
)


# ---------------------------------------------------------------------------
# HTML / theme helpers
# ---------------------------------------------------------------------------

def extract_body_content(html: str) -> str:
    """Return the inner <body> markup of a full document, or *html* unchanged."""
    if not html:
        return ""
    match = _BODY_RE.search(html)
    if match:
        return match.group(1).strip()
    return html


def normalize_theme_key(key: str) -> str:
    """``primary`` / ``-primary`` / `` --primary `` → ``--primary``."""
    name = str(key).strip().lstrip("-")
    return f"--{name}" if name else ""


def normalize_theme_vars(theme_vars: dict) -> dict[str, str]:
    """Canonicalize keys and stringify values; drops empty keys and null values."""
    normalized: dict[str, str] = {}
    for key, value in theme_vars.items():
        name = normalize_theme_key(key)
        if not name or value is None:
            continue
        normalized[name] = str(value).strip()
    return normalized


def wrap_screen_body(body: str, theme: dict | None = None) -> str:
    """Wrap body markup into a standalone document with the theme applied."""
    active = theme or EMPTY_THEME_FALLBACK
    css = "\n".join(f"        {k}: {v};" for k, v in active.items())
    head = SCREEN_HTML_HEAD.replace(_THEME_PLACEHOLDER, css)
    return f"{head}\n{body}\n{SCREEN_HTML_TAIL}"


def render_document(body: str | None, theme: dict | None = None) -> str:
    """Full preview document for an iframe, scrollbars hidden."""
    if not body:
        return (
            '<!DOCTYPE html><html><body style="margin:0;display:flex;align-items:center;'
            'justify-content:center;height:100vh;font-family:sans-serif;color:#888">'
            "Loading frame…</body></html>"
        )
    return wrap_screen_body(body, theme).replace("</head>", f"{_HIDE_SCROLLBARS}</head>", 1)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass
class Screen:
    id: str
    label: str
    left: float = 0
    top: float = 0
    body: str = ""
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "left": self.left,
            "top": self.top,
            "body": self.body,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_frame(self, theme: dict | None = None) -> dict:
        """Canvas payload: the stored fields plus the wrapped document."""
        frame = self.to_dict()
        frame["html"] = wrap_screen_body(self.body, theme) if self.body else ""
        return frame

    @classmethod
    def from_dict(cls, data: dict) -> "Screen":
        """Accepts the caller's frame shape; ``html`` may be a full document."""
        raw = data.get("body")
        if raw is None:
            raw = data.get("html") or ""
        screen = cls(
            id=str(data["id"]),
            label=data.get("label") or "Untitled",
            left=data.get("left") or 0,
            top=data.get("top") or 0,
            body=extract_body_content(raw),
        )
        if data.get("created_at"):
            screen.created_at = data["created_at"]
        if data.get("updated_at"):
            screen.updated_at = data["updated_at"]
        return screen


class DesignState:
    """Screens (ordered by placement) and the flat theme mapping."""

    def __init__(self, screens=None, theme: dict | None = None):
        self.screens: dict[str, Screen] = {}
        for screen in screens or []:
            if screen.id in self.screens:
                logger.warning("Duplicate screen id %s ignored", screen.id)
                continue
            self.screens[screen.id] = screen
        self.theme: dict[str, str] = normalize_theme_vars(theme or {})

    @classmethod
    def from_payload(cls, frames: list | None, theme: dict | None) -> "DesignState":
        screens = [
            Screen.from_dict(f) for f in frames or []
            if isinstance(f, dict) and f.get("id")
        ]
        return cls(screens, theme if isinstance(theme, dict) else {})

    def to_dict(self) -> dict:
        return {
            "screens": [s.to_dict() for s in self.screens.values()],
            "theme": dict(self.theme),
        }

    # -- screens ------------------------------------------------------------

    def get(self, screen_id: str) -> Screen | None:
        return self.screens.get(screen_id)

    def next_slot(self) -> tuple[float, float]:
        """Position right of the last placed screen."""
        if not self.screens:
            return 0, 0
        last = next(reversed(self.screens.values()))
        return last.left + FRAME_SPACING, last.top

    def add_screen(self, label: str, body: str = "", screen_id: str | None = None) -> Screen:
        """Place a new screen in the next free slot.

        Raises ValueError if *screen_id* is already taken.
        """
        if screen_id is None:
            screen_id = f"screen-{uuid.uuid4().hex[:8]}"
            while screen_id in self.screens:
                screen_id = f"screen-{uuid.uuid4().hex[:8]}"
        elif screen_id in self.screens:
            raise ValueError(f"Screen id already exists: {screen_id}")
        left, top = self.next_slot()
        screen = Screen(id=screen_id, label=label, left=left, top=top, body=body)
        self.screens[screen_id] = screen
        return screen

    def set_body(self, screen_id: str, body: str, label: str | None = None) -> Screen | None:
        screen = self.screens.get(screen_id)
        if screen is None:
            return None
        screen.body = body
        if label is not None:
            screen.label = label
        screen.updated_at = _now()
        return screen

    def summary(self) -> list[dict]:
        """``[{id, label}]`` in placement order, for the system prompt."""
        return [{"id": s.id, "label": s.label} for s in self.screens.values()]

    # -- theme --------------------------------------------------------------

    def merge_theme(self, updates: dict) -> dict[str, str]:
        """Last write wins per key. Returns the normalized updates."""
        normalized = normalize_theme_vars(updates)
        self.theme.update(normalized)
        return normalized

    def replace_theme(self, theme_vars: dict) -> dict[str, str]:
        normalized = normalize_theme_vars(theme_vars)
        self.theme.clear()
        self.theme.update(normalized)
        return dict(self.theme)
