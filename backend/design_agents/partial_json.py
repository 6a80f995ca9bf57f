"""Best-effort parsing of tool arguments that are still streaming in.

Providers that stream raw JSON text hand us arbitrary prefixes such as
``{"name": "Login", "screen_html": "<div class=\\"ca``.  Two strategies are
offered:

* ``repair_partial_json`` closes the open string / containers and parses the
  whole object.  Cheap for small objects, returns ``None`` when the prefix
  cannot be repaired into valid JSON (the caller keeps its last good value).
* ``extract_partial_string`` scans the buffer for one known string field and
  decodes it up to the end of the buffer, without parsing anything else.
  Used for the large HTML body so it keeps growing even when the object as a
  whole is unparseable.
"""

import json

_SIMPLE_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
}


# ---------------------------------------------------------------------------
# Whole-object repair
# ---------------------------------------------------------------------------

def _scan_structure(text: str) -> tuple[bool, list[str]]:
    """Return (inside_string, open_containers) at the end of *text*."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]":
            if stack:
                stack.pop()
    return in_string, stack


def _close_truncated(text: str) -> str:
    in_string, stack = _scan_structure(text)
    repaired = text
    if in_string:
        # A lone backslash would escape the quote we are about to add.
        trailing = len(repaired) - len(repaired.rstrip("\\"))
        if trailing % 2 == 1:
            repaired = repaired[:-1]
        # An unfinished \uXXXX escape cannot be closed either.
        tail = repaired[-6:]
        u_idx = tail.rfind("\\u")
        if u_idx != -1 and len(tail) - u_idx < 6:
            repaired = repaired[: len(repaired) - len(tail) + u_idx]
        repaired += '"'
    else:
        repaired = repaired.rstrip()
        if repaired.endswith(":"):
            repaired += '""'
        elif repaired.endswith(","):
            repaired = repaired[:-1]
    for opener in reversed(stack):
        repaired += "}" if opener == "{" else "]"
    return repaired


def repair_partial_json(text: str | None) -> dict | None:
    """Repair a truncated JSON object and parse it.

    Returns ``None`` for empty input, input that does not open an object, or a
    prefix that is still invalid after closing (e.g. it ends inside a key).
    """
    if not text:
        return None
    candidate = text.strip()
    if not candidate.startswith("{"):
        return None
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(_close_truncated(candidate))
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


# ---------------------------------------------------------------------------
# Single-field raw scan
# ---------------------------------------------------------------------------

def _find_value_start(buffer: str, key: str) -> int:
    """Index of the opening quote of *key*'s string value, or -1."""
    token = f'"{key}"'
    search_from = 0
    while True:
        idx = buffer.find(token, search_from)
        if idx == -1:
            return -1
        search_from = idx + 1
        if idx > 0 and buffer[idx - 1] == "\\":
            continue  # the token sits inside another (escaped) string
        pos = idx + len(token)
        while pos < len(buffer) and buffer[pos] in " \t\r\n":
            pos += 1
        if pos >= len(buffer):
            return -1
        if buffer[pos] != ":":
            continue
        return buffer.find('"', pos + 1)


def extract_partial_string(buffer: str | None, key: str = "screen_html") -> str | None:
    """Decode the (possibly unterminated) string value of *key* in *buffer*.

    The result only ever grows as *buffer* grows: an escape sequence split
    across chunks is left out until its remaining characters arrive.
    """
    if not buffer:
        return None
    start = _find_value_start(buffer, key)
    if start == -1:
        return None
    out: list[str] = []
    i = start + 1
    n = len(buffer)
    while i < n:
        c = buffer[i]
        if c == "\\":
            if i + 1 >= n:
                break
            nxt = buffer[i + 1]
            if nxt == "u":
                digits = buffer[i + 2:i + 6]
                if len(digits) < 4:
                    break
                try:
                    out.append(chr(int(digits, 16)))
                except ValueError:
                    out.append(digits)
                i += 6
                continue
            out.append(_SIMPLE_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if c == '"':
            break
        out.append(c)
        i += 1
    return "".join(out) or None
