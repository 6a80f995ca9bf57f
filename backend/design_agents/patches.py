"""Merging of path-addressed argument patches into a growing object.

Some providers stream tool arguments as a sequence of field patches
(``{"jsonPath": "$.screen_html", "stringValue": "<div"}``) instead of raw JSON
text.  String fragments append to what is already there; numbers, booleans and
nulls replace it.
"""

from dataclasses import dataclass
from typing import Any

_UNSET = object()


@dataclass(frozen=True)
class ArgPatch:
    """One patch: a dot path plus a typed value fragment.

    ``kind`` is one of ``"string"``, ``"number"``, ``"bool"``, ``"null"``, or
    ``None`` when the wire object carried no value (the patch is then a no-op).
    """

    json_path: str
    kind: str | None = None
    value: Any = None

    @classmethod
    def string(cls, path: str, fragment: str) -> "ArgPatch":
        return cls(path, "string", fragment)

    @classmethod
    def number(cls, path: str, value: float) -> "ArgPatch":
        return cls(path, "number", value)

    @classmethod
    def boolean(cls, path: str, value: bool) -> "ArgPatch":
        return cls(path, "bool", value)

    @classmethod
    def null(cls, path: str) -> "ArgPatch":
        return cls(path, "null", None)

    @classmethod
    def from_wire(cls, obj: Any) -> "ArgPatch":
        """Build a patch from a provider object (dict or SDK model)."""
        def field(*names):
            for name in names:
                if isinstance(obj, dict):
                    if name in obj:
                        return obj[name]
                elif hasattr(obj, name):
                    return getattr(obj, name)
            return _UNSET

        path = field("jsonPath", "json_path")
        path = path if isinstance(path, str) else "$"

        string_value = field("stringValue", "string_value")
        if string_value is not _UNSET and string_value is not None:
            return cls.string(path, str(string_value))
        number_value = field("numberValue", "number_value")
        if number_value is not _UNSET and number_value is not None:
            return cls.number(path, number_value)
        bool_value = field("boolValue", "bool_value")
        if bool_value is not _UNSET and bool_value is not None:
            return cls.boolean(path, bool(bool_value))
        null_value = field("nullValue", "null_value")
        # Dicts signal null by key presence; SDK objects by a non-None field.
        if (isinstance(obj, dict) and null_value is not _UNSET) or (
            not isinstance(obj, dict) and null_value not in (_UNSET, None)
        ):
            return cls.null(path)
        return cls(path)


def split_path(json_path: str | None) -> list[str]:
    """``"$.a.b"`` → ``["a", "b"]``; root-only or empty paths → ``[]``."""
    path = json_path or ""
    if path.startswith("$"):
        path = path[1:]
        if path.startswith("."):
            path = path[1:]
    if not path:
        return []
    return path.split(".")


def merge_partial_args(target: dict, patches) -> dict:
    """Apply *patches* to *target* in order and return *target*."""
    for patch in patches or []:
        keys = split_path(patch.json_path)
        if not keys or keys[-1] == "" or patch.kind is None:
            continue
        cur = target
        for key in keys[:-1]:
            if not isinstance(cur.get(key), dict):
                cur[key] = {}
            cur = cur[key]
        last = keys[-1]
        if patch.kind == "string":
            existing = cur.get(last)
            cur[last] = (existing if isinstance(existing, str) else "") + patch.value
        elif patch.kind == "null":
            cur[last] = None
        else:
            cur[last] = patch.value
    return target
