"""Tests for truncated-JSON repair and the single-field raw scan."""

import json

from design_agents.partial_json import extract_partial_string, repair_partial_json


SCREEN_ARGS = {
    "name": "Login",
    "screen_html": '<div class="card">\n\t<h1>Welcome back</h1> \\ café "quoted"</div>',
}


class TestRepairPartialJson:
    def test_empty_buffer(self):
        """Empty or whitespace input gives None."""
        assert repair_partial_json("") is None
        assert repair_partial_json("   ") is None
        assert repair_partial_json(None) is None

    def test_must_open_an_object(self):
        """Anything that does not start with '{' is rejected."""
        assert repair_partial_json('"name": "x"') is None
        assert repair_partial_json("[1, 2") is None

    def test_open_string_is_closed(self):
        """A value cut mid-string is closed with a quote and a brace."""
        assert repair_partial_json('{"name": "Log') == {"name": "Log"}

    def test_dangling_colon_gets_empty_value(self):
        """A key with no value yet maps to an empty string."""
        assert repair_partial_json('{"name": "Login", "screen_html":') == {
            "name": "Login",
            "screen_html": "",
        }

    def test_trailing_comma_and_nested_objects(self):
        """Trailing commas are dropped and nested containers are closed."""
        assert repair_partial_json('{"a": 1,') == {"a": 1}
        assert repair_partial_json('{"updates": {"--primary": "#25') == {
            "updates": {"--primary": "#25"},
        }

    def test_cut_inside_key_is_unrepairable(self):
        """A prefix ending inside a key cannot become valid JSON."""
        assert repair_partial_json('{"name": "Login", "scr') is None

    def test_dangling_escape_is_dropped(self):
        """A lone trailing backslash does not swallow the closing quote."""
        assert repair_partial_json('{"screen_html": "a\\') == {"screen_html": "a"}
        assert repair_partial_json('{"screen_html": "a\\u00') == {"screen_html": "a"}

    def test_complete_object_parses_unchanged(self):
        """Complete JSON is returned as is."""
        raw = json.dumps(SCREEN_ARGS)
        assert repair_partial_json(raw) == SCREEN_ARGS

    def test_repair_is_idempotent(self):
        """Re-repairing the serialization of a repaired prefix yields the same object."""
        raw = json.dumps(SCREEN_ARGS)
        for end in range(len(raw) + 1):
            repaired = repair_partial_json(raw[:end])
            if repaired is None:
                continue
            assert repair_partial_json(json.dumps(repaired)) == repaired


class TestExtractPartialString:
    def test_missing_field(self):
        """No key token or an empty value gives None."""
        assert extract_partial_string("") is None
        assert extract_partial_string('{"name": "Login"') is None
        assert extract_partial_string('{"screen_html": "') is None

    def test_decodes_escapes(self):
        """Quotes, backslashes, newlines and tabs are unescaped."""
        buffer = '{"screen_html": "<p class=\\"x\\">a\\nb\\tc\\\\d</p>"}'
        assert extract_partial_string(buffer) == '<p class="x">a\nb\tc\\d</p>'

    def test_stops_at_buffer_end(self):
        """An unterminated value is returned up to the end of the buffer."""
        assert extract_partial_string('{"screen_html": "<div><h1>Hel') == "<div><h1>Hel"

    def test_dangling_backslash_not_consumed(self):
        """A trailing backslash waits for the next chunk."""
        assert extract_partial_string('{"screen_html": "ab\\') == "ab"

    def test_key_name_inside_a_value(self):
        """The key's own name inside another string does not confuse the scan."""
        buffer = '{"name": "my \\"screen_html\\" page", "screen_html": "<p>x</p>"}'
        assert extract_partial_string(buffer) == "<p>x</p>"
        assert extract_partial_string('{"name": "screen_html", "screen_html": "<b>') == "<b>"

    def test_embedded_braces(self):
        """Braces inside the value are plain text."""
        assert extract_partial_string('{"screen_html": "{ } {{"') == "{ } {{"

    def test_other_key(self):
        """Any key can be scanned."""
        assert extract_partial_string('{"id": "screen-1", "find": "Go', key="find") == "Go"

    def test_monotonic_growth(self):
        """Every prefix yields a prefix of the final string, never shrinking."""
        raw = json.dumps(SCREEN_ARGS)
        final = SCREEN_ARGS["screen_html"]
        previous = ""
        for end in range(len(raw) + 1):
            current = extract_partial_string(raw[:end]) or ""
            assert len(current) >= len(previous)
            assert final.startswith(current)
            previous = current
        assert previous == final
