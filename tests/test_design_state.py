"""Tests for the canvas data model and HTML helpers."""

import pytest

from design_state import (
    FRAME_SPACING,
    DesignState,
    Screen,
    extract_body_content,
    normalize_theme_vars,
    render_document,
    wrap_screen_body,
)


class TestHtmlHelpers:
    def test_extract_body_content(self):
        """The inner body is pulled out of a full document; fragments pass through."""
        assert extract_body_content("<html><body class='x'> <p>Hi</p> </body></html>") == "<p>Hi</p>"
        assert extract_body_content("<p>Hi</p>") == "<p>Hi</p>"
        assert extract_body_content("") == ""

    def test_wrap_then_extract(self):
        """Wrapping a body and extracting it again gives the body back."""
        wrapped = wrap_screen_body("<p>Hi</p>", {"--primary": "#000"})
        assert "--primary: #000;" in wrapped
        assert extract_body_content(wrapped) == "<p>Hi</p>"

    def test_render_document(self):
        """Rendering hides scrollbars; an empty body shows a loading page."""
        assert "scrollbar-width:none" in render_document("<p>Hi</p>")
        assert "Loading frame" in render_document("")

    def test_normalize_theme_vars(self):
        """Keys gain the -- prefix; null values and empty keys are dropped."""
        assert normalize_theme_vars({"primary": "#fff", "-muted": 1, "--card": None, "": "x"}) == {
            "--primary": "#fff",
            "--muted": "1",
        }


class TestDesignState:
    def test_screens_are_placed_left_to_right(self):
        """Each new screen goes one slot right of the last one."""
        state = DesignState()
        first = state.add_screen("A")
        second = state.add_screen("B")
        assert (first.left, first.top) == (0, 0)
        assert (second.left, second.top) == (FRAME_SPACING, 0)
        assert [s["label"] for s in state.summary()] == ["A", "B"]

    def test_preallocated_id_is_bound(self):
        """A caller-chosen id is used as is; reusing it is rejected."""
        state = DesignState()
        screen = state.add_screen("A", screen_id="call-1")
        assert screen.id == "call-1"
        with pytest.raises(ValueError):
            state.add_screen("B", screen_id="call-1")

    def test_set_body_unknown_screen(self):
        """Updating a missing screen returns None."""
        assert DesignState().set_body("missing", "<p/>") is None

    def test_theme_merge_and_replace(self):
        """Merges are last-write-wins per key; a replace clears old keys first."""
        state = DesignState(theme={"--primary": "#111", "--muted": "#222"})
        state.merge_theme({"primary": "#333"})
        assert state.theme == {"--primary": "#333", "--muted": "#222"}
        state.replace_theme({"--background": "#000"})
        assert state.theme == {"--background": "#000"}

    def test_from_payload(self):
        """Frames with full documents are reduced to their body; invalid frames are skipped."""
        state = DesignState.from_payload(
            [
                {"id": "s1", "label": "Home", "left": 10, "top": 20, "html": "<body><p>x</p></body>"},
                {"label": "no id"},
                "junk",
            ],
            {"primary": "#fff"},
        )
        assert list(state.screens) == ["s1"]
        assert state.get("s1").body == "<p>x</p>"
        assert state.theme == {"--primary": "#fff"}

    def test_to_frame_wraps_body(self):
        """Frames carry a full document only when the body is non-empty."""
        screen = Screen(id="s1", label="Home", body="<p>x</p>")
        assert "<p>x</p>" in screen.to_frame()["html"]
        assert Screen(id="s2", label="Empty").to_frame()["html"] == ""
