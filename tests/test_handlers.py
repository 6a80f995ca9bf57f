"""Tests for the built-in tools and the per-request registry."""

import json

import pytest

from design_state import EMPTY_SCREEN, DesignState, Screen
from design_agents.errors import ToolError
from design_agents.handlers import ToolRegistry, substitute_placeholders
from design_agents.tools import TOOLS


class StubImages:
    def __init__(self, url="https://img.example/cat.png"):
        self.url = url
        self.calls = []

    async def resolve(self, image_id, prompt, aspect_ratio="square", background="opaque"):
        self.calls.append((image_id, prompt, aspect_ratio, background))
        return self.url


def make_registry(recorder, screens=None, theme=None, images=None):
    state = DesignState(screens or [], theme or {})
    return ToolRegistry(state, recorder, images)


class TestRegistry:
    def test_all_tools_registered(self, recorder):
        """Every schema in TOOLS has a handler."""
        registry = make_registry(recorder)
        assert [s["name"] for s in registry.schemas()] == [t["name"] for t in TOOLS]

    @pytest.mark.asyncio
    async def test_unknown_tool_raises_key_error(self, recorder):
        """Executing an unregistered name is a KeyError, not a ToolError."""
        with pytest.raises(KeyError):
            await make_registry(recorder).execute("delete_screen", "c1", {})

    def test_registries_do_not_share_state(self, recorder):
        """Each request gets its own image map."""
        a, b = make_registry(recorder), make_registry(recorder)
        a.image_map["img-1"] = "x"
        assert b.image_map == {}


class TestReadTools:
    @pytest.mark.asyncio
    async def test_read_screen(self, recorder):
        """Returns the stored body, or the sentinel for missing/blank screens."""
        registry = make_registry(recorder, [Screen("s1", "Home", body="<p>Hi</p>"), Screen("s2", "Blank")])
        assert await registry.execute("read_screen", "c1", {"id": "s1"}) == "<p>Hi</p>"
        assert await registry.execute("read_screen", "c2", {"id": "s2"}) == EMPTY_SCREEN
        assert await registry.execute("read_screen", "c3", {"id": "nope"}) == EMPTY_SCREEN

    @pytest.mark.asyncio
    async def test_read_theme(self, recorder):
        """The theme comes back as indented JSON."""
        registry = make_registry(recorder, theme={"--primary": "#2563eb"})
        assert json.loads(await registry.execute("read_theme", "c1", {})) == {"--primary": "#2563eb"}


class TestScreenTools:
    @pytest.mark.asyncio
    async def test_create_screen_binds_to_call_id(self, recorder):
        """Without a placeholder the screen is added under the call id."""
        registry = make_registry(recorder)
        result = await registry.execute("create_screen", "call-1", {"name": "Login", "screen_html": "<form></form>"})
        assert result == {"success": True, "id": "call-1", "message": 'Created screen "Login"'}
        assert registry.state.get("call-1").body == "<form></form>"
        assert recorder.types() == ["frame-added"]

    @pytest.mark.asyncio
    async def test_create_screen_replaces_placeholder(self, recorder):
        """A placeholder allocated for the call is filled in, not duplicated."""
        registry = make_registry(recorder)
        registry.state.add_screen("Loading…", "", screen_id="call-1")
        await registry.execute("create_screen", "call-1", {"name": "Login", "screen_html": ""})
        assert len(registry.state.screens) == 1
        assert registry.state.get("call-1").label == "Login"
        assert recorder.types() == ["frame-updated"]

    @pytest.mark.asyncio
    async def test_update_screen(self, recorder):
        """Full body replace; an unknown id is a no-op, not an error."""
        registry = make_registry(recorder, [Screen("s1", "Home", body="<p>old</p>")])
        assert await registry.execute("update_screen", "c1", {"id": "s1", "screen_html": "<p>new</p>"}) == {
            "success": True,
            "updated": True,
        }
        assert registry.state.get("s1").body == "<p>new</p>"
        assert await registry.execute("update_screen", "c2", {"id": "zz", "screen_html": "<p/>"}) == {
            "success": True,
            "updated": False,
        }

    @pytest.mark.asyncio
    async def test_edit_screen_exact_replace(self, recorder):
        """'Hi' → 'Bye' inside <p>Hi</p>."""
        registry = make_registry(recorder, [Screen("s1", "Home", body="<p>Hi</p>")])
        assert await registry.execute("edit_screen", "c1", {"id": "s1", "find": "Hi", "replace": "Bye"}) == {
            "success": True,
        }
        assert registry.state.get("s1").body == "<p>Bye</p>"

    @pytest.mark.asyncio
    async def test_edit_screen_not_found_leaves_body(self, recorder):
        """A find string that is not present fails and changes nothing."""
        registry = make_registry(recorder, [Screen("s1", "Home", body="<p>Hi</p>")])
        with pytest.raises(ToolError, match="not found"):
            await registry.execute("edit_screen", "c1", {"id": "s1", "find": "Hey", "replace": "Bye"})
        assert registry.state.get("s1").body == "<p>Hi</p>"
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_edit_screen_missing_screen(self, recorder):
        """Editing a screen that does not exist is a domain error."""
        with pytest.raises(ToolError, match="Screen not found"):
            await make_registry(recorder).execute("edit_screen", "c1", {"id": "s9", "find": "a", "replace": "b"})

    @pytest.mark.asyncio
    async def test_edit_screen_replaces_first_occurrence_only(self, recorder):
        """Only one occurrence is replaced."""
        registry = make_registry(recorder, [Screen("s1", "Home", body="<b>Go</b><b>Go</b>")])
        await registry.execute("edit_screen", "c1", {"id": "s1", "find": "Go", "replace": "Start"})
        assert registry.state.get("s1").body == "<b>Start</b><b>Go</b>"


class TestThemeTools:
    @pytest.mark.asyncio
    async def test_update_theme_merges(self, recorder):
        """Keys are merged and normalized."""
        registry = make_registry(recorder, theme={"--primary": "#111", "--card": "#fff"})
        await registry.execute("update_theme", "c1", {"updates": {"primary": "#222"}})
        assert registry.state.theme == {"--primary": "#222", "--card": "#fff"}
        assert recorder.events[-1].data["replaced"] is False

    @pytest.mark.asyncio
    async def test_build_theme_replaces(self, recorder):
        """The whole theme is swapped out."""
        registry = make_registry(recorder, theme={"--primary": "#111"})
        result = await registry.execute("build_theme", "c1", {"theme_vars": {"--background": "#000"}})
        assert result == {"success": True, "message": "Theme built"}
        assert registry.state.theme == {"--background": "#000"}
        assert recorder.events[-1].data["replaced"] is True

    @pytest.mark.asyncio
    async def test_build_theme_rejects_malformed_input(self, recorder):
        """theme_vars must be an object."""
        registry = make_registry(recorder, theme={"--primary": "#111"})
        with pytest.raises(ToolError, match="theme_vars"):
            await registry.execute("build_theme", "c1", {"theme_vars": "dark"})
        assert registry.state.theme == {"--primary": "#111"}


class TestImages:
    @pytest.mark.asyncio
    async def test_generate_image_then_substitute(self, recorder):
        """Generated URLs replace placeholder:{id} tokens in later screens."""
        images = StubImages()
        registry = make_registry(recorder, images=images)
        result = await registry.execute("generate_image", "c1", {
            "id": "img-1", "prompt": "a cat", "aspect_ratio": "landscape", "background": "opaque",
        })
        assert result == {"success": True, "url": images.url}
        assert images.calls == [("img-1", "a cat", "landscape", "opaque")]

        await registry.execute("create_screen", "c2", {"name": "Cat", "screen_html": '<img src="placeholder:img-1">'})
        assert registry.state.get("c2").body == f'<img src="{images.url}">'

    @pytest.mark.asyncio
    async def test_generate_image_without_resolver_uses_placeholder_service(self, recorder):
        """With no resolver the deterministic picsum URL is used."""
        registry = make_registry(recorder)
        result = await registry.execute("generate_image", "c1", {"id": "hero", "prompt": "x", "aspect_ratio": "portrait"})
        assert result["url"] == "https://picsum.photos/seed/hero/768/1024"

    def test_longer_ids_substitute_first(self):
        """img-10 is not corrupted by the img-1 mapping."""
        html = "placeholder:img-1 placeholder:img-10"
        assert substitute_placeholders(html, {"img-1": "A", "img-10": "B"}) == "A B"
