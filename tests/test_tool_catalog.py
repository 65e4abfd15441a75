"""Tests for glob filtering, tool discovery and the model tool projection."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from agent_runtime.bridge.catalog import (
    ToolCatalog,
    ToolDescriptor,
    extract_text,
    namespace_tool_name,
    to_model_tools,
)
from agent_runtime.bridge.filter import ToolFilter, build_filter, matches_glob


class TestMatchesGlob:
    @pytest.mark.parametrize(
        "pattern,value",
        [
            ("read_*", "read_file"),
            ("read_*", "read_"),
            ("*_file", "write_file"),
            ("*", "anything"),
            ("exact", "exact"),
            ("a*b*c", "aXXbYYc"),
        ],
    )
    def test_matches(self, pattern: str, value: str) -> None:
        assert matches_glob(pattern, value)

    @pytest.mark.parametrize(
        "pattern,value",
        [
            ("read_*", "write_file"),
            ("exact", "exactly"),
            ("file.txt", "fileXtxt"),
            ("tool?", "tool1"),
            ("[ab]", "a"),
        ],
    )
    def test_does_not_match(self, pattern: str, value: str) -> None:
        assert not matches_glob(pattern, value)

    def test_regex_metacharacters_are_literal(self) -> None:
        assert matches_glob("a.b(c)+", "a.b(c)+")


class TestToolFilter:
    def test_no_rules_passes_everything(self) -> None:
        f = ToolFilter()
        assert not f.is_active
        assert f.is_allowed("anything")

    def test_allow_list_restricts(self) -> None:
        f = ToolFilter(allowed=["read_*"])
        assert f.is_allowed("read_file")
        assert not f.is_allowed("write_file")

    def test_block_wins_over_allow(self) -> None:
        f = ToolFilter(allowed=["*"], blocked=["delete_*"])
        assert f.is_allowed("read_file")
        assert not f.is_allowed("delete_file")

    def test_empty_allow_list_means_no_restriction(self) -> None:
        f = ToolFilter(allowed=[], blocked=["rm"])
        assert f.is_allowed("ls")
        assert not f.is_allowed("rm")

    def test_build_filter_from_definition(self, make_def) -> None:
        f = build_filter(make_def("fs", allowed_tools=["read_*"], blocked_tools=["read_secret"]))
        assert f.is_allowed("read_file")
        assert not f.is_allowed("read_secret")
        assert not f.is_allowed("write_file")


class TestToolCatalog:
    def _connections(self, farm, make_def, names):
        return {name: farm.factory(make_def(name)) for name in names}

    def test_discovers_and_namespaces(self, farm, make_def) -> None:
        farm.add("fs", ["read_file", "write_file"])
        farm.add("git", ["status"])
        conns = self._connections(farm, make_def, ["fs", "git"])

        tools = asyncio.run(ToolCatalog().get_tools(conns))
        assert sorted(t.namespaced_name for t in tools) == [
            "fs__read_file",
            "fs__write_file",
            "git__status",
        ]
        assert all(isinstance(t, ToolDescriptor) for t in tools)

    def test_cached_list_is_identical_and_queried_once(self, farm, make_def) -> None:
        farm.add("fs", ["read_file"])
        conns = self._connections(farm, make_def, ["fs"])
        catalog = ToolCatalog()

        async def _run():
            return await catalog.get_tools(conns), await catalog.get_tools(conns)

        first, second = asyncio.run(_run())
        assert first is second
        assert farm.connections["fs"].list_calls == 1
        assert catalog.is_cached

    def test_invalidate_forces_rediscovery(self, farm, make_def) -> None:
        farm.add("fs", ["read_file"])
        conns = self._connections(farm, make_def, ["fs"])
        catalog = ToolCatalog()

        async def _run():
            first = await catalog.get_tools(conns)
            catalog.invalidate()
            return first, await catalog.get_tools(conns)

        first, second = asyncio.run(_run())
        assert first is not second
        assert farm.connections["fs"].list_calls == 2

    def test_failing_server_contributes_nothing(self, farm, make_def) -> None:
        farm.add("fs", ["read_file"])
        farm.add("broken", ["x"], list_error=RuntimeError("boom"))
        conns = self._connections(farm, make_def, ["fs", "broken"])

        tools = asyncio.run(ToolCatalog().get_tools(conns))
        assert [t.namespaced_name for t in tools] == ["fs__read_file"]

    def test_slow_server_times_out(self, farm, make_def) -> None:
        farm.add("fs", ["read_file"])
        conns = self._connections(farm, make_def, ["fs"])

        async def _hang():
            await asyncio.sleep(10)

        conns["fs"].list_tools = _hang
        tools = asyncio.run(ToolCatalog(cap_fetch_timeout=0.01).get_tools(conns))
        assert tools == []

    def test_filter_applied_per_server(self, farm, make_def, caplog) -> None:
        farm.add("fs", ["read_file", "write_file", "delete_file"])
        conns = {
            "fs": farm.factory(
                make_def("fs", allowed_tools=["*_file"], blocked_tools=["delete_*"])
            )
        }
        with caplog.at_level("DEBUG", logger="agent_runtime.bridge.catalog"):
            tools = asyncio.run(ToolCatalog().get_tools(conns))
        assert [t.name for t in tools] == ["read_file", "write_file"]
        assert "[fs] Applying ToolFilter(allowed=['*_file'], blocked=['delete_*'])" in caplog.text
        assert "[fs] Tool 'delete_file' filtered out" in caplog.text

    def test_inactive_filter_not_logged(self, farm, make_def, caplog) -> None:
        farm.add("fs", ["read_file"])
        conns = self._connections(farm, make_def, ["fs"])
        with caplog.at_level("DEBUG", logger="agent_runtime.bridge.catalog"):
            asyncio.run(ToolCatalog().get_tools(conns))
        assert "Applying ToolFilter" not in caplog.text

    def test_duplicate_tool_names_keep_first(self, farm, make_def) -> None:
        farm.add("fs", ["read_file", "read_file"])
        conns = self._connections(farm, make_def, ["fs"])
        tools = asyncio.run(ToolCatalog().get_tools(conns))
        assert len(tools) == 1

    def test_no_connections(self) -> None:
        assert asyncio.run(ToolCatalog().get_tools({})) == []


class TestToModelTools:
    def test_projection_shape(self) -> None:
        tool = ToolDescriptor(
            name="read_file",
            description="Read a file",
            input_schema={
                "type": "object",
                "properties": {"path": {"type": "string"}},
                "required": ["path"],
            },
            server_name="fs",
        )
        assert to_model_tools([tool]) == [
            {
                "name": "fs__read_file",
                "description": "Read a file",
                "input_schema": {
                    "type": "object",
                    "properties": {"path": {"type": "string"}},
                    "required": ["path"],
                },
            }
        ]

    def test_missing_schema_parts_default(self) -> None:
        tool = ToolDescriptor(name="ping", server_name="net")
        schema = to_model_tools([tool])[0]["input_schema"]
        assert schema == {"type": "object", "properties": {}, "required": []}


class TestHelpers:
    def test_namespace_tool_name(self) -> None:
        assert namespace_tool_name("fs", "read_file") == "fs__read_file"

    def test_extract_text_from_dicts_and_objects(self) -> None:
        content = [
            {"type": "text", "text": "a"},
            {"type": "image", "data": "..."},
            SimpleNamespace(type="text", text="b"),
            SimpleNamespace(type="tool_use", name="x"),
        ]
        assert extract_text(content) == ["a", "b"]

    def test_extract_text_none(self) -> None:
        assert extract_text(None) == []
