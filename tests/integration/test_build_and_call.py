"""End-to-end tests: stored definitions to registry calls through the real sandbox."""

from __future__ import annotations

import re
from typing import Any

from toolforge.config.schema import ToolforgeConfig
from toolforge.core.errors import FailureKind
from toolforge.tools.base import ToolCall
from toolforge.tools.builder import build_tools
from toolforge.tools.registry import ToolRegistry

NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_-]{0,63}$")


class TestDestructuredSearch:
    async def test_web_search(self, make_definition: Any, config: ToolforgeConfig) -> None:
        definition = make_definition(
            name="Web Search!",
            code="function search({ query }) { return { query }; }",
        )
        (tool,) = build_tools([definition], config=config)

        assert NAME_PATTERN.match(tool.name)
        assert tool.name == "Web_Search"
        assert tool.input_schema.fields == {"query": "The query parameter."}
        assert tool.input_schema.kind_of("query") == "string"

        result = await tool.call({"query": "cats"})
        assert result.to_dict() == {"ok": True, "value": {"query": "cats"}}


class TestDuplicateNames:
    async def test_both_built_and_callable(
        self, make_definition: Any, config: ToolforgeConfig
    ) -> None:
        defs = [
            make_definition(name="Fetch Data", code="function a({ id }) { return 'a' + id; }"),
            make_definition(name="Fetch Data", code="function b({ id }) { return 'b' + id; }"),
        ]
        first, second = build_tools(defs, config=config)
        assert first.name == "Fetch_Data"
        assert second.name == "Fetch_Data_2"
        assert (await first.call({"id": "1"})).value == "a1"
        assert (await second.call({"id": "1"})).value == "b1"


class TestFailureContainment:
    async def test_throwing_tool_does_not_affect_others(
        self, make_definition: Any, config: ToolforgeConfig
    ) -> None:
        defs = [
            make_definition(
                name="broken",
                code="function broken({ x }) { throw new Error('kaput: ' + x); }",
            ),
            make_definition(name="healthy", code="function ok({ x }) { return x.toUpperCase(); }"),
        ]
        registry = ToolRegistry.from_definitions(defs, config=config)

        broken = await registry.get("broken").call({"x": "1"})
        assert broken.to_dict() == {
            "ok": False,
            "kind": FailureKind.SNIPPET_THREW.value,
            "message": "Error: kaput: 1",
        }

        assert "healthy" in registry
        healthy = await registry.execute(ToolCall(id="c1", name="healthy", arguments={"x": "hi"}))
        assert healthy.is_error is False
        assert healthy.content == "HI"

    async def test_unparseable_tool_still_built(
        self, make_definition: Any, config: ToolforgeConfig
    ) -> None:
        defs = [
            make_definition(name="garbage", code="this is not code at all {"),
            make_definition(name="fine", code="function f(v) { return v; }"),
        ]
        registry = ToolRegistry.from_definitions(defs, config=config)
        assert registry.list_names() == ["garbage", "fine"]

        garbage = await registry.get("garbage").call({})
        assert garbage.kind is FailureKind.PARSE_ERROR

        fine = await registry.get("fine").call({"v": 7})
        assert fine.value == "7"


class TestTimeoutContainment:
    async def test_slow_tool_times_out(self, make_definition: Any, config: ToolforgeConfig) -> None:
        (tool,) = build_tools(
            [make_definition(name="spin", code="function spin() { for (;;) {} }", timeout_ms=150)],
            config=config,
        )
        result = await tool.call({})
        assert result.kind is FailureKind.TIMEOUT
        assert tool.usage.failed_calls == 1
