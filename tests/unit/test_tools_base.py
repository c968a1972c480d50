"""Tests for tool data types and the Tool protocol."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError

from toolforge.core.errors import FailureKind
from toolforge.tools.base import (
    ExecutionResult,
    Tool,
    ToolCall,
    ToolDefinition,
    ToolResult,
    ToolSpec,
)


class TestToolDefinition:
    def test_defaults(self) -> None:
        d = ToolDefinition(id="1", name="x")
        assert d.description == ""
        assert d.code == ""
        assert d.enabled is True
        assert d.timeout_ms is None

    def test_frozen(self) -> None:
        d = ToolDefinition(id="1", name="x")
        with pytest.raises(ValidationError):
            d.name = "y"  # type: ignore[misc]

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ToolDefinition(id="1", name="x", timeout_ms=0)


class TestDataclasses:
    def test_tool_call_default_arguments(self) -> None:
        call = ToolCall(id="c1", name="t")
        assert call.arguments == {}

    def test_tool_result_default_not_error(self) -> None:
        assert ToolResult(tool_call_id="c1", content="ok").is_error is False

    def test_spec_is_frozen(self) -> None:
        spec = ToolSpec(name="t", description="d", parameters_schema={})
        with pytest.raises(AttributeError):
            spec.name = "u"  # type: ignore[misc]


class TestExecutionResult:
    def test_success_to_dict(self) -> None:
        result = ExecutionResult.success({"query": "cats"}, elapsed_ms=3.5)
        assert result.ok is True
        assert result.elapsed_ms == 3.5
        assert result.to_dict() == {"ok": True, "value": {"query": "cats"}}

    def test_failure_to_dict(self) -> None:
        result = ExecutionResult.failure(FailureKind.SNIPPET_THREW, "Error: boom")
        assert result.to_dict() == {
            "ok": False,
            "kind": "SnippetThrew",
            "message": "Error: boom",
        }

    def test_success_with_null_value(self) -> None:
        assert ExecutionResult.success(None).to_dict() == {"ok": True, "value": None}

    def test_describe_failure(self) -> None:
        result = ExecutionResult.failure(FailureKind.TIMEOUT, "Execution timed out after 5ms")
        text = result.describe("Tool 'slow'")
        assert text == "Tool 'slow' took too long and was stopped: Execution timed out after 5ms"

    def test_describe_failure_without_message(self) -> None:
        result = ExecutionResult.failure(FailureKind.PARSE_ERROR, "")
        assert result.describe() == "The tool could not be prepared for execution."

    def test_describe_success(self) -> None:
        assert "successfully" in ExecutionResult.success(1).describe()


class _EchoTool:
    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo"

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {"type": "object"}

    async def call(self, arguments: Any = None) -> ExecutionResult:
        return ExecutionResult.success(arguments)


class TestToolProtocol:
    def test_structural_match(self) -> None:
        assert isinstance(_EchoTool(), Tool)

    def test_missing_call_does_not_match(self) -> None:
        class _NoCall:
            name = "x"
            description = "y"
            parameters_schema: dict[str, Any] = {}

        assert not isinstance(_NoCall(), Tool)

    async def test_call(self) -> None:
        result = await _EchoTool().call({"a": "b"})
        assert result.value == {"a": "b"}
