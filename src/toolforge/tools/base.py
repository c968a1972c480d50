"""Tool protocol and data types.

Defines the ``Tool`` protocol that registry entries satisfy, the stored
``ToolDefinition`` input, and data classes for tool calls, results,
advertised specs and sandbox execution outcomes.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from toolforge.core.errors import FailureKind

_FAILURE_PHRASES: dict[FailureKind, str] = {
    FailureKind.PARSE_ERROR: "could not be prepared for execution",
    FailureKind.SANDBOX_SETUP_ERROR: "could not start its sandbox",
    FailureKind.SNIPPET_THREW: "raised an error while running",
    FailureKind.TIMEOUT: "took too long and was stopped",
    FailureKind.INVALID_ARGUMENTS: "was called with invalid arguments",
}


class ToolDefinition(BaseModel):
    """A stored, user-authored tool: display name, description and code."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    code: str = ""
    enabled: bool = True
    timeout_ms: int | None = Field(default=None, gt=0)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """What the model sees: name, description and JSON Schema."""

    name: str
    description: str
    parameters_schema: dict[str, Any]


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by a model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Result from executing a tool call, ready to hand back to the model."""

    tool_call_id: str
    content: str
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Outcome of one sandboxed invocation.

    Exactly one of ``value`` (when ``ok``) or ``kind`` + ``message``
    (when not ``ok``) is meaningful.
    """

    ok: bool
    value: Any = None
    kind: FailureKind | None = None
    message: str = ""
    elapsed_ms: float = 0.0

    @classmethod
    def success(cls, value: Any, *, elapsed_ms: float = 0.0) -> ExecutionResult:
        return cls(ok=True, value=value, elapsed_ms=elapsed_ms)

    @classmethod
    def failure(
        cls, kind: FailureKind, message: str, *, elapsed_ms: float = 0.0
    ) -> ExecutionResult:
        return cls(ok=False, kind=kind, message=message, elapsed_ms=elapsed_ms)

    def to_dict(self) -> dict[str, Any]:
        """Render as ``{ok, value}`` or ``{ok, kind, message}``."""
        if self.ok:
            return {"ok": True, "value": self.value}
        return {"ok": False, "kind": str(self.kind), "message": self.message}

    def describe(self, tool_name: str = "The tool") -> str:
        """Natural-language summary of a failure, safe to show end users."""
        if self.ok:
            return f"{tool_name} completed successfully."
        assert self.kind is not None
        phrase = _FAILURE_PHRASES.get(self.kind, "failed")
        if self.message:
            return f"{tool_name} {phrase}: {self.message}"
        return f"{tool_name} {phrase}."


@runtime_checkable
class Tool(Protocol):
    """Protocol that all registry entries must satisfy."""

    @property
    def name(self) -> str:
        """Unique name for this tool."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    def parameters_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's parameters."""
        ...

    async def call(self, arguments: Mapping[str, Any] | None = None) -> ExecutionResult:
        """Invoke the tool with a model-supplied argument mapping.

        Returns:
            The outcome; failures are returned, not raised.
        """
        ...
