"""Exception hierarchy for toolforge.

Every module imports from here. The hierarchy is:

    ToolforgeError
    ├── ConfigError
    ├── ArgumentValidationError(errors)
    └── SandboxError(kind)
        ├── SnippetParseError
        ├── SandboxSetupError
        ├── SnippetThrewError(error_name)
        └── ExecutionTimeoutError(timeout_ms)

``SandboxError`` subclasses never escape the executor: they are raised
internally and converted to an ``ExecutionResult`` failure whose kind is
the exception's ``kind``.
"""

from __future__ import annotations

from enum import StrEnum


class FailureKind(StrEnum):
    """Failure categories reported in an ``ExecutionResult``."""

    PARSE_ERROR = "ParseError"
    SANDBOX_SETUP_ERROR = "SandboxSetupError"
    SNIPPET_THREW = "SnippetThrew"
    TIMEOUT = "Timeout"
    INVALID_ARGUMENTS = "InvalidArguments"


class ToolforgeError(Exception):
    """Base exception for all toolforge errors."""


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(ToolforgeError):
    """Invalid configuration."""


# ─── Argument Errors ──────────────────────────────────────────


class ArgumentValidationError(ToolforgeError):
    """Tool arguments do not match the synthesized input schema."""

    kind = FailureKind.INVALID_ARGUMENTS

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("Invalid arguments: " + "; ".join(errors))


# ─── Sandbox Errors ───────────────────────────────────────────


class SandboxError(ToolforgeError):
    """Base for failures raised while preparing or running a snippet."""

    kind: FailureKind = FailureKind.SANDBOX_SETUP_ERROR


class SnippetParseError(SandboxError):
    """The snippet cannot be prepared for execution."""

    kind = FailureKind.PARSE_ERROR


class SandboxSetupError(SandboxError):
    """The isolated context itself could not be constructed."""

    kind = FailureKind.SANDBOX_SETUP_ERROR


class SnippetThrewError(SandboxError):
    """The snippet's own logic raised or rejected."""

    kind = FailureKind.SNIPPET_THREW

    def __init__(self, message: str, error_name: str | None = None) -> None:
        self.error_name = error_name
        super().__init__(message)


class ExecutionTimeoutError(SandboxError):
    """Execution exceeded its wall-clock bound."""

    kind = FailureKind.TIMEOUT

    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Execution timed out after {timeout_ms}ms")
