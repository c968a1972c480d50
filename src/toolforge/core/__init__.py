"""Core types and errors."""

from toolforge.core.errors import (
    ArgumentValidationError,
    ConfigError,
    ExecutionTimeoutError,
    FailureKind,
    SandboxError,
    SandboxSetupError,
    SnippetParseError,
    SnippetThrewError,
    ToolforgeError,
)

__all__ = [
    "ArgumentValidationError",
    "ConfigError",
    "ExecutionTimeoutError",
    "FailureKind",
    "SandboxError",
    "SandboxSetupError",
    "SnippetParseError",
    "SnippetThrewError",
    "ToolforgeError",
]
