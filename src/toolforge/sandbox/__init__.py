"""Isolated snippet execution: prelude, host capabilities and executor."""

from toolforge.sandbox.executor import SandboxExecutor

__all__ = ["SandboxExecutor"]
