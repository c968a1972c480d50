"""Shared test fixtures for toolforge."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import pytest

from toolforge.config.schema import FetchConfig, SandboxConfig, ToolforgeConfig
from toolforge.sandbox.executor import SandboxExecutor
from toolforge.tools.base import ToolDefinition

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep user and project config files out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("TOOLFORGE_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def config() -> ToolforgeConfig:
    """Config with short timeouts for fast sandbox tests."""
    return ToolforgeConfig(
        sandbox=SandboxConfig(timeout_ms=5_000, timeout_grace_ms=1_000),
        fetch=FetchConfig(enabled=False),
    )


@pytest.fixture
def executor(config: ToolforgeConfig) -> SandboxExecutor:
    return SandboxExecutor(config)


def _default_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"url": str(request.url), "method": request.method})


@pytest.fixture
def fetch_config() -> ToolforgeConfig:
    return ToolforgeConfig(
        sandbox=SandboxConfig(timeout_ms=5_000),
        fetch=FetchConfig(enabled=True, allowed_hosts=["api.example.com"]),
    )


@pytest.fixture
def fetch_executor(fetch_config: ToolforgeConfig) -> SandboxExecutor:
    """Executor whose fetch capability is served by a mock transport."""
    return SandboxExecutor(fetch_config, transport=httpx.MockTransport(_default_handler))


@pytest.fixture
def make_definition() -> Any:
    """Factory fixture for ToolDefinition with sensible defaults."""
    counter = iter(range(1, 10_000))

    def _make(**overrides: Any) -> ToolDefinition:
        n = next(counter)
        defaults: dict[str, Any] = {
            "id": f"tool-{n}",
            "name": f"Tool {n}",
            "description": "",
            "code": "function echo({ text }) { return text; }",
        }
        defaults.update(overrides)
        return ToolDefinition(**defaults)

    return _make
