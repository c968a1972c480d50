"""Pydantic models for toolforge configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SandboxConfig(BaseModel):
    """Bounds applied to every snippet invocation."""

    timeout_ms: int = Field(default=30_000, gt=0)
    timeout_grace_ms: int = Field(default=1_000, ge=0)
    memory_limit_mb: int = Field(default=64, gt=0)
    max_code_bytes: int = Field(default=100_000, gt=0)


class FetchConfig(BaseModel):
    """The ``fetch`` capability exposed to snippets."""

    enabled: bool = True
    allowed_hosts: list[str] = Field(default_factory=list)
    allow_private_networks: bool = False
    timeout: float = 15.0
    max_response_bytes: int = 1_000_000
    user_agent: str = "toolforge-sandbox/0.1"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class ToolsConfig(BaseModel):
    """Tool registry settings."""

    max_result_chars: int = 10_000


class ToolforgeConfig(BaseModel):
    """Top-level configuration for toolforge."""

    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
