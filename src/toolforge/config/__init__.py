"""Configuration loading and validation."""

from toolforge.config.loader import load_config
from toolforge.config.schema import (
    FetchConfig,
    LoggingConfig,
    SandboxConfig,
    ToolforgeConfig,
    ToolsConfig,
)

__all__ = [
    "FetchConfig",
    "LoggingConfig",
    "SandboxConfig",
    "ToolforgeConfig",
    "ToolsConfig",
    "load_config",
]
