"""Configuration loading from layered TOML files.

Later layers win:

1. model defaults
2. ``$XDG_CONFIG_HOME/toolforge/config.toml`` (``~/.config`` fallback)
3. ``./toolforge.toml``
4. the file named by ``$TOOLFORGE_CONFIG``
5. the ``path`` given to :func:`load_config`
6. ``overrides``

Optional layers (2, 3) are skipped when absent; named files (4, 5) must
exist.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from toolforge.core.errors import ConfigError

from .schema import ToolforgeConfig

ENV_VAR = "TOOLFORGE_CONFIG"


def config_files(path: str | Path | None = None) -> list[Path]:
    """Existing config files in merge order (lowest priority first)."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    user_dir = Path(xdg) if xdg else Path.home() / ".config"
    optional = (user_dir / "toolforge" / "config.toml", Path("toolforge.toml"))
    files = [p for p in optional if p.is_file()]

    named: list[tuple[Path, str]] = []
    if env_path := os.environ.get(ENV_VAR):
        named.append((Path(env_path), f"{ENV_VAR} points to non-existent file: {env_path}"))
    if path is not None:
        named.append((Path(path), f"Config file not found: {path}"))
    for candidate, missing in named:
        if not candidate.is_file():
            raise ConfigError(missing)
        files.append(candidate)
    return files


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _read(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise ConfigError(msg) from exc
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Cannot read config file {path}: {exc}"
        raise ConfigError(msg) from exc


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> ToolforgeConfig:
    """Merge every config layer and validate the result.

    Raises:
        ConfigError: A named file is missing, a file is not valid TOML,
            or the merged values fail validation.
    """
    merged: dict[str, Any] = {}
    for file in config_files(path):
        merged = _deep_merge(merged, _read(file))
    merged = _deep_merge(merged, overrides or {})
    try:
        return ToolforgeConfig.model_validate(merged)
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        raise ConfigError(msg) from exc
