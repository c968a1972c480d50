"""Main CLI application.

Click commands for authoring and trying out tools: inspect, validate,
run, build, template.
"""

from __future__ import annotations

import asyncio
import json as json_mod
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from pydantic import TypeAdapter, ValidationError

from toolforge import __version__
from toolforge.config.loader import load_config
from toolforge.core.errors import ConfigError
from toolforge.core.log import setup_logging
from toolforge.tools.base import ToolDefinition

if TYPE_CHECKING:
    from toolforge.cli.display import ToolDisplay
    from toolforge.config.schema import ToolforgeConfig


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> ToolforgeConfig:
    """Load config with user-friendly error handling."""
    try:
        return load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy


def _prepare(ctx: click.Context) -> ToolforgeConfig:
    """Load config and attach log handlers for a command."""
    config = _load_config(ctx.obj["config_path"])
    setup_logging(config.logging, verbose=ctx.obj["verbose"])
    return config


def _display() -> ToolDisplay:
    from toolforge.cli.display import ToolDisplay

    return ToolDisplay()


def _read_code(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        _error(f"Cannot read {path}: {e}")
        raise  # unreachable


def _definition_from_file(
    path: str,
    name: str | None,
    description: str = "",
    timeout_ms: int | None = None,
) -> ToolDefinition:
    stem = Path(path).stem
    return ToolDefinition(
        id=stem,
        name=name or stem,
        description=description,
        code=_read_code(path),
        timeout_ms=timeout_ms,
    )


def _parse_arguments(pairs: tuple[str, ...]) -> dict[str, Any]:
    """Turn ``key=value`` pairs into an argument mapping."""
    arguments: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            msg = f"Expected key=value, got {pair!r}"
            raise click.BadParameter(msg, param_hint="--arg")
        arguments[key] = value
    return arguments


# ── Group ────────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="toolforge")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """toolforge - Turn code snippets into sandboxed tools.

    Inspect, validate and run single-function JavaScript/TypeScript
    snippets the way an agent would call them.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── inspect ──────────────────────────────────────────────────────


@cli.command("inspect")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", default=None, help="Display name (defaults to file stem).")
@click.pass_context
def inspect_tool(ctx: click.Context, file: str, name: str | None) -> None:
    """Show the tool name, parameters and schema built from FILE."""
    from toolforge.tools.builder import build_tools

    config = _prepare(ctx)
    definition = _definition_from_file(file, name)
    (tool,) = build_tools([definition], config=config)
    _display().show_tool(tool)


# ── validate ─────────────────────────────────────────────────────


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def validate(ctx: click.Context, file: str) -> None:
    """Check the snippet in FILE. Exits 1 when it has errors."""
    from toolforge.tools.validation import validate_snippet

    config = _prepare(ctx)
    report = validate_snippet(_read_code(file), config)
    _display().show_report(report)
    if not report.valid:
        sys.exit(1)


# ── run ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-a",
    "--arg",
    "pairs",
    multiple=True,
    help="Argument as key=value (repeatable).",
)
@click.option("--name", default=None, help="Display name (defaults to file stem).")
@click.option(
    "--timeout-ms",
    type=click.IntRange(min=1),
    default=None,
    help="Per-call timeout (overrides config).",
)
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print the result as JSON.",
)
@click.pass_context
def run(
    ctx: click.Context,
    file: str,
    pairs: tuple[str, ...],
    name: str | None,
    timeout_ms: int | None,
    as_json: bool,
) -> None:
    """Build the tool in FILE and call it once."""
    from toolforge.tools.builder import build_tools

    config = _prepare(ctx)
    arguments = _parse_arguments(pairs)
    definition = _definition_from_file(file, name, timeout_ms=timeout_ms)
    (tool,) = build_tools([definition], config=config)
    result = asyncio.run(tool.call(arguments))

    if as_json:
        click.echo(json_mod.dumps(result.to_dict(), indent=2))
    else:
        _display().show_result(result, tool.name)
    if not result.ok:
        sys.exit(1)


# ── build ────────────────────────────────────────────────────────


@cli.command()
@click.argument("definitions_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print advertised tools as JSON.",
)
@click.pass_context
def build(ctx: click.Context, definitions_file: str, as_json: bool) -> None:
    """Build tools from a JSON list of definitions and list them."""
    from toolforge.tools.registry import ToolRegistry

    config = _prepare(ctx)
    raw = _read_code(definitions_file)
    try:
        definitions = TypeAdapter(list[ToolDefinition]).validate_json(raw)
    except ValidationError as e:
        _error(f"Invalid definitions in {definitions_file}:\n{e}")
        return  # unreachable

    registry = ToolRegistry.from_definitions(definitions, config=config)
    specs = registry.list_definitions()
    if as_json:
        payload = [
            {
                "name": s.name,
                "description": s.description,
                "parameters": s.parameters_schema,
            }
            for s in specs
        ]
        click.echo(json_mod.dumps(payload, indent=2))
        return
    _display().show_specs(specs)


# ── template ─────────────────────────────────────────────────────


@cli.command()
@click.argument("name")
@click.option("--description", default="", help="Tool description.")
@click.option("--fetch", "uses_fetch", is_flag=True, default=False, help="Include a fetch call.")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write to a file instead of stdout.",
)
def template(name: str, description: str, uses_fetch: bool, output: str | None) -> None:
    """Print a starter snippet for a tool called NAME."""
    from toolforge.tools.validation import generate_template

    text = generate_template(name, description, uses_fetch=uses_fetch)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"Wrote {output}")
        return
    click.echo(text, nl=False)
