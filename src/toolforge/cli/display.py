"""Rich rendering for the toolforge CLI.

Accepts an optional :class:`~rich.console.Console` for dependency
injection in tests.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from toolforge.tools.base import ExecutionResult, ToolSpec
    from toolforge.tools.builder import DynamicTool
    from toolforge.tools.validation import ValidationReport

_TRUNCATE_LEN = 2000


def _truncate(text: str, limit: int = _TRUNCATE_LEN) -> str:
    """Truncate text to *limit* characters with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


def _pretty(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2)


class ToolDisplay:
    """Renders tools, validation reports and execution results."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def show_tool(self, tool: DynamicTool) -> None:
        """Print a built tool's name, call shape and schema."""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_row("[bold]Name[/bold]", tool.name)
        table.add_row("[bold]Function[/bold]", tool.function_name or "[dim]none[/dim]")
        table.add_row("[bold]Description[/bold]", Text(tool.description))
        params = ", ".join(tool.parameters) or "[dim]none[/dim]"
        table.add_row("[bold]Parameters[/bold]", params)
        table.add_row("[bold]Call shape[/bold]", str(tool.call_shape))
        self._console.print(table)
        self._console.print(
            Panel(
                Syntax(json.dumps(tool.parameters_schema, indent=2), "json"),
                title="[bold]Input schema[/bold]",
                border_style="cyan",
            )
        )

    def show_specs(self, specs: Sequence[ToolSpec]) -> None:
        """Print a table of advertised tools."""
        if not specs:
            self._console.print("[dim]No tools built.[/dim]")
            return
        table = Table(title="Tools")
        table.add_column("Name", style="bold")
        table.add_column("Parameters")
        table.add_column("Description")
        for spec in specs:
            params = ", ".join(spec.parameters_schema.get("properties", {}))
            table.add_row(spec.name, params or "-", Text(spec.description))
        self._console.print(table)

    def show_report(self, report: ValidationReport) -> None:
        """Print a validation report."""
        if report.valid:
            self._console.print("[bold green]Valid[/bold green]")
        else:
            self._console.print("[bold red]Invalid[/bold red]")
        for error in report.errors:
            self._console.print(Text.assemble("  ", ("error:", "red"), f" {error}"))
        for warning in report.warnings:
            self._console.print(Text.assemble("  ", ("warning:", "yellow"), f" {warning}"))

        details = []
        if report.function_name:
            details.append(f"function={report.function_name}")
        details.append(f"parameters=[{', '.join(report.parameters)}]")
        if report.uses_fetch:
            details.append("fetch")
        if report.uses_timers:
            details.append("timers")
        if report.dependencies:
            details.append(f"dependencies=[{', '.join(report.dependencies)}]")
        self._console.print(Text("  " + "  ".join(details), style="dim"))

    def show_result(self, result: ExecutionResult, tool_name: str) -> None:
        """Print the outcome of one tool call."""
        footer = f"{result.elapsed_ms:.0f}ms"
        if result.ok:
            self._console.print(
                Panel(
                    Text(_truncate(_pretty(result.value))),
                    title=f"[bold green]{tool_name}[/bold green]",
                    subtitle=footer,
                    border_style="green",
                )
            )
            return
        self._console.print(
            Panel(
                Text(_truncate(result.describe(tool_name))),
                title=f"[bold red]{result.kind}[/bold red]",
                subtitle=footer,
                border_style="red",
            )
        )
