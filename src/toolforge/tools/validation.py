"""Authoring-time checks for tool snippets.

:func:`validate_snippet` reports problems that would stop a snippet from
building or running (errors) and habits that tend to produce poor tools
(warnings). Nothing here executes the snippet; the syntax check only
compiles it inside an uncalled function expression.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

import quickjs

from toolforge.config.schema import ToolforgeConfig
from toolforge.tools.signature import (
    ParameterStyle,
    Token,
    extract_signature,
    scan_headers,
    strip_type_annotations,
    tokenize,
)

logger = logging.getLogger(__name__)

_TIMER_NAMES = frozenset({"setTimeout", "setInterval"})
_SYNTAX_CHECK_SECONDS = 1.0


@dataclass
class ValidationReport:
    """Outcome of :func:`validate_snippet`."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    function_name: str | None = None
    parameters: tuple[str, ...] = ()
    uses_fetch: bool = False
    uses_timers: bool = False
    dependencies: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def _unquote(token: Token) -> str:
    return token.text[1:-1] if len(token.text) >= 2 else token.text


def _package_name(specifier: str) -> str | None:
    if specifier.startswith((".", "/")):
        return None
    parts = specifier.split("/")
    if specifier.startswith("@"):
        return "/".join(parts[:2])
    return parts[0]


def _module_specifiers(tokens: list[Token]) -> list[str]:
    """Collect module names from ``import`` statements and ``require`` calls."""
    found: list[str] = []
    for i, t in enumerate(tokens):
        if t.kind != "ident":
            continue
        prev = tokens[i - 1] if i else None
        if prev is not None and prev.kind == "punct" and prev.text == ".":
            continue
        if t.text == "import":
            # import "x"; import x from "y"; import("z")
            for nxt in tokens[i + 1 : i + 40]:
                if nxt.kind == "string":
                    found.append(_unquote(nxt))
                    break
                if nxt.kind == "punct" and nxt.text == ";":
                    break
        elif t.text == "require" and i + 2 < len(tokens):
            if tokens[i + 1].text == "(" and tokens[i + 2].kind == "string":
                found.append(_unquote(tokens[i + 2]))
    return found


def _calls(tokens: list[Token], name: str) -> bool:
    for i, t in enumerate(tokens[:-1]):
        if t.kind == "ident" and t.text == name and tokens[i + 1].text == "(":
            return True
    return False


def _has_ident(tokens: list[Token], names: str | frozenset[str]) -> bool:
    wanted = frozenset({names}) if isinstance(names, str) else names
    return any(t.kind == "ident" and t.text in wanted for t in tokens)


def _syntax_error(source: str) -> str | None:
    """Compile *source* without running it; return the engine's message."""
    context = quickjs.Context()
    context.set_time_limit(_SYNTAX_CHECK_SECONDS)
    try:
        context.eval(f"(function () {{\n{source}\n}});")
    except quickjs.JSException as exc:
        text = str(exc).strip()
        return text.splitlines()[0] if text else "Unknown syntax error"
    return None


def validate_snippet(code: str, config: ToolforgeConfig | None = None) -> ValidationReport:
    """Check a snippet before it is stored or built."""
    config = config or ToolforgeConfig()
    report = ValidationReport()

    limit = config.sandbox.max_code_bytes
    if len(code.encode()) > limit:
        report.errors.append(f"Tool code exceeds {limit} bytes")
        return report

    tokens = tokenize(code)
    headers = scan_headers(code, tokens)
    if not headers:
        report.errors.append("Missing a named function declaration")
    elif len(headers) > 1:
        names = ", ".join(h.name for h in headers)
        report.errors.append(f"Expected exactly one top-level function, found: {names}")

    specifiers = _module_specifiers(tokens)
    for spec in specifiers:
        package = _package_name(spec)
        if package and package not in report.dependencies:
            report.dependencies.append(package)
    if specifiers:
        report.errors.append(
            "Modules cannot be imported inside a tool: " + ", ".join(specifiers)
        )
    else:
        error = _syntax_error(strip_type_annotations(code))
        if error:
            report.errors.append(f"Syntax error: {error}")

    signature = extract_signature(code)
    report.function_name = signature.function_name
    report.parameters = signature.parameters
    report.uses_fetch = _calls(tokens, "fetch")
    report.uses_timers = _has_ident(tokens, _TIMER_NAMES)

    if headers:
        if report.uses_fetch and not headers[0].is_async:
            report.warnings.append("Function uses fetch but is not async")
        if signature.style is ParameterStyle.NONE and headers[0].segments:
            report.warnings.append(
                "Parameters could not be recognised; the tool will take no arguments"
            )
    if not _has_ident(tokens, "try"):
        report.warnings.append("Consider adding try/catch blocks for error handling")
    if not _has_ident(tokens, "return"):
        report.warnings.append("Function never returns a result")

    logger.debug(
        "Validated snippet %s: %d errors, %d warnings",
        report.function_name,
        len(report.errors),
        len(report.warnings),
    )
    return report


def _camel_case(name: str) -> str:
    words = [w for w in re.split(r"[^A-Za-z0-9]+", name) if w]
    if not words:
        return "tool"
    head, *rest = words
    text = head[0].lower() + head[1:] + "".join(w[0].upper() + w[1:] for w in rest)
    if not re.match(r"[A-Za-z_$]", text):
        text = f"tool{text[0].upper()}{text[1:]}"
    return text


def generate_template(name: str, description: str, *, uses_fetch: bool = False) -> str:
    """Return a starter snippet taking a destructured parameter object."""
    function_name = _camel_case(name)
    # "*/" would end the doc comment early.
    text = (description or name or function_name).replace("*/", "*\\/")
    summary = "\n".join(f" * {line}".rstrip() for line in text.splitlines())
    if uses_fetch:
        body = (
            "    const url = `https://api.example.com/items?q=${encodeURIComponent(input)}`;\n"
            "    const response = await fetch(url);\n"
            "    if (!response.ok) {\n"
            "      return { success: false, error: `Request failed: ${response.status}` };\n"
            "    }\n"
            "    const data = await response.json();\n"
            "    return { success: true, data };\n"
        )
    else:
        body = "    return { success: true, data: { message: `Processed: ${input}` } };\n"
    return (
        "/**\n"
        f"{summary}\n"
        " */\n"
        f"async function {function_name}({{ input }}) {{\n"
        "  try {\n"
        f"{body}"
        "  } catch (error) {\n"
        "    return { success: false, error: error.message };\n"
        "  }\n"
        "}\n"
    )
