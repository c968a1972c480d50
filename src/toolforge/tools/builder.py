"""Dynamic tool builder.

Turns stored :class:`ToolDefinition` records into callable
:class:`DynamicTool` objects: names are normalized against one shared
set per build, signatures are read statically, schemas synthesized, and
the argument-to-call mapping is fixed once here rather than on every call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from toolforge.core.errors import ArgumentValidationError
from toolforge.sandbox.executor import SandboxExecutor
from toolforge.tools.base import ExecutionResult, ToolDefinition, ToolSpec
from toolforge.tools.naming import normalize_name
from toolforge.tools.schema import InputSchema, synthesize_schema
from toolforge.tools.signature import ParameterStyle, Signature, extract_signature

if TYPE_CHECKING:
    from toolforge.config.schema import ToolforgeConfig

logger = logging.getLogger(__name__)


class CallShape(StrEnum):
    """How validated arguments are handed to the snippet's function."""

    MAPPING = "mapping"
    UNWRAPPED = "unwrapped"
    POSITIONAL = "positional"


def resolve_call_shape(signature: Signature) -> CallShape:
    """Pick the call shape for *signature*.

    A destructured parameter receives the whole mapping; a single
    positional parameter receives its bare value; several positionals
    receive their values in declared order; an unrecognized signature
    receives the mapping.
    """
    if signature.style is ParameterStyle.POSITIONAL:
        if len(signature.parameters) == 1:
            return CallShape.UNWRAPPED
        return CallShape.POSITIONAL
    return CallShape.MAPPING


def shape_arguments(
    shape: CallShape, parameters: tuple[str, ...], arguments: dict[str, Any]
) -> list[Any]:
    if shape is CallShape.UNWRAPPED:
        return [arguments[parameters[0]]]
    if shape is CallShape.POSITIONAL:
        return [arguments[name] for name in parameters]
    return [arguments]


@dataclass
class ToolUsage:
    """In-memory call counters for one built tool."""

    total_calls: int = 0
    failed_calls: int = 0
    last_used_at: datetime | None = None

    def record(self, result: ExecutionResult) -> None:
        self.total_calls += 1
        if not result.ok:
            self.failed_calls += 1
        self.last_used_at = datetime.now(UTC)


class DynamicTool:
    """A stored snippet exposed as a function-calling tool.

    Implements the :class:`Tool` protocol. :meth:`call` never raises:
    validation, sandbox and snippet failures all come back as a failed
    :class:`ExecutionResult`.
    """

    def __init__(
        self,
        definition: ToolDefinition,
        *,
        name: str,
        signature: Signature,
        input_schema: InputSchema,
        executor: SandboxExecutor,
    ) -> None:
        self._definition = definition
        self._name = name
        self._signature = signature
        self._input_schema = input_schema
        self._executor = executor
        self._call_shape = resolve_call_shape(signature)
        self.usage = ToolUsage()

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._definition.description or f"Execute {self._definition.name}"

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return self._input_schema.json_schema()

    @property
    def parameters(self) -> tuple[str, ...]:
        return self._signature.parameters

    @property
    def input_schema(self) -> InputSchema:
        return self._input_schema

    @property
    def definition(self) -> ToolDefinition:
        return self._definition

    @property
    def function_name(self) -> str | None:
        return self._signature.function_name

    @property
    def call_shape(self) -> CallShape:
        return self._call_shape

    def spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            parameters_schema=self.parameters_schema,
        )

    async def call(self, arguments: Mapping[str, Any] | None = None) -> ExecutionResult:
        """Validate *arguments*, run the snippet once, and report the outcome."""
        try:
            validated = self._input_schema.validate(arguments)
        except ArgumentValidationError as exc:
            result = ExecutionResult.failure(exc.kind, str(exc))
        else:
            result = await self._executor.execute(
                self._definition.code,
                self._signature.function_name,
                shape_arguments(self._call_shape, self.parameters, validated),
                timeout_ms=self._definition.timeout_ms,
                label=self.name,
            )

        if not result.ok:
            logger.error("Error in %s: [%s] %s", self.name, result.kind, result.message)
        self.usage.record(result)
        return result

    def __repr__(self) -> str:
        return f"DynamicTool(name={self._name!r}, parameters={list(self.parameters)!r})"


def build_tool(
    definition: ToolDefinition, already_used: set[str], executor: SandboxExecutor
) -> DynamicTool:
    """Build one tool, registering its final name in *already_used*."""
    name = normalize_name(definition.name, already_used)
    try:
        signature = extract_signature(definition.code)
        input_schema = synthesize_schema(signature.parameters)
    except Exception:
        logger.exception("Static analysis failed for %s, using empty schema", name)
        signature = Signature(None, (), ParameterStyle.NONE)
        input_schema = synthesize_schema(())

    if not signature.parameters:
        logger.warning("Could not infer parameters for %s, using empty schema", name)

    return DynamicTool(
        definition,
        name=name,
        signature=signature,
        input_schema=input_schema,
        executor=executor,
    )


def build_tools(
    definitions: Iterable[ToolDefinition],
    *,
    executor: SandboxExecutor | None = None,
    config: ToolforgeConfig | None = None,
) -> list[DynamicTool]:
    """Build callable tools from stored definitions, in input order.

    Final names are unique within this call only. Disabled definitions
    are skipped. One bad definition never fails the whole build.
    """
    executor = executor or SandboxExecutor(config)
    already_used: set[str] = set()
    tools: list[DynamicTool] = []
    for definition in definitions:
        if not definition.enabled:
            logger.info("Skipping disabled tool %r (%s)", definition.name, definition.id)
            continue
        tools.append(build_tool(definition, already_used, executor))
    return tools
