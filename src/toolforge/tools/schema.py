"""Input schema synthesis for dynamic tools.

Parameter types cannot be inferred reliably from snippet text, so every
parameter is widened to a required string. The same pydantic model
advertises the JSON Schema to the model and validates incoming calls.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    create_model,
    field_validator,
)

from toolforge.core.errors import ArgumentValidationError

VALUE_KIND = "string"


class ToolArguments(BaseModel):
    """Base for synthesized argument models."""

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def booleans_as_text(cls, value: Any) -> Any:
        # Same text JavaScript's String(value) gives.
        if isinstance(value, bool):
            return "true" if value else "false"
        return value


def describe_parameter(name: str) -> str:
    return f"The {name} parameter."


@dataclass(frozen=True, slots=True)
class InputSchema:
    """Ordered parameter descriptions plus the model validating them."""

    fields: dict[str, str]
    model: type[ToolArguments]

    @property
    def names(self) -> list[str]:
        return list(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def kind_of(self, name: str) -> str:
        """Accepted value kind for *name* (always text)."""
        if name not in self.fields:
            msg = f"Unknown parameter: {name}"
            raise KeyError(msg)
        return VALUE_KIND

    def json_schema(self) -> dict[str, Any]:
        """JSON Schema advertised to the function-calling model."""
        schema = self.model.model_json_schema()
        schema.pop("title", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
        schema.setdefault("properties", {})
        schema.setdefault("required", [])
        return schema

    def validate(self, arguments: Mapping[str, Any] | None) -> dict[str, str]:
        """Validate and coerce *arguments*.

        Unknown keys are dropped; numbers and booleans become strings.

        Raises:
            ArgumentValidationError: On missing or ill-typed values.
        """
        try:
            parsed = self.model.model_validate(dict(arguments or {}))
        except (TypeError, ValueError) as exc:
            raise ArgumentValidationError(_format_errors(exc)) from exc
        return parsed.model_dump(by_alias=True)


def _format_errors(exc: Exception) -> list[str]:
    if not isinstance(exc, ValidationError):
        return [str(exc)]
    errors: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "arguments"
        errors.append(f"{loc}: {err['msg']}")
    return errors


def synthesize_schema(
    parameter_names: Sequence[str], *, model_name: str = "ToolInput"
) -> InputSchema:
    """Build an :class:`InputSchema` with one required string per name.

    Field names are positional (``p0``, ``p1``, ...) with the parameter
    name as alias, so identifiers pydantic would reject (``_id``,
    ``$ref``) still work.
    """
    fields = {name: describe_parameter(name) for name in parameter_names}
    definitions: dict[str, Any] = {
        f"p{i}": (str, Field(alias=name, description=description))
        for i, (name, description) in enumerate(fields.items())
    }
    model = create_model(model_name, __base__=ToolArguments, **definitions)
    return InputSchema(fields=fields, model=model)
