"""Argument validation against a tool's declared input schema.

Tool servers publish a JSON Schema for their arguments. Before a call
is dispatched, the argument mapping is validated with a Pydantic model
generated from that schema so malformed calls are rejected locally
instead of being forwarded to the server.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    create_model,
)

from pocket.core.errors import ToolArgumentError

if TYPE_CHECKING:
    from pocket.tools.base import ToolDescriptor


def _integral_float(value: Any) -> Any:
    # JSON has one number type; 2.0 is a valid integer, 2.5 is not.
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


_Integer = Annotated[int, BeforeValidator(_integral_float)]

_JSON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": _Integer,
    "number": int | float,
    "boolean": bool,
    "array": list[Any],
    "object": dict[str, Any],
    "null": type(None),
}

_model_cache: dict[tuple[str, str], type[BaseModel]] = {}


class _Arguments(BaseModel):
    model_config = ConfigDict(extra="allow", strict=True)


def _python_type(prop: dict[str, Any]) -> Any:
    """Map a JSON Schema property to a Python annotation."""
    json_type = prop.get("type")
    names = json_type if isinstance(json_type, list) else [json_type]
    candidates = [
        _JSON_TYPES.get(t, Any) if isinstance(t, str) else Any for t in names
    ]
    if not candidates or Any in candidates:
        return Any
    annotation = candidates[0]
    for t in candidates[1:]:
        annotation = annotation | t
    return annotation


def _build_model(descriptor: ToolDescriptor) -> type[BaseModel]:
    schema = descriptor.input_schema or {}
    properties: dict[str, Any] = schema.get("properties") or {}
    required = set(schema.get("required") or [])

    # Property names are not always identifiers; validate by alias.
    fields: dict[str, Any] = {}
    for i, (name, prop) in enumerate(properties.items()):
        annotation = _python_type(prop if isinstance(prop, dict) else {})
        if name in required:
            fields[f"field_{i}"] = (annotation, Field(..., alias=name))
        else:
            fields[f"field_{i}"] = (annotation | None, Field(None, alias=name))

    return create_model(  # type: ignore[call-overload,no-any-return]
        "ToolArguments",
        __base__=_Arguments,
        **fields,
    )


def _describe(error: ValidationError) -> str:
    parts: list[str] = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item["loc"]) or "(root)"
        parts.append(f"{loc}: {item['msg']}")
    return "; ".join(parts)


def validate_arguments(
    descriptor: ToolDescriptor, arguments: dict[str, Any]
) -> None:
    """Check ``arguments`` against the descriptor's input schema.

    Raises:
        ToolArgumentError: If required fields are missing or values have
            the wrong JSON type.
    """
    if not isinstance(arguments, dict):
        raise ToolArgumentError(descriptor.name, "arguments must be an object")

    schema_text = json.dumps(descriptor.input_schema, sort_keys=True, default=str)
    key = (descriptor.name, schema_text)
    model = _model_cache.get(key)
    if model is None:
        model = _build_model(descriptor)
        _model_cache[key] = model

    try:
        model.model_validate(arguments)
    except ValidationError as e:
        msg = f"invalid arguments ({_describe(e)})"
        raise ToolArgumentError(descriptor.name, msg) from e
