"""Build operation input dataclasses from untyped tool arguments."""

from __future__ import annotations

import inspect
import types
from collections.abc import Mapping
from dataclasses import MISSING, Field, fields, is_dataclass
from typing import Any, TypeVar, Union, cast, get_args, get_origin, get_type_hints

InputT = TypeVar("InputT")


def unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Split ``T | None`` into ``(T, True)``; other annotations come back unchanged."""

    if get_origin(annotation) not in (types.UnionType, Union):
        return annotation, False
    members = [arg for arg in get_args(annotation) if arg is not type(None)]
    if len(members) == 1:
        return members[0], True
    return annotation, False


def coerce_argument(annotation: Any, value: object) -> object:
    """Convert digit strings for integer fields and copy mappings.

    Anything else passes through untouched so request validation can reject
    it with a message naming the field.
    """

    inner, _ = unwrap_optional(annotation)
    if inner is int and isinstance(value, str):
        text = value.strip()
        return int(text) if text.lstrip("-").isdigit() else value
    if get_origin(inner) is dict and isinstance(value, Mapping):
        return {str(key): item for key, item in cast("Mapping[object, object]", value).items()}
    return value


def _field_default(field: Field[Any]) -> object:
    if field.default is not MISSING:
        return field.default
    if field.default_factory is not MISSING:
        return field.default_factory()
    return inspect.Parameter.empty


def build_operation_input(input_type: type[InputT], arguments: object) -> InputT:
    """Instantiate ``input_type`` from a tool's keyword arguments."""

    if not is_dataclass(input_type):
        raise TypeError(f"{input_type!r} is not an operation input dataclass")
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        raise TypeError(f"Tool input must be an object, got {type(arguments).__name__}")

    raw = cast("Mapping[object, object]", arguments)
    provided = {str(key): value for key, value in raw.items()}
    hints = get_type_hints(input_type)
    known = {field.name for field in fields(input_type)}
    unknown = sorted(set(provided) - known)
    if unknown:
        raise TypeError(f"Unknown field(s): {', '.join(unknown)}")

    values: dict[str, object] = {}
    for field in fields(input_type):
        if field.name in provided:
            values[field.name] = coerce_argument(hints[field.name], provided[field.name])
            continue
        default = _field_default(field)
        if default is inspect.Parameter.empty:
            raise TypeError(f"Missing required field '{field.name}'")
        values[field.name] = default
    return cast("InputT", input_type(**values))


def tool_signature(input_type: type[object]) -> inspect.Signature:
    """Keyword-only signature mirroring the input fields, for FastMCP's schema."""

    hints = get_type_hints(input_type)
    return inspect.Signature(
        parameters=[
            inspect.Parameter(
                field.name,
                inspect.Parameter.KEYWORD_ONLY,
                default=_field_default(field),
                annotation=hints[field.name],
            )
            for field in fields(cast("Any", input_type))
        ]
    )
