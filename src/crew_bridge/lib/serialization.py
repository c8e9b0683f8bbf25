"""JSON-ready conversion for results, listings and configuration."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from enum import Enum
from functools import singledispatch
from pathlib import Path


@singledispatch
def to_jsonable(value: object) -> object:
    """Convert dataclass instances and containers into plain JSON values."""

    if is_dataclass(value) and not isinstance(value, type):
        return {field.name: to_jsonable(getattr(value, field.name)) for field in fields(value)}
    return value


@to_jsonable.register(Enum)
def _enum(value: Enum) -> object:
    return value.value


@to_jsonable.register(Path)
def _path(value: Path) -> str:
    return str(value)


@to_jsonable.register(Mapping)
def _mapping(value: Mapping[object, object]) -> dict[str, object]:
    return {str(key): to_jsonable(item) for key, item in value.items()}


@to_jsonable.register(list)
@to_jsonable.register(tuple)
@to_jsonable.register(set)
@to_jsonable.register(frozenset)
def _sequence(value: list[object] | tuple[object, ...] | set[object]) -> list[object]:
    return [to_jsonable(item) for item in value]
