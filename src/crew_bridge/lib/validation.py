"""Request validation run before any process is spawned."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import cast

from crew_bridge.lib.domain import InvocationRequest
from crew_bridge.lib.exec.errors import validation_error
from crew_bridge.lib.types import TargetName, TargetNamespace

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "namespace": ("namespace", "target_namespace", "targetNamespace"),
    "name": ("name", "target_name", "targetName"),
    "payload": ("payload",),
    "timeout_override_ms": ("timeout_override_ms", "timeoutOverrideMs", "timeout_ms"),
    "extra_env": ("extra_env", "extraEnv"),
}
_MISSING = object()


def _lookup(raw: Mapping[object, object], field_name: str) -> object:
    for alias in _FIELD_ALIASES[field_name]:
        if alias in raw:
            return raw[alias]
    return _MISSING


def validate_identifier(value: object, field_name: str) -> str:
    """Check one target identifier against `[A-Za-z0-9_-]+`."""

    if value is _MISSING or value is None:
        raise validation_error(f"'{field_name}' is required.", field=field_name)
    if not isinstance(value, str):
        raise validation_error(
            f"'{field_name}' must be a string, got {type(value).__name__}.",
            field=field_name,
            received_type=type(value).__name__,
        )
    if not value:
        raise validation_error(f"'{field_name}' must not be empty.", field=field_name)
    if IDENTIFIER_PATTERN.fullmatch(value) is None:
        raise validation_error(
            f"'{field_name}' must contain only letters, digits, hyphens, or underscores, "
            f"got {value!r}.",
            field=field_name,
            value=value,
        )
    return value


def _validate_payload(value: object) -> str:
    if value is _MISSING or value is None:
        raise validation_error("'payload' is required.", field="payload")
    if not isinstance(value, str):
        raise validation_error(
            f"'payload' must be a string, got {type(value).__name__}.",
            field="payload",
            received_type=type(value).__name__,
        )
    return value


def _validate_timeout(value: object) -> int | None:
    if value is _MISSING or value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise validation_error(
            f"'timeout_override_ms' must be a number, got {type(value).__name__}.",
            field="timeout_override_ms",
            received_type=type(value).__name__,
        )
    if (isinstance(value, float) and math.isnan(value)) or value <= 0:
        raise validation_error(
            f"'timeout_override_ms' must be greater than 0, got {value!r}.",
            field="timeout_override_ms",
            value=value,
        )
    if isinstance(value, float) and not value.is_integer():
        raise validation_error(
            f"'timeout_override_ms' must be a whole number of milliseconds, got {value!r}.",
            field="timeout_override_ms",
            value=value,
        )
    return int(value)


def _validate_extra_env(value: object) -> dict[str, str]:
    if value is _MISSING or value is None:
        return {}
    if not isinstance(value, Mapping):
        raise validation_error(
            f"'extra_env' must be a mapping of strings to strings, got {type(value).__name__}.",
            field="extra_env",
            received_type=type(value).__name__,
        )
    env: dict[str, str] = {}
    for key, item in cast("Mapping[object, object]", value).items():
        if not isinstance(key, str) or not isinstance(item, str):
            raise validation_error(
                f"'extra_env' must map strings to strings, got {key!r}: {type(item).__name__}.",
                field="extra_env",
                key=key,
            )
        env[key] = item
    return env


def validate_request(raw: object) -> InvocationRequest:
    """Normalize an untyped record into an InvocationRequest.

    Checks run in a fixed order and the first failure is raised: identifiers,
    payload, timeout override, then extra env. Nothing here has side effects,
    so a raised error always means no process was started.
    """

    if isinstance(raw, InvocationRequest):
        raw = {
            "namespace": raw.namespace,
            "name": raw.name,
            "payload": raw.payload,
            "timeout_override_ms": raw.timeout_override_ms,
            "extra_env": raw.extra_env,
        }
    if not isinstance(raw, Mapping):
        raise validation_error(
            f"Invocation request must be a mapping, got {type(raw).__name__}.",
            received_type=type(raw).__name__,
        )
    record = cast("Mapping[object, object]", raw)

    namespace = validate_identifier(_lookup(record, "namespace"), "namespace")
    name = validate_identifier(_lookup(record, "name"), "name")
    payload = _validate_payload(_lookup(record, "payload"))
    timeout_override_ms = _validate_timeout(_lookup(record, "timeout_override_ms"))
    extra_env = _validate_extra_env(_lookup(record, "extra_env"))

    return InvocationRequest(
        namespace=TargetNamespace(namespace),
        name=TargetName(name),
        payload=payload,
        timeout_override_ms=timeout_override_ms,
        extra_env=extra_env,
    )
