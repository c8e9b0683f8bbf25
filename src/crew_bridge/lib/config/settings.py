"""Engine configuration validation and repository-level config loading."""

from __future__ import annotations

import logging
import os
import shutil
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

from crew_bridge.lib.exec.errors import configuration_error

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE_NAME = "crew-agents"
DEFAULT_TIMEOUT_MS = 300_000
DEFAULT_KILL_GRACE_MS = 5_000
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
CONFIG_DIRNAME = ".crew-bridge"
CONFIG_FILENAME = "config.toml"


def default_executable_path() -> str:
    """Platform discovery for the target program: PATH lookup, else the bare name."""

    return shutil.which(DEFAULT_EXECUTABLE_NAME) or DEFAULT_EXECUTABLE_NAME


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Normalized configuration for one invocation engine."""

    executable_path: str
    working_directory: str | None = None
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    base_env: Mapping[str, str] = field(default_factory=dict)
    launcher_args: tuple[str, ...] = ()
    kill_grace_ms: int = DEFAULT_KILL_GRACE_MS
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES

    def __post_init__(self) -> None:
        if self.default_timeout_ms <= 0:
            raise configuration_error(
                f"Invalid value for 'default_timeout_ms': expected a positive integer, "
                f"got {self.default_timeout_ms!r}.",
                field="default_timeout_ms",
                value=self.default_timeout_ms,
            )


_KEY_ALIASES: dict[str, str] = {
    "executable_path": "executable_path",
    "executablePath": "executable_path",
    "executable": "executable_path",
    "working_directory": "working_directory",
    "workingDirectoryHint": "working_directory",
    "working_directory_hint": "working_directory",
    "default_timeout_ms": "default_timeout_ms",
    "defaultTimeoutMs": "default_timeout_ms",
    "base_env": "base_env",
    "baseEnv": "base_env",
    "env": "base_env",
    "launcher_args": "launcher_args",
    "launcherArgs": "launcher_args",
    "kill_grace_ms": "kill_grace_ms",
    "killGraceMs": "kill_grace_ms",
    "max_output_bytes": "max_output_bytes",
    "maxOutputBytes": "max_output_bytes",
}

_ENV_OVERRIDE_MAP: dict[str, str] = {
    "CREW_BRIDGE_EXECUTABLE": "executable_path",
    "CREW_BRIDGE_WORKING_DIRECTORY": "working_directory",
    "CREW_BRIDGE_DEFAULT_TIMEOUT_MS": "default_timeout_ms",
    "CREW_BRIDGE_KILL_GRACE_MS": "kill_grace_ms",
    "CREW_BRIDGE_MAX_OUTPUT_BYTES": "max_output_bytes",
}

_INT_FIELDS = frozenset({"default_timeout_ms", "kill_grace_ms", "max_output_bytes"})


def _describe(value: object) -> str:
    return f"{type(value).__name__} ({value!r})"


def _coerce_positive_int(*, field_name: str, raw_value: object, source: str) -> int:
    if isinstance(raw_value, bool) or not isinstance(raw_value, int | float):
        raise configuration_error(
            f"Invalid value for '{source}': expected a positive integer, "
            f"got {_describe(raw_value)}.",
            field=field_name,
            value=raw_value,
        )
    if isinstance(raw_value, float) and not raw_value.is_integer():
        raise configuration_error(
            f"Invalid value for '{source}': expected a whole number, got {raw_value!r}.",
            field=field_name,
            value=raw_value,
        )
    if raw_value <= 0:
        raise configuration_error(
            f"Invalid value for '{source}': must be greater than 0, got {raw_value!r}.",
            field=field_name,
            value=raw_value,
        )
    return int(raw_value)


def _coerce_non_empty_str(*, field_name: str, raw_value: object, source: str) -> str:
    if not isinstance(raw_value, str):
        raise configuration_error(
            f"Invalid value for '{source}': expected str, got {_describe(raw_value)}.",
            field=field_name,
            value=raw_value,
        )
    normalized = raw_value.strip()
    if not normalized:
        raise configuration_error(
            f"Invalid value for '{source}': expected non-empty string.",
            field=field_name,
        )
    return normalized


def _coerce_str_mapping(*, field_name: str, raw_value: object, source: str) -> dict[str, str]:
    if not isinstance(raw_value, Mapping):
        raise configuration_error(
            f"Invalid value for '{source}': expected a string-to-string mapping, "
            f"got {_describe(raw_value)}.",
            field=field_name,
        )
    parsed: dict[str, str] = {}
    for key, value in cast("Mapping[object, object]", raw_value).items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise configuration_error(
                f"Invalid value for '{source}': expected string keys and values, got "
                f"{key!r}={_describe(value)}.",
                field=field_name,
                key=key,
            )
        parsed[key] = value
    return parsed


def _coerce_str_sequence(*, field_name: str, raw_value: object, source: str) -> tuple[str, ...]:
    if isinstance(raw_value, str) or not isinstance(raw_value, list | tuple):
        raise configuration_error(
            f"Invalid value for '{source}': expected array[str], got {_describe(raw_value)}.",
            field=field_name,
        )
    parsed: list[str] = []
    for item in cast("list[object] | tuple[object, ...]", raw_value):
        if not isinstance(item, str):
            raise configuration_error(
                f"Invalid value for '{source}': expected array[str], got {_describe(item)}.",
                field=field_name,
            )
        parsed.append(item)
    return tuple(parsed)


def _coerce_field(*, field_name: str, raw_value: object, source: str) -> object:
    if field_name in _INT_FIELDS:
        return _coerce_positive_int(field_name=field_name, raw_value=raw_value, source=source)
    if field_name == "base_env":
        return _coerce_str_mapping(field_name=field_name, raw_value=raw_value, source=source)
    if field_name == "launcher_args":
        return _coerce_str_sequence(field_name=field_name, raw_value=raw_value, source=source)
    return _coerce_non_empty_str(field_name=field_name, raw_value=raw_value, source=source)


def validate_config(raw: object) -> EngineConfig:
    """Normalize an untyped record into an EngineConfig.

    Unknown keys are ignored. Optional keys whose value is None fall back to
    their defaults.
    """

    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise configuration_error(
            f"Engine configuration must be a mapping, got {type(raw).__name__}.",
            received_type=type(raw).__name__,
        )

    values: dict[str, object] = {}
    for key, raw_value in cast("Mapping[object, object]", raw).items():
        field_name = _KEY_ALIASES.get(key) if isinstance(key, str) else None
        if field_name is None:
            logger.debug("Ignoring unknown engine config key %r.", key)
            continue
        if raw_value is None:
            continue
        values[field_name] = _coerce_field(
            field_name=field_name,
            raw_value=raw_value,
            source=str(key),
        )

    executable = cast("str | None", values.get("executable_path"))
    return EngineConfig(
        executable_path=executable or default_executable_path(),
        working_directory=cast("str | None", values.get("working_directory")),
        default_timeout_ms=cast("int", values.get("default_timeout_ms", DEFAULT_TIMEOUT_MS)),
        base_env=cast("dict[str, str]", values.get("base_env", {})),
        launcher_args=cast("tuple[str, ...]", values.get("launcher_args", ())),
        kill_grace_ms=cast("int", values.get("kill_grace_ms", DEFAULT_KILL_GRACE_MS)),
        max_output_bytes=cast("int", values.get("max_output_bytes", DEFAULT_MAX_OUTPUT_BYTES)),
    )


def _apply_toml_payload(values: dict[str, object], payload: dict[str, object], path: Path) -> None:
    for key, raw_value in payload.items():
        if key == "engine":
            if not isinstance(raw_value, dict):
                raise configuration_error(
                    f"Invalid value for 'engine' in '{path}': expected table.",
                    path=str(path),
                )
            values.update(cast("dict[str, object]", raw_value))
            continue
        if key == "env":
            env = dict(cast("Mapping[str, str]", values.get("base_env") or {}))
            env.update(
                _coerce_str_mapping(field_name="base_env", raw_value=raw_value, source="env")
            )
            values["base_env"] = env
            continue
        if key not in _KEY_ALIASES:
            logger.warning("Ignoring unknown crew-bridge config key '%s'.", key)
            continue
        values[key] = raw_value


def _apply_env_overrides(values: dict[str, object]) -> None:
    for env_name, field_name in _ENV_OVERRIDE_MAP.items():
        raw_value = os.getenv(env_name)
        if raw_value is None:
            continue
        if field_name not in _INT_FIELDS:
            values[field_name] = raw_value
            continue
        try:
            values[field_name] = int(raw_value.strip())
        except ValueError as error:
            raise configuration_error(
                f"Invalid environment override '{env_name}': expected int, got {raw_value!r}.",
                variable=env_name,
            ) from error


def config_path(repo_root: Path) -> Path:
    return repo_root / CONFIG_DIRNAME / CONFIG_FILENAME


def load_config(repo_root: Path) -> EngineConfig:
    """Load `.crew-bridge/config.toml`, apply `CREW_BRIDGE_*` overrides, and validate."""

    values: dict[str, object] = {}
    path = config_path(repo_root)
    if path.is_file():
        try:
            payload_obj = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as error:
            raise configuration_error(
                f"Invalid TOML in '{path}': {error}",
                path=str(path),
            ) from error
        _apply_toml_payload(values, cast("dict[str, object]", payload_obj), path)

    _apply_env_overrides(values)
    return validate_config(values)
