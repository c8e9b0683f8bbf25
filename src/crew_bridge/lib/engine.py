"""Invocation engine: validate, supervise, classify."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from pathlib import Path

import structlog

from crew_bridge.lib.config import EngineConfig, resolve_working_directory, validate_config
from crew_bridge.lib.discovery import TargetInfo, parse_target_listing
from crew_bridge.lib.domain import InvocationFailure, InvocationRequest, InvocationResult
from crew_bridge.lib.exec.classify import classify_spawn_result
from crew_bridge.lib.exec.spawn import (
    build_invoke_command,
    build_list_command,
    compose_child_env,
    spawn_and_capture,
)
from crew_bridge.lib.validation import validate_identifier, validate_request

logger = structlog.get_logger(__name__)


class InvocationEngine:
    """Runs targets of an external program as single-shot subprocesses.

    Configuration is validated once, up front. Each call is independent: the
    engine keeps no per-call state, so concurrent invocations on one engine
    never share buffers, timers, or process handles.
    """

    def __init__(self, config: EngineConfig | Mapping[str, object] | None = None) -> None:
        self._config = config if isinstance(config, EngineConfig) else validate_config(config)
        self._working_directory = resolve_working_directory(self._config.working_directory)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def working_directory(self) -> Path:
        return self._working_directory

    @property
    def _kill_grace_seconds(self) -> float:
        return self._config.kill_grace_ms / 1000

    async def invoke(self, request: InvocationRequest | Mapping[str, object]) -> InvocationResult:
        """Run one target to completion or deadline.

        Raises EngineError only for invalid requests, before anything is
        spawned. Every runtime outcome is returned as a result.
        """

        validated = validate_request(request)
        timeout_ms = validated.timeout_override_ms or self._config.default_timeout_ms
        log = logger.bind(
            namespace=validated.namespace,
            name=validated.name,
            timeout_ms=timeout_ms,
        )
        log.debug("Invoking target.", cwd=str(self._working_directory))

        spawn_result = await spawn_and_capture(
            command=build_invoke_command(
                self._config.executable_path,
                self._config.launcher_args,
                validated.namespace,
                validated.name,
                validated.payload,
            ),
            cwd=self._working_directory,
            env=compose_child_env(os.environ, self._config.base_env, validated.extra_env),
            timeout_ms=timeout_ms,
            kill_grace_seconds=self._kill_grace_seconds,
            max_output_bytes=self._config.max_output_bytes,
        )
        result = classify_spawn_result(spawn_result)

        if isinstance(result, InvocationFailure):
            log.info(
                "Target invocation failed.",
                category=result.category.value,
                exit_code=result.exit_code,
                timed_out=result.timed_out,
                duration_ms=result.duration_ms,
            )
        else:
            log.info("Target invocation succeeded.", duration_ms=result.duration_ms)
        return result

    def invoke_sync(self, request: InvocationRequest | Mapping[str, object]) -> InvocationResult:
        """Blocking wrapper around `invoke` for callers without an event loop."""

        return asyncio.run(self.invoke(request))

    async def list_targets(self) -> list[TargetInfo]:
        """Ask the target program for its targets; never raises."""

        spawn_result = await spawn_and_capture(
            command=build_list_command(self._config.executable_path, self._config.launcher_args),
            cwd=self._working_directory,
            env=compose_child_env(os.environ, self._config.base_env, None),
            timeout_ms=self._config.default_timeout_ms,
            kill_grace_seconds=self._kill_grace_seconds,
            max_output_bytes=self._config.max_output_bytes,
        )
        result = classify_spawn_result(spawn_result)
        if isinstance(result, InvocationFailure):
            logger.warning(
                "Listing targets failed.",
                category=result.category.value,
                error=result.error_message,
            )
            return []
        return parse_target_listing(result.output)

    def list_targets_sync(self) -> list[TargetInfo]:
        return asyncio.run(self.list_targets())

    async def get_target_info(self, namespace: str, name: str) -> TargetInfo | None:
        """Look up one advertised target by namespace and name."""

        validate_identifier(namespace, "namespace")
        validate_identifier(name, "name")
        for info in await self.list_targets():
            if info.namespace == namespace and info.name == name:
                return info
        return None

    def get_target_info_sync(self, namespace: str, name: str) -> TargetInfo | None:
        return asyncio.run(self.get_target_info(namespace, name))
