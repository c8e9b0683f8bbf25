"""Async subprocess spawning and output capture for target invocations."""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import structlog

from crew_bridge.lib.exec.timeout import (
    DEFAULT_KILL_GRACE_SECONDS,
    race_exit_against_deadline,
    terminate_process,
    wait_for_exit,
)

DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
_READ_CHUNK_SIZE = 64 * 1024
logger = structlog.get_logger(__name__)


def build_invoke_command(
    executable: str,
    launcher_args: Sequence[str],
    namespace: str,
    name: str,
    payload: str,
) -> tuple[str, ...]:
    """Compose `<executable> [launcher...] run <namespace> <name> --input <payload>`."""

    return (executable, *launcher_args, "run", namespace, name, "--input", payload)


def build_list_command(executable: str, launcher_args: Sequence[str]) -> tuple[str, ...]:
    return (executable, *launcher_args, "list")


def compose_child_env(
    ambient_env: Mapping[str, str],
    base_env: Mapping[str, str],
    extra_env: Mapping[str, str] | None,
) -> dict[str, str]:
    """Layer config env over the ambient env, then request env over both."""

    merged = dict(ambient_env)
    merged.update(base_env)
    if extra_env is not None:
        merged.update(extra_env)
    return merged


def elapsed_ms(started_at: float) -> int:
    return max(0, int((time.monotonic() - started_at) * 1000))


def describe_spawn_error(exc: BaseException, executable: str) -> str:
    if isinstance(exc, FileNotFoundError):
        reason = "no such file or directory"
    elif isinstance(exc, PermissionError):
        reason = "permission denied"
    elif isinstance(exc, OSError):
        reason = exc.strerror or str(exc) or exc.__class__.__name__
    else:
        reason = str(exc) or exc.__class__.__name__
    subject = getattr(exc, "filename", None) or executable
    return f"Failed to start target process '{subject}': {reason}"


class _StreamCollector:
    """Accumulate one pipe in arrival order up to a retention cap."""

    def __init__(self, label: str, max_bytes: int) -> None:
        self.label = label
        self._max_bytes = max_bytes
        self._buffer = bytearray()
        self.total_bytes = 0

    @property
    def data(self) -> bytes:
        return bytes(self._buffer)

    @property
    def truncated(self) -> bool:
        return self.total_bytes > len(self._buffer)

    async def collect(self, reader: asyncio.StreamReader) -> None:
        while True:
            chunk = await reader.read(_READ_CHUNK_SIZE)
            if not chunk:
                return
            self.total_bytes += len(chunk)
            room = self._max_bytes - len(self._buffer)
            if room > 0:
                self._buffer.extend(chunk[:room])


@dataclass(frozen=True, slots=True)
class SpawnResult:
    """Raw outcome of one supervised process, before classification."""

    command: tuple[str, ...]
    timeout_ms: int
    duration_ms: int
    return_code: int | None = None
    spawn_error: str | None = None
    stream_error: str | None = None
    timed_out: bool = False
    force_killed: bool = False
    stdout: bytes = b""
    stderr: bytes = b""
    stdout_truncated: bool = False


async def _drain_collectors(
    tasks: Sequence[asyncio.Task[None]],
    collectors: Sequence[_StreamCollector],
    *,
    grace_seconds: float,
) -> str | None:
    done, pending = await asyncio.wait(tasks, timeout=grace_seconds)
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
        logger.warning(
            "Target output pipes stayed open after exit; abandoning readers.",
            open_streams=[
                collector.label
                for task, collector in zip(tasks, collectors, strict=True)
                if task in pending
            ],
        )

    stream_error: str | None = None
    for task, collector in zip(tasks, collectors, strict=True):
        if task not in done:
            continue
        exc = task.exception()
        if exc is not None:
            logger.warning("Reading target output failed.", stream=collector.label, exc_info=exc)
            stream_error = stream_error or f"{collector.label}: {exc}"
        if collector.truncated:
            logger.warning(
                "Target output exceeded retention cap; excess discarded.",
                stream=collector.label,
                total_bytes=collector.total_bytes,
                retained_bytes=len(collector.data),
            )
    return stream_error


async def spawn_and_capture(
    *,
    command: tuple[str, ...],
    cwd: Path | None,
    env: Mapping[str, str],
    timeout_ms: int,
    kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> SpawnResult:
    """Spawn one process, race it against its deadline, and capture its output.

    Never raises for conditions after spawning begins: creation failures,
    stream failures, and timeouts are all reported on the returned record.
    Task cancellation terminates the child and propagates.
    """

    if not command:
        raise ValueError("Cannot spawn process: command is empty.")

    started_at = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env),
            start_new_session=os.name == "posix",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (OSError, ValueError) as exc:
        logger.info("Target process failed to start.", executable=command[0], error=str(exc))
        return SpawnResult(
            command=command,
            timeout_ms=timeout_ms,
            duration_ms=elapsed_ms(started_at),
            spawn_error=describe_spawn_error(exc, command[0]),
        )
    if process.stdout is None or process.stderr is None:
        raise RuntimeError("Subprocess did not expose stdout/stderr pipes.")

    collectors = (
        _StreamCollector("stdout", max_output_bytes),
        _StreamCollector("stderr", max_output_bytes),
    )
    tasks = (
        asyncio.create_task(collectors[0].collect(process.stdout)),
        asyncio.create_task(collectors[1].collect(process.stderr)),
    )

    try:
        try:
            outcome = await race_exit_against_deadline(
                process,
                timeout_seconds=timeout_ms / 1000,
                kill_grace_seconds=kill_grace_seconds,
            )
        except asyncio.CancelledError:
            exit_waiter = asyncio.ensure_future(wait_for_exit(process))
            try:
                await terminate_process(process, exit_waiter, grace_seconds=kill_grace_seconds)
            finally:
                exit_waiter.cancel()
            raise
        stream_error = await _drain_collectors(
            tasks, collectors, grace_seconds=kill_grace_seconds
        )
    finally:
        # Readers never outlive the call.
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    logger.debug(
        "Target process finished.",
        pid=process.pid,
        return_code=outcome.return_code,
        timed_out=outcome.timed_out,
        force_killed=outcome.force_killed,
    )
    return SpawnResult(
        command=command,
        timeout_ms=timeout_ms,
        duration_ms=elapsed_ms(started_at),
        return_code=outcome.return_code,
        stream_error=stream_error,
        timed_out=outcome.timed_out,
        force_killed=outcome.force_killed,
        stdout=collectors[0].data,
        stderr=collectors[1].data,
        stdout_truncated=collectors[0].truncated,
    )
