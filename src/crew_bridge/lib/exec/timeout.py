"""Deadline race and graceful-then-forced termination for target processes."""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass

import structlog

from crew_bridge.lib.exec.process_groups import force_kill_signal, signal_process_group

DEFAULT_KILL_GRACE_SECONDS = 5.0
_EXIT_POLL_SECONDS = 0.05
logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DeadlineOutcome:
    """How the exit-vs-deadline race resolved for one process."""

    return_code: int | None
    timed_out: bool
    force_killed: bool = False


async def wait_for_exit(process: asyncio.subprocess.Process) -> int:
    """Return the exit code once the child is reaped.

    `Process.wait()` also waits for the output pipes to close, which a
    grandchild can hold open indefinitely; `returncode` is set on reaping.
    """

    waiter = asyncio.ensure_future(process.wait())
    try:
        while not waiter.done():
            if process.returncode is not None:
                return process.returncode
            await asyncio.wait({waiter}, timeout=_EXIT_POLL_SECONDS)
        return waiter.result()
    finally:
        if not waiter.done():
            waiter.cancel()


async def _wait_reaped(
    process: asyncio.subprocess.Process,
    exit_waiter: asyncio.Future[int],
    timeout_seconds: float,
) -> bool:
    if process.returncode is not None:
        return True
    done, _ = await asyncio.wait({exit_waiter}, timeout=timeout_seconds)
    return exit_waiter in done


async def terminate_process(
    process: asyncio.subprocess.Process,
    exit_waiter: asyncio.Future[int],
    *,
    grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
) -> bool:
    """SIGTERM the process group, escalating to SIGKILL after the grace interval.

    Returns whether the forced signal was sent. A signal that cannot be
    delivered because the process is already gone is not an error.
    """

    if process.returncode is not None:
        return False

    signal_process_group(process, signal.SIGTERM)
    if await _wait_reaped(process, exit_waiter, grace_seconds):
        return False

    delivered = signal_process_group(process, force_kill_signal())
    if not await _wait_reaped(process, exit_waiter, grace_seconds):
        logger.error(
            "Target process was not reaped after forced termination.",
            pid=process.pid,
            grace_seconds=grace_seconds,
        )
    return delivered


async def race_exit_against_deadline(
    process: asyncio.subprocess.Process,
    *,
    timeout_seconds: float,
    kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
) -> DeadlineOutcome:
    """Race natural exit against one deadline timer.

    Natural exit wins whenever it is observed before termination starts,
    including a simultaneous finish. Once the deadline wins, the outcome is a
    timeout; the exit code is kept only when the process ends during the
    grace interval, never after the forced signal.
    """

    if timeout_seconds <= 0:
        raise ValueError("timeout_seconds must be > 0.")

    exit_waiter: asyncio.Future[int] = asyncio.ensure_future(wait_for_exit(process))
    try:
        done, _ = await asyncio.wait({exit_waiter}, timeout=timeout_seconds)
        if exit_waiter in done or process.returncode is not None:
            return DeadlineOutcome(return_code=await exit_waiter, timed_out=False)

        logger.info(
            "Target exceeded deadline; terminating.",
            pid=process.pid,
            timeout_seconds=timeout_seconds,
        )
        force_killed = await terminate_process(
            process,
            exit_waiter,
            grace_seconds=kill_grace_seconds,
        )
        if force_killed:
            return DeadlineOutcome(return_code=None, timed_out=True, force_killed=True)
        return DeadlineOutcome(return_code=process.returncode, timed_out=True)
    finally:
        if not exit_waiter.done():
            exit_waiter.cancel()
