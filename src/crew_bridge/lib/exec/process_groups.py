"""Process-group helpers for subprocess lifecycle management."""

from __future__ import annotations

import asyncio
import os
import signal

import structlog

logger = structlog.get_logger(__name__)


def _signal_child(process: asyncio.subprocess.Process, signum: signal.Signals) -> bool:
    try:
        if signum == signal.SIGTERM:
            process.terminate()
        else:
            process.kill()
    except ProcessLookupError:
        return False
    except OSError as exc:
        logger.error(
            "Could not signal target process.",
            pid=process.pid,
            signal=signum.name,
            error=str(exc),
        )
        return False
    return True


def signal_process_group(
    process: asyncio.subprocess.Process,
    signum: signal.Signals,
) -> bool:
    """Send one signal to the target's process group.

    Targets are started in their own session so launcher wrappers (``uv run``)
    and the program they start are signalled together. The child may exit
    between the returncode check and delivery, so ProcessLookupError is an
    expected race and reported as "not delivered". Any other OSError (for
    example EPERM) falls back to signalling the direct child only; nothing
    is raised.
    """

    if process.returncode is not None:
        return False
    if not hasattr(os, "killpg"):
        return _signal_child(process, signum)

    try:
        os.killpg(os.getpgid(process.pid), signum)
    except ProcessLookupError:
        return False
    except OSError as exc:
        logger.warning(
            "Could not signal target process group; signalling the child only.",
            pid=process.pid,
            signal=signum.name,
            error=str(exc),
        )
        return _signal_child(process, signum)
    return True


def force_kill_signal() -> signal.Signals:
    return getattr(signal, "SIGKILL", signal.SIGTERM)
