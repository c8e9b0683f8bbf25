"""Map raw supervision records onto the result taxonomy."""

from __future__ import annotations

import signal

from crew_bridge.lib.domain import InvocationFailure, InvocationResult, InvocationSuccess
from crew_bridge.lib.exec.errors import TIMEOUT_MARKER, ErrorCategory
from crew_bridge.lib.exec.spawn import SpawnResult


def exit_failure_message(return_code: int) -> str:
    """Generic message used when a failing target wrote nothing to stderr."""

    if return_code < 0:
        try:
            signal_name = signal.Signals(-return_code).name
        except ValueError:
            signal_name = f"signal {-return_code}"
        return f"Target was terminated by {signal_name}"
    return f"Target exited with code {return_code}"


def timeout_message(timeout_ms: int, *, force_killed: bool) -> str:
    message = f"Target {TIMEOUT_MARKER} after {timeout_ms}ms"
    if force_killed:
        return f"{message} and was forcibly terminated"
    return message


def classify_spawn_result(result: SpawnResult) -> InvocationResult:
    """Fold one supervision record into exactly one success or failure."""

    if result.spawn_error is not None:
        return InvocationFailure(
            error_message=result.spawn_error,
            category=ErrorCategory.SUBPROCESS,
            duration_ms=result.duration_ms,
        )

    if result.timed_out:
        return InvocationFailure(
            error_message=timeout_message(result.timeout_ms, force_killed=result.force_killed),
            category=ErrorCategory.SUBPROCESS,
            duration_ms=max(result.duration_ms, result.timeout_ms),
            exit_code=None if result.force_killed else result.return_code,
            timed_out=True,
        )

    if result.stream_error is not None:
        return InvocationFailure(
            error_message=f"Lost contact with target output ({result.stream_error})",
            category=ErrorCategory.SUBPROCESS,
            duration_ms=result.duration_ms,
            exit_code=result.return_code,
        )

    return_code = result.return_code if result.return_code is not None else -1
    if return_code == 0:
        try:
            # A capped stream may end mid-character.
            errors = "ignore" if result.stdout_truncated else "strict"
            output = result.stdout.decode("utf-8", errors=errors)
        except UnicodeDecodeError as exc:
            return InvocationFailure(
                error_message=f"Target output could not be decoded as UTF-8: {exc.reason}",
                category=ErrorCategory.COMMUNICATION,
                duration_ms=result.duration_ms,
                exit_code=0,
            )
        return InvocationSuccess(output=output.strip(), duration_ms=result.duration_ms)

    stderr_text = result.stderr.decode("utf-8", errors="replace").strip()
    return InvocationFailure(
        error_message=stderr_text or exit_failure_message(return_code),
        category=ErrorCategory.TARGET,
        duration_ms=result.duration_ms,
        exit_code=return_code,
    )
