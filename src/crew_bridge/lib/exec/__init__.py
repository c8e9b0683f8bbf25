"""Process supervision primitives."""

from crew_bridge.lib.exec.errors import (
    EngineError,
    ErrorCategory,
    configuration_error,
    is_timeout_message,
    validation_error,
)
from crew_bridge.lib.exec.timeout import (
    DEFAULT_KILL_GRACE_SECONDS,
    DeadlineOutcome,
    race_exit_against_deadline,
    terminate_process,
)

__all__ = [
    "DEFAULT_KILL_GRACE_SECONDS",
    "DeadlineOutcome",
    "EngineError",
    "ErrorCategory",
    "configuration_error",
    "is_timeout_message",
    "race_exit_against_deadline",
    "terminate_process",
    "validation_error",
]
