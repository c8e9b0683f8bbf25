"""Error taxonomy shared by the validators and the process supervisor."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any


class ErrorCategory(StrEnum):
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    SUBPROCESS = "subprocess"
    TARGET = "target"
    COMMUNICATION = "communication"


# Raised before a process exists.
RAISED_CATEGORIES: frozenset[ErrorCategory] = frozenset(
    {ErrorCategory.CONFIGURATION, ErrorCategory.VALIDATION}
)
# Folded into a failed result once spawning has begun.
RESULT_CATEGORIES: frozenset[ErrorCategory] = frozenset(
    {ErrorCategory.SUBPROCESS, ErrorCategory.TARGET, ErrorCategory.COMMUNICATION}
)

TIMEOUT_MARKER = "timed out"


class EngineError(Exception):
    """Caller misuse detected before any process is spawned.

    Only configuration and validation failures are raised; everything that
    happens after spawning begins is reported as a failed result instead.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory | str,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        resolved = ErrorCategory(category)
        if resolved not in RAISED_CATEGORIES:
            raise ValueError(
                f"EngineError category must be one of {sorted(RAISED_CATEGORIES)}, "
                f"got {resolved.value!r}."
            )
        super().__init__(message)
        self.message = message
        self.category = resolved
        self.details: dict[str, Any] = dict(details or {})

    def __repr__(self) -> str:
        return f"EngineError({self.message!r}, category={self.category.value!r})"


def configuration_error(message: str, **details: Any) -> EngineError:
    return EngineError(message, ErrorCategory.CONFIGURATION, details)


def validation_error(message: str, **details: Any) -> EngineError:
    return EngineError(message, ErrorCategory.VALIDATION, details)


def is_timeout_message(message: str | None) -> bool:
    """Return whether a failure message carries the timeout marker."""

    return message is not None and TIMEOUT_MARKER in message.lower()
