"""Core frozen domain dataclasses."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from crew_bridge.lib.exec.errors import RESULT_CATEGORIES, ErrorCategory

if TYPE_CHECKING:
    from crew_bridge.lib.formatting import FormatContext
    from crew_bridge.lib.types import TargetName, TargetNamespace


def _empty_env() -> dict[str, str]:
    return {}


@dataclass(frozen=True, slots=True)
class InvocationRequest:
    """One validated request to run a target."""

    namespace: TargetNamespace
    name: TargetName
    payload: str
    timeout_override_ms: int | None = None
    extra_env: Mapping[str, str] = field(default_factory=_empty_env)


@dataclass(frozen=True, slots=True)
class InvocationSuccess:
    """Target exited with code 0."""

    output: str
    duration_ms: int
    exit_code: int = 0
    succeeded: Literal[True] = field(default=True, init=False)
    error_message: None = field(default=None, init=False)

    def format_text(self, ctx: FormatContext | None = None) -> str:
        _ = ctx
        return self.output


@dataclass(frozen=True, slots=True)
class InvocationFailure:
    """Target could not be run, failed, timed out, or produced unusable output."""

    error_message: str
    category: ErrorCategory
    duration_ms: int
    exit_code: int | None = None
    timed_out: bool = False
    succeeded: Literal[False] = field(default=False, init=False)
    output: None = field(default=None, init=False)

    def __post_init__(self) -> None:
        if not self.error_message:
            raise ValueError("InvocationFailure requires a non-empty error_message.")
        if self.category not in RESULT_CATEGORIES:
            raise ValueError(
                f"InvocationFailure category must be one of {sorted(RESULT_CATEGORIES)}, "
                f"got {self.category!r}."
            )

    def format_text(self, ctx: FormatContext | None = None) -> str:
        if ctx is None or not ctx.verbose:
            return f"{self.category.value} failure: {self.error_message}"
        exit_part = f"exit {self.exit_code}" if self.exit_code is not None else "no exit code"
        return (
            f"{self.category.value} failure ({exit_part}, {self.duration_ms}ms): "
            f"{self.error_message}"
        )


type InvocationResult = InvocationSuccess | InvocationFailure
