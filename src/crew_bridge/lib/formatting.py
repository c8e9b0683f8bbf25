"""Text rendering protocol shared by results, listings and the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class FormatContext:
    verbosity: int = 0

    @property
    def verbose(self) -> bool:
        return self.verbosity > 0


@runtime_checkable
class TextFormattable(Protocol):
    """Anything the CLI can print in text mode."""

    def format_text(self, ctx: FormatContext | None = None) -> str: ...
