"""Render command results on stdout as text or JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Literal

from crew_bridge.lib.formatting import FormatContext, TextFormattable
from crew_bridge.lib.serialization import to_jsonable


@dataclass(frozen=True, slots=True)
class OutputConfig:
    format: Literal["text", "json"] = "text"
    verbosity: int = 0


def render(value: object, config: OutputConfig) -> str:
    """Text mode uses ``format_text`` when available, otherwise indented JSON."""

    if config.format == "text" and isinstance(value, TextFormattable):
        return value.format_text(FormatContext(verbosity=config.verbosity))
    indent = None if config.format == "json" else 2
    return json.dumps(to_jsonable(value), sort_keys=True, indent=indent)


def emit(value: object, config: OutputConfig) -> None:
    text = render(value, config)
    if text:
        print(text)
