"""Parsing for the target program's `list` output."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import cast

import structlog

from crew_bridge.lib.formatting import FormatContext
from crew_bridge.lib.types import TargetName, TargetNamespace

logger = structlog.get_logger(__name__)

_IDENT = r"[A-Za-z0-9_-]+"
_BULLET_PREFIX = re.compile(r"^\s*(?:[-*•]\s+)?")
_QUALIFIED_LINE = re.compile(
    rf"^(?P<namespace>{_IDENT})\s*[/.:]\s*(?P<name>{_IDENT})"
    rf"(?:\s*(?:-|:|–|—)\s*(?P<description>.*))?$"
)
_GROUP_HEADER = re.compile(rf"^(?P<namespace>{_IDENT})\s*:\s*$")
_MEMBER_LINE = re.compile(
    rf"^(?P<name>{_IDENT})(?:\s*(?:-|:|–|—)\s*(?P<description>.*))?$"
)


@dataclass(frozen=True, slots=True)
class TargetInfo:
    """One runnable target advertised by the target program."""

    namespace: TargetNamespace
    name: TargetName
    description: str = ""

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}/{self.name}"

    def format_text(self, ctx: FormatContext | None = None) -> str:
        _ = ctx
        if self.description:
            return f"{self.qualified_name} - {self.description}"
        return self.qualified_name


def _make_info(namespace: str, name: str, description: str | None) -> TargetInfo:
    return TargetInfo(
        namespace=TargetNamespace(namespace),
        name=TargetName(name),
        description=(description or "").strip(),
    )


def _parse_json_listing(text: str) -> list[TargetInfo] | None:
    stripped = text.strip()
    if not stripped.startswith("["):
        return None
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, list):
        return None

    identifier = re.compile(rf"^{_IDENT}$")
    parsed: list[TargetInfo] = []
    for item in cast("list[object]", payload):
        if not isinstance(item, Mapping):
            continue
        entry = cast("Mapping[str, object]", item)
        namespace = entry.get("namespace", entry.get("package"))
        name = entry.get("name", entry.get("crew"))
        description = entry.get("description")
        if not isinstance(namespace, str) or not isinstance(name, str):
            continue
        if identifier.match(namespace) is None or identifier.match(name) is None:
            continue
        parsed.append(
            _make_info(namespace, name, description if isinstance(description, str) else None)
        )
    return parsed


def _parse_text_listing(lines: Iterable[str]) -> list[TargetInfo]:
    parsed: list[TargetInfo] = []
    current_namespace: str | None = None
    for raw_line in lines:
        if not raw_line.strip():
            continue
        indented = raw_line[:1].isspace()
        line = _BULLET_PREFIX.sub("", raw_line, count=1).strip()

        header = _GROUP_HEADER.match(line)
        if header is not None and not indented:
            current_namespace = header.group("namespace")
            continue

        qualified = _QUALIFIED_LINE.match(line)
        member = _MEMBER_LINE.match(line) if current_namespace is not None else None
        if member is not None and current_namespace is not None and (
            indented or qualified is None
        ):
            parsed.append(
                _make_info(current_namespace, member.group("name"), member.group("description"))
            )
            continue

        if qualified is not None:
            parsed.append(
                _make_info(
                    qualified.group("namespace"),
                    qualified.group("name"),
                    qualified.group("description"),
                )
            )
            continue

        if not indented:
            # Free-form text (banners, headings) ends the current group.
            current_namespace = None
    return parsed


def _dedupe(entries: Iterable[TargetInfo]) -> list[TargetInfo]:
    seen: set[tuple[str, str]] = set()
    unique: list[TargetInfo] = []
    for entry in entries:
        key = (entry.namespace, entry.name)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique


def parse_target_listing(text: str) -> list[TargetInfo]:
    """Parse `list` output into target entries.

    Accepts a JSON array of objects, flat `namespace/name - description`
    lines, or `namespace:` headers followed by indented `name - description`
    lines. Unrecognized lines are skipped and duplicates keep their first
    occurrence. Never raises; unparsable input yields an empty list.
    """

    if not text or not text.strip():
        return []

    from_json = _parse_json_listing(text)
    if from_json is not None:
        return _dedupe(from_json)

    entries = _dedupe(_parse_text_listing(text.splitlines()))
    if not entries:
        logger.debug("Target listing contained no recognizable entries.", length=len(text))
    return entries
