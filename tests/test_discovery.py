from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from crew_bridge.lib.discovery import TargetInfo, parse_target_listing
from crew_bridge.lib.exec.errors import EngineError, ErrorCategory
from crew_bridge.lib.types import TargetName, TargetNamespace

if TYPE_CHECKING:
    from collections.abc import Callable

    from crew_bridge.lib.engine import InvocationEngine


def _info(namespace: str, name: str, description: str = "") -> TargetInfo:
    return TargetInfo(TargetNamespace(namespace), TargetName(name), description)


def test_parse_flat_lines() -> None:
    text = """
research/writer - Drafts summaries
ops.deployer: Rolls out releases
misc:cleanup
"""

    assert parse_target_listing(text) == [
        _info("research", "writer", "Drafts summaries"),
        _info("ops", "deployer", "Rolls out releases"),
        _info("misc", "cleanup"),
    ]


def test_parse_grouped_lines_with_banner_and_bullets() -> None:
    text = """Available crews
research:
  - writer - Drafts summaries
  * reviewer: Reviews drafts
  • editor
ops:
  deployer
"""

    assert parse_target_listing(text) == [
        _info("research", "writer", "Drafts summaries"),
        _info("research", "reviewer", "Reviews drafts"),
        _info("research", "editor"),
        _info("ops", "deployer"),
    ]


def test_parse_qualified_lines_under_generic_heading() -> None:
    text = "Crews:\n  research/writer - Drafts\n  ops/deployer\n"

    assert parse_target_listing(text) == [
        _info("research", "writer", "Drafts"),
        _info("ops", "deployer"),
    ]


def test_parse_json_array() -> None:
    text = """[
  {"package": "research", "crew": "writer", "description": "Drafts"},
  {"namespace": "ops", "name": "deployer"},
  {"namespace": "bad ns", "name": "x"},
  "not an object"
]"""

    assert parse_target_listing(text) == [
        _info("research", "writer", "Drafts"),
        _info("ops", "deployer"),
    ]


def test_parse_drops_duplicates_keeping_first() -> None:
    text = "a/b - first\na/b - second\n"
    assert parse_target_listing(text) == [_info("a", "b", "first")]


@pytest.mark.parametrize(
    "text",
    [
        pytest.param("", id="empty"),
        pytest.param("   \n\t\n", id="whitespace"),
        pytest.param("Traceback (most recent call last):\n  oops\n", id="traceback"),
        pytest.param("[not json", id="broken-json"),
        pytest.param('{"namespace": "a"}', id="json-object"),
        pytest.param("\x00\x01\x02", id="control-bytes"),
    ],
)
def test_parse_unrecognized_output_yields_empty_list(text: str) -> None:
    assert parse_target_listing(text) == []


def test_target_info_text_format() -> None:
    assert _info("a", "b", "desc").format_text() == "a/b - desc"
    assert _info("a", "b").format_text() == "a/b"


@pytest.mark.asyncio
async def test_list_targets_parses_program_output(
    make_engine: Callable[..., InvocationEngine],
) -> None:
    targets = await make_engine().list_targets()

    assert targets == [
        _info("research", "writer", "Drafts research summaries"),
        _info("research", "reviewer", "Reviews drafts"),
        _info("ops", "deployer", "Rolls out releases"),
    ]


@pytest.mark.asyncio
async def test_list_targets_returns_empty_on_failure(
    make_engine: Callable[..., InvocationEngine],
) -> None:
    assert await make_engine("--exit-code=1", "--stderr=no crews").list_targets() == []


@pytest.mark.asyncio
async def test_list_targets_returns_empty_when_program_missing(tmp_path) -> None:
    from crew_bridge.lib.engine import InvocationEngine

    engine = InvocationEngine({"executable_path": str(tmp_path / "missing")})

    assert await engine.list_targets() == []


@pytest.mark.asyncio
async def test_get_target_info_matches_listing(
    make_engine: Callable[..., InvocationEngine],
) -> None:
    engine = make_engine()
    listed = await engine.list_targets()

    info = await engine.get_target_info(listed[0].namespace, listed[0].name)

    assert info == listed[0]
    assert await engine.get_target_info("research", "nobody") is None


@pytest.mark.asyncio
async def test_get_target_info_validates_identifiers(
    make_engine: Callable[..., InvocationEngine],
) -> None:
    with pytest.raises(EngineError) as exc_info:
        await make_engine().get_target_info("bad ns", "writer")

    assert exc_info.value.category is ErrorCategory.VALIDATION
