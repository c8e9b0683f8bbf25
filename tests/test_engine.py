from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from crew_bridge.lib.domain import InvocationRequest, InvocationSuccess
from crew_bridge.lib.engine import InvocationEngine
from crew_bridge.lib.exec.errors import EngineError, ErrorCategory
from crew_bridge.lib.types import TargetName, TargetNamespace

if TYPE_CHECKING:
    from collections.abc import Callable


def test_engine_rejects_invalid_config() -> None:
    with pytest.raises(EngineError) as exc_info:
        InvocationEngine({"defaultTimeoutMs": -10})

    assert exc_info.value.category is ErrorCategory.CONFIGURATION
    assert "-10" in str(exc_info.value)


def test_engine_resolves_working_directory_once(tmp_path: Path) -> None:
    engine = InvocationEngine(
        {"executable_path": sys.executable, "working_directory": str(tmp_path)}
    )

    assert engine.working_directory == tmp_path.resolve()
    assert engine.config.executable_path == sys.executable


@pytest.mark.asyncio
async def test_invalid_request_raises_before_spawning(
    make_engine: Callable[..., InvocationEngine],
    tmp_path: Path,
) -> None:
    capture = tmp_path / "spawned.json"
    engine = make_engine(f"--capture-json={capture}")

    with pytest.raises(EngineError) as exc_info:
        await engine.invoke({"namespace": "research", "name": "bad name", "payload": "x"})

    assert exc_info.value.category is ErrorCategory.VALIDATION
    assert exc_info.value.details["field"] == "name"
    assert not capture.exists()


@pytest.mark.asyncio
async def test_invoke_accepts_typed_request(make_engine: Callable[..., InvocationEngine]) -> None:
    request = InvocationRequest(
        namespace=TargetNamespace("research"),
        name=TargetName("writer"),
        payload="typed payload",
    )

    result = await make_engine().invoke(request)

    assert result == InvocationSuccess(output="typed payload", duration_ms=result.duration_ms)


def test_invoke_sync_runs_without_event_loop(make_engine: Callable[..., InvocationEngine]) -> None:
    result = make_engine("--stdout=sync ok").invoke_sync(
        {"namespace": "research", "name": "writer", "payload": "ignored"}
    )

    assert isinstance(result, InvocationSuccess)
    assert result.output == "sync ok"


def test_sync_discovery_helpers(make_engine: Callable[..., InvocationEngine]) -> None:
    engine = make_engine()

    listed = engine.list_targets_sync()

    assert [info.qualified_name for info in listed] == [
        "research/writer",
        "research/reviewer",
        "ops/deployer",
    ]
    assert engine.get_target_info_sync("ops", "deployer") == listed[2]
