"""Shared pytest fixtures for engine and CLI integration checks."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from crew_bridge.lib.config import EngineConfig
from crew_bridge.lib.engine import InvocationEngine

if TYPE_CHECKING:
    from collections.abc import Callable

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
MOCK_TARGET = PACKAGE_ROOT / "tests" / "mock_target.py"


@dataclass(frozen=True, slots=True)
class CliResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


@pytest.fixture(autouse=True)
def _isolate_crew_bridge_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("CREW_BRIDGE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def package_root() -> Path:
    return PACKAGE_ROOT


@pytest.fixture
def mock_target() -> Path:
    return MOCK_TARGET


def mock_config(
    *behavior: str,
    working_directory: Path | None = None,
    default_timeout_ms: int = 10_000,
    kill_grace_ms: int = 1_000,
    base_env: dict[str, str] | None = None,
    max_output_bytes: int = 10 * 1024 * 1024,
) -> EngineConfig:
    """Config that runs tests/mock_target.py with the given behavior flags."""

    return EngineConfig(
        executable_path=sys.executable,
        launcher_args=(str(MOCK_TARGET), *behavior),
        working_directory=str(working_directory) if working_directory is not None else None,
        default_timeout_ms=default_timeout_ms,
        kill_grace_ms=kill_grace_ms,
        base_env=dict(base_env or {}),
        max_output_bytes=max_output_bytes,
    )


@pytest.fixture
def make_engine(tmp_path: Path) -> Callable[..., InvocationEngine]:
    def _make(*behavior: str, **overrides: object) -> InvocationEngine:
        overrides.setdefault("working_directory", tmp_path)
        return InvocationEngine(mock_config(*behavior, **overrides))  # type: ignore[arg-type]

    return _make


@pytest.fixture
def cli_repo(tmp_path: Path) -> Path:
    """Repository root whose config points the CLI at the mock target."""

    repo_root = tmp_path / "repo"
    config_dir = repo_root / ".crew-bridge"
    config_dir.mkdir(parents=True)
    (config_dir / "config.toml").write_text(
        "\n".join(
            [
                "[engine]",
                f"executable_path = {json.dumps(sys.executable)}",
                f"launcher_args = [{json.dumps(str(MOCK_TARGET))}]",
                f"working_directory = {json.dumps(str(tmp_path))}",
                "default_timeout_ms = 10000",
                "kill_grace_ms = 1000",
                "",
            ]
        ),
        encoding="utf-8",
    )
    return repo_root


@pytest.fixture
def cli_env(package_root: Path) -> dict[str, str]:
    env = {key: value for key, value in os.environ.items() if not key.startswith("CREW_BRIDGE_")}
    existing = env.get("PYTHONPATH", "")
    root = str(package_root / "src")
    env["PYTHONPATH"] = root if not existing else f"{root}{os.pathsep}{existing}"
    return env


@pytest.fixture
def run_crew_bridge(
    package_root: Path,
    cli_env: dict[str, str],
    cli_repo: Path,
) -> Callable[..., CliResult]:
    def _run(args: list[str], timeout: float = 30.0) -> CliResult:
        completed = subprocess.run(
            [sys.executable, "-m", "crew_bridge", "--repo-root", str(cli_repo), *args],
            cwd=package_root,
            env=cli_env,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
        return CliResult(
            args=tuple(args),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

    return _run
