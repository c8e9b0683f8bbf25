"""Engine construction for operation handlers."""

from __future__ import annotations

from pathlib import Path

from crew_bridge.lib.config import EngineConfig, load_config, resolve_repo_root
from crew_bridge.lib.engine import InvocationEngine


def resolve_runtime_root_and_config(repo_root: str | None = None) -> tuple[Path, EngineConfig]:
    """Resolve the repository root and load its engine config."""

    explicit_root = Path(repo_root).expanduser().resolve() if repo_root else None
    resolved_root = resolve_repo_root(explicit_root)
    return resolved_root, load_config(resolved_root)


def build_engine(repo_root: str | None = None) -> InvocationEngine:
    _, config = resolve_runtime_root_and_config(repo_root)
    return InvocationEngine(config)
