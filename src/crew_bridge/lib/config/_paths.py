"""Path resolution helpers for the repository root and target working directory."""

from __future__ import annotations

import os
from pathlib import Path

TARGET_PROJECT_DIRNAME = "python"
TARGET_PROJECT_MARKER = "pyproject.toml"


def _find_target_project(start: Path) -> Path | None:
    candidate = start
    while True:
        if (candidate / TARGET_PROJECT_DIRNAME / TARGET_PROJECT_MARKER).is_file():
            return candidate

        # A .git entry (file for worktree/submodule, directory for standalone
        # repo) marks a repo boundary.
        if (candidate / ".git").exists():
            return None

        parent = candidate.parent
        if parent == candidate:
            return None
        candidate = parent


def resolve_repo_root(explicit: Path | None = None) -> Path:
    """Resolve the repository that owns `.crew-bridge/config.toml`.

    Precedence:
    1. Explicit function argument.
    2. `CREW_BRIDGE_REPO_ROOT` environment variable.
    3. Nearest ancestor holding the target project (`python/pyproject.toml`).
    4. Current working directory.
    """

    if explicit is not None:
        return explicit.expanduser().resolve()

    env_root = os.getenv("CREW_BRIDGE_REPO_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()

    cwd = Path.cwd().resolve()
    return _find_target_project(cwd) or cwd


def resolve_working_directory(hint: str | None = None) -> Path:
    """Resolve the directory target processes run in.

    Precedence:
    1. Configured hint (relative hints resolve against the current directory).
    2. `CREW_BRIDGE_TARGET_ROOT` environment variable.
    3. The `python/` project directory of the nearest ancestor that has one.
    4. Current working directory.

    The result is not required to exist; a missing directory surfaces later
    as a spawn failure on the invocation result.
    """

    if hint:
        return Path(hint).expanduser().resolve()

    env_root = os.getenv("CREW_BRIDGE_TARGET_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()

    cwd = Path.cwd().resolve()
    owner = _find_target_project(cwd)
    if owner is not None:
        return owner / TARGET_PROJECT_DIRNAME
    return cwd
