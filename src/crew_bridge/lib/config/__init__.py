"""Engine configuration: validation, file loading, and path discovery."""

from crew_bridge.lib.config._paths import resolve_repo_root, resolve_working_directory
from crew_bridge.lib.config.settings import (
    DEFAULT_TIMEOUT_MS,
    EngineConfig,
    default_executable_path,
    load_config,
    validate_config,
)

__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "EngineConfig",
    "default_executable_path",
    "load_config",
    "resolve_repo_root",
    "resolve_working_directory",
    "validate_config",
]
