"""Registry of target operations exposed by the CLI and the MCP server."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


@dataclass(frozen=True, slots=True)
class OperationSpec(Generic[InputT, OutputT]):
    """An operation described once: handlers, payload types and help text.

    ``name`` is dotted (``group.verb``). The CLI command is the verb and the
    MCP tool name is the dotted name with underscores.
    """

    name: str
    handler: Callable[[InputT], Coroutine[Any, Any, OutputT]]
    sync_handler: Callable[[InputT], OutputT]
    input_type: type[InputT]
    output_type: type[OutputT]
    description: str

    @property
    def cli_name(self) -> str:
        return self.name.rpartition(".")[2]

    @property
    def mcp_name(self) -> str:
        return self.name.replace(".", "_")


_OPERATIONS: dict[str, OperationSpec[Any, Any]] = {}
_loaded = False


def operation(spec: OperationSpec[InputT, OutputT]) -> OperationSpec[InputT, OutputT]:
    """Add an operation to the registry; names are unique ``group.verb`` pairs."""

    group, dot, verb = spec.name.partition(".")
    if not group or not dot or not verb.isidentifier():
        raise ValueError(f"Operation name '{spec.name}' must look like 'group.verb'")
    existing = _OPERATIONS.get(spec.name)
    if existing is not None:
        raise ValueError(
            f"Operation '{spec.name}' is already registered by "
            f"{existing.handler.__qualname__}"
        )
    _OPERATIONS[spec.name] = spec
    return spec


def get_all_operations() -> list[OperationSpec[Any, Any]]:
    _load_operations()
    return sorted(_OPERATIONS.values(), key=lambda op: op.name)


def get_operation(name: str) -> OperationSpec[Any, Any]:
    _load_operations()
    try:
        return _OPERATIONS[name]
    except KeyError:
        raise KeyError(f"Unknown operation '{name}'") from None


def get_mcp_tool_names() -> frozenset[str]:
    _load_operations()
    return frozenset(op.mcp_name for op in _OPERATIONS.values())


def _load_operations() -> None:
    global _loaded
    if _loaded:
        return
    # Operation modules register themselves at import time.
    from crew_bridge.lib.ops import targets

    _ = targets
    _loaded = True
