"""MCP server exposing the target operations as tools over stdio."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, cast

from mcp.server.fastmcp import FastMCP

from crew_bridge.lib.exec.errors import EngineError
from crew_bridge.lib.logging import configure_logging
from crew_bridge.lib.ops import OperationSpec, get_all_operations
from crew_bridge.lib.ops.codec import build_operation_input, tool_signature
from crew_bridge.lib.serialization import to_jsonable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable


@asynccontextmanager
async def _lifespan(_: FastMCP[Any]) -> AsyncIterator[dict[str, bool]]:
    # stdout is the MCP transport; logs go to stderr as JSON lines.
    configure_logging(json_mode=True)
    yield {"ready": True}


def _tool_for(op: OperationSpec[Any, Any]) -> Callable[..., Awaitable[object]]:
    async def run_operation(**arguments: object) -> object:
        request = build_operation_input(op.input_type, arguments)
        try:
            result = await op.handler(request)
        except EngineError as exc:
            raise ValueError(f"{exc.category.value} error: {exc}") from exc
        except KeyError as exc:
            raise ValueError(str(exc.args[0]) if exc.args else "Not found") from exc
        return to_jsonable(result)

    run_operation.__name__ = op.mcp_name
    run_operation.__doc__ = op.description
    # FastMCP derives the tool's input schema from the signature.
    cast("Any", run_operation).__signature__ = tool_signature(op.input_type)
    return run_operation


def build_server(name: str = "crew-bridge") -> FastMCP[Any]:
    """Create a FastMCP server with one tool per registered operation."""

    server = FastMCP(name, lifespan=_lifespan)
    for op in get_all_operations():
        server.tool(name=op.mcp_name, description=op.description)(_tool_for(op))
    return server


mcp = build_server()


def run_server() -> None:
    mcp.run(transport="stdio")


if __name__ == "__main__":
    run_server()
