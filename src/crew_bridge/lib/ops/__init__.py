"""Target operations shared by the CLI and the MCP server."""

from crew_bridge.lib.ops.registry import (
    OperationSpec,
    get_all_operations,
    get_mcp_tool_names,
    get_operation,
)

__all__ = ["OperationSpec", "get_all_operations", "get_mcp_tool_names", "get_operation"]
