"""MCP server package for crew-bridge."""

from crew_bridge.server.main import build_server, mcp, run_server

__all__ = ["build_server", "mcp", "run_server"]
