"""MCP server module - FastMCP tool registration and wiring."""

from docplane.mcp.context import AppContext
from docplane.mcp.server import create_mcp_server

__all__ = ["AppContext", "create_mcp_server"]
