"""MCP tool handlers."""

from docplane.mcp.tools import docs, introspection

__all__ = ["docs", "introspection"]
