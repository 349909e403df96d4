"""FastMCP server creation and wiring."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from docplane.mcp.context import AppContext

log = structlog.get_logger(__name__)

_INSTRUCTIONS = (
    "DocPlane semantic search over Rust crate documentation. "
    "Call process_rust_project once per crate, then query_documentation with a "
    "natural-language description of what you need. On a failed call, "
    "describe_error explains the returned error code."
)


def create_mcp_server(context: AppContext) -> FastMCP:
    """Create FastMCP server with all tools wired to context.

    Args:
        context: AppContext holding the shared DocIndexOps

    Returns:
        Configured FastMCP server, ready to mount or run
    """
    from fastmcp import FastMCP

    from docplane.mcp.middleware import ToolMiddleware
    from docplane.mcp.tools import docs, introspection

    mcp = FastMCP("docplane", instructions=_INSTRUCTIONS)
    mcp.add_middleware(ToolMiddleware())

    docs.register_tools(mcp, context)
    introspection.register_tools(mcp, context)

    log.info("mcp_server_created", model=context.provider.model_name)
    return mcp
