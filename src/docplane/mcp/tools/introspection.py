"""Describe error codes returned by the documentation tools."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import Field

from docplane.mcp.errors import ERROR_CATALOG, get_error_documentation

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from docplane.mcp.context import AppContext


# =============================================================================
# Tool Registration
# =============================================================================


def register_tools(mcp: FastMCP, app_ctx: AppContext) -> None:
    """Register introspection tools with FastMCP server."""

    @mcp.tool
    async def describe_error(
        code: str = Field(..., description="Error code from a failed tool call"),
    ) -> dict[str, Any]:
        """Explain an error code: what it means, common causes and how to recover."""
        err_doc = get_error_documentation(code.strip().upper())
        if err_doc is None:
            return {
                "found": False,
                "error": f"Error code '{code}' not documented",
                "available_codes": list(ERROR_CATALOG),
                "summary": f"error code '{code}' not found",
            }
        return {
            "found": True,
            "code": err_doc.code.value,
            "category": err_doc.category,
            "description": err_doc.description,
            "causes": err_doc.causes,
            "remediation": err_doc.remediation,
            "summary": f"{err_doc.code.value}: {err_doc.description}",
        }
