"""Documentation MCP tools.

- process_rust_project: Generate, normalize and embed a crate's docs
- query_documentation: Semantic search over processed projects
- list_projects: Projects processed in this server process
- get_raw_documentation: Full record for one item
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from pydantic import Field

from docplane.core.errors import DocPlaneError
from docplane.mcp.errors import MCPError

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from docplane.mcp.context import AppContext


@contextmanager
def _domain_errors() -> Iterator[None]:
    try:
        yield
    except DocPlaneError as e:
        raise MCPError.from_domain(e) from e


# =============================================================================
# Summary Helpers
# =============================================================================


def _summarize_query(count: int, query: str, project_path: str | None) -> str:
    q = query if len(query) <= 30 else query[:27] + "..."
    scope = f" in {project_path}" if project_path else ""
    if count == 0:
        return f'no results for "{q}"{scope}'
    return f'{count} results for "{q}"{scope}'


def _summarize_projects(projects: list[str]) -> str:
    if not projects:
        return "no projects processed"
    noun = "project" if len(projects) == 1 else "projects"
    return f"{len(projects)} {noun}"


# =============================================================================
# Tool Registration
# =============================================================================


def register_tools(mcp: FastMCP, app_ctx: AppContext) -> None:
    """Register documentation tools with FastMCP server."""

    @mcp.tool
    async def process_rust_project(
        path: str = Field(..., description="Absolute path to the Rust project root (Cargo.toml)"),
    ) -> dict[str, Any]:
        """Generate rustdoc JSON for a Rust project, embed its documentation and make it searchable.

        Re-processing a project replaces its previous index entirely.
        """
        with _domain_errors():
            summary = await app_ctx.ops.ingest(path)
        return {**summary.to_dict(), "summary": summary.message}

    @mcp.tool
    async def query_documentation(
        natural_language_query: str = Field(..., description="What you are looking for"),
        project_path: str | None = Field(
            None, description="Restrict to one processed project (default: all)"
        ),
        num_results: int | None = Field(None, description="Maximum results (default 5, max 100)"),
    ) -> dict[str, Any]:
        """Semantic search over documentation of processed Rust projects, best match first."""
        with _domain_errors():
            results = await app_ctx.ops.query(
                natural_language_query,
                project_path=project_path,
                num_results=num_results,
            )
        return {
            "results": [r.to_dict() for r in results],
            "count": len(results),
            "summary": _summarize_query(len(results), natural_language_query, project_path),
        }

    @mcp.tool
    async def list_projects() -> dict[str, Any]:
        """List identifiers of all processed projects."""
        projects = await app_ctx.ops.list_projects()
        return {
            "projects": projects,
            "count": len(projects),
            "summary": _summarize_projects(projects),
        }

    @mcp.tool
    async def get_raw_documentation(
        item_path: str = Field(..., description="Full item path, e.g. my_crate::module::func"),
        project_path: str = Field(..., description="Processed project identifier"),
    ) -> dict[str, Any]:
        """Return the full documentation record for one item."""
        with _domain_errors():
            item = await app_ctx.ops.get_item(project_path, item_path)
        return {"item": item.to_dict(), "summary": f"{item.item_kind.value} {item.full_path}"}
