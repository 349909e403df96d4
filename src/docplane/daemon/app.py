"""Starlette application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from starlette.applications import Starlette
from starlette.routing import BaseRoute, Mount

from docplane.daemon.middleware import RequestIdMiddleware
from docplane.daemon.routes import create_routes

if TYPE_CHECKING:
    from docplane.daemon.lifecycle import ServerController


def create_app(controller: ServerController) -> Starlette:
    """Create the Starlette application with the MCP server mounted at /mcp."""
    from docplane.mcp.server import create_mcp_server

    routes: list[BaseRoute] = list(create_routes(controller))

    mcp = create_mcp_server(controller.context)
    mcp_app = mcp.http_app(path="/mcp", transport="streamable-http")
    routes.append(Mount("/", app=mcp_app))

    @asynccontextmanager
    async def combined_lifespan(app: Starlette) -> AsyncIterator[None]:
        # Controller start/stop is driven by run_server so it also runs
        # when the lifespan exit times out
        async with mcp_app.lifespan(app):
            yield

    app = Starlette(
        routes=routes,
        lifespan=combined_lifespan,
    )
    app.add_middleware(RequestIdMiddleware)

    return app
