"""HTTP routes for the DocPlane daemon.

Health/status diagnostics plus the local command surface used by the
``dpl`` CLI. The /api routes call the same DocIndexOps as the MCP tools.
"""

from __future__ import annotations

import importlib.metadata
import json
import os
import sys
import time
from typing import TYPE_CHECKING, Any

import structlog
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from docplane.core.errors import DocPlaneError, ErrorCode, InternalError, InvalidInput

if TYPE_CHECKING:
    from docplane.daemon.lifecycle import ServerController

log = structlog.get_logger(__name__)

_STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.PROJECT_NOT_FOUND: 404,
    ErrorCode.ITEM_NOT_FOUND: 404,
    ErrorCode.EMBEDDING_UNAVAILABLE: 503,
}


def _get_version() -> str:
    """Get package version from installed metadata."""
    try:
        return importlib.metadata.version("docplane")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _get_runtime_info() -> dict[str, Any]:
    return {
        "python_version": sys.version.split()[0],
        "pid": os.getpid(),
    }


def error_response(err: DocPlaneError) -> JSONResponse:
    """JSON body from ``err.to_dict()`` with a status code for its kind."""
    status_code = _STATUS_CODES.get(err.code, 500)
    if status_code >= 500:
        log.warning("route_error", error=err.error_name, message=err.message)
    return JSONResponse(err.to_dict(), status_code=status_code)


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidInput.bad_value("body", "<unparseable>", f"invalid JSON: {e}") from e
    if not isinstance(body, dict):
        raise InvalidInput.bad_value("body", type(body).__name__, "must be a JSON object")
    return body


def _optional_str(body: dict[str, Any], key: str) -> str | None:
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInput.bad_value(key, value, "must be a string")
    return value


def create_routes(controller: ServerController) -> list[Route]:
    """Create HTTP routes bound to the daemon controller."""
    start_time = time.time()
    version = _get_version()
    ops = controller.context.ops

    async def health(request: Request) -> JSONResponse:
        """Liveness check. For diagnostics use /status."""
        _ = request  # unused
        return JSONResponse(
            {
                "status": "healthy",
                "version": version,
                "uptime_seconds": round(time.time() - start_time, 1),
            }
        )

    async def status(request: Request) -> JSONResponse:
        """Detailed status: runtime, embedding provider, index totals."""
        _ = request  # unused
        stats = await ops.stats()
        init_error = controller.context.provider.init_error
        if init_error is not None:
            stats["embedding"]["error"] = init_error.message
        return JSONResponse(
            {
                "version": version,
                "uptime_seconds": round(time.time() - start_time, 1),
                "runtime": _get_runtime_info(),
                "index": {
                    "projects": stats["projects"],
                    "items": stats["items"],
                    "embedded": stats["embedded"],
                },
                "embedding": stats["embedding"],
            }
        )

    async def ingest(request: Request) -> JSONResponse:
        try:
            body = await _json_body(request)
            path = body.get("path")
            if not isinstance(path, str):
                raise InvalidInput.bad_value("path", path, "required string")
            summary = await ops.ingest(path, json_path=_optional_str(body, "json_path"))
        except DocPlaneError as e:
            return error_response(e)
        return JSONResponse(summary.to_dict())

    async def query(request: Request) -> JSONResponse:
        try:
            body = await _json_body(request)
            text = body.get("query")
            if not isinstance(text, str):
                raise InvalidInput.bad_value("query", text, "required string")
            results = await ops.query(
                text,
                project_path=_optional_str(body, "project_path"),
                num_results=body.get("num_results"),
            )
        except DocPlaneError as e:
            return error_response(e)
        return JSONResponse({"results": [r.to_dict() for r in results]})

    async def projects(request: Request) -> JSONResponse:
        _ = request  # unused
        return JSONResponse({"projects": await ops.list_projects()})

    async def item(request: Request) -> JSONResponse:
        project_path = request.query_params.get("project_path")
        item_path = request.query_params.get("item_path")
        try:
            if not project_path or not item_path:
                raise InvalidInput.bad_value(
                    "query_params",
                    dict(request.query_params),
                    "'project_path' and 'item_path' are required",
                )
            found = await ops.get_item(project_path, item_path)
        except DocPlaneError as e:
            return error_response(e)
        return JSONResponse({"item": found.to_dict()})

    def guarded(handler: Any) -> Any:
        async def wrapper(request: Request) -> JSONResponse:
            try:
                response: JSONResponse = await handler(request)
            except Exception as e:
                log.error("route_internal_error", path=request.url.path, error=str(e))
                log.debug("route_internal_error_traceback", exc_info=True)
                return error_response(InternalError.unexpected(str(e), path=request.url.path))
            return response

        return wrapper

    return [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/api/ingest", guarded(ingest), methods=["POST"]),
        Route("/api/query", guarded(query), methods=["POST"]),
        Route("/api/projects", guarded(projects), methods=["GET"]),
        Route("/api/item", guarded(item), methods=["GET"]),
    ]
