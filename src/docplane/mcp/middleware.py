"""MCP middleware for tool call handling.

Provides:
- Structured error handling (catches exceptions, returns structured responses)
- Request correlation id bound for the duration of each tool call
- Logging with timing and result summaries
- No tracebacks printed to console (DEBUG-level traceback only)
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import TYPE_CHECKING, Any

import structlog
from fastmcp.server.middleware import Middleware, MiddlewareContext
from fastmcp.tools.tool import ToolResult
from pydantic import ValidationError

from docplane.core.logging import clear_request_id, set_request_id
from docplane.mcp.errors import MCPError

if TYPE_CHECKING:
    from fastmcp.server.middleware import CallNext
    from mcp import types as mt

log = structlog.get_logger(__name__)

# Source tag for agent output - escaped for Rich markup
_AGENT_TAG = "\\[agent] "


def _timestamp() -> str:
    return time.strftime("%H:%M:%S")


class ToolMiddleware(Middleware):
    """Wraps every tool call with logging, timing and structured errors."""

    async def on_call_tool(  # type: ignore[override]
        self,
        context: MiddlewareContext[mt.CallToolRequest],
        call_next: CallNext[mt.CallToolRequest, Any],
    ) -> Any:
        from docplane.core.progress import get_console, is_console_suppressed

        params = context.message
        tool_name = getattr(params, "name", "unknown")
        arguments = getattr(params, "arguments", {}) or {}

        request_id = set_request_id()
        start_time = time.perf_counter()
        log.info("tool_start", tool=tool_name, **self._extract_log_params(arguments))

        try:
            result = await call_next(context)

            duration_ms = (time.perf_counter() - start_time) * 1000
            summary_text = self._format_tool_summary(result)
            log.info(
                "tool_completed",
                tool=tool_name,
                duration_ms=round(duration_ms, 1),
                summary=summary_text[:100] or None,
            )
            if summary_text and not is_console_suppressed():
                ts = f"[dim]\\[{_timestamp()}][/dim] "
                get_console().print(
                    f"{ts}{_AGENT_TAG}{tool_name} -> {summary_text}",
                    style="green",
                    highlight=False,
                )
            return result

        except asyncio.CancelledError:
            log.info("tool_cancelled", tool=tool_name)
            return ToolResult(
                structured_content={
                    "error": {
                        "code": "CANCELLED",
                        "message": f"Tool '{tool_name}' cancelled: server shutting down",
                    },
                    "summary": "error: cancelled",
                }
            )

        except ValidationError as e:
            error_details = [
                {
                    "field": ".".join(str(p) for p in err.get("loc", [])),
                    "message": err.get("msg", ""),
                }
                for err in e.errors()
            ]
            log.warning("tool_validation_error", tool=tool_name, errors=error_details)
            return ToolResult(
                structured_content={
                    "error": {
                        "code": "VALIDATION_ERROR",
                        "message": f"Invalid parameters for '{tool_name}'",
                        "details": error_details,
                    },
                    "summary": f"error: validation failed for {tool_name}",
                }
            )

        except MCPError as e:
            # Expected error - structured response, not exception
            log.warning(
                "tool_error",
                tool=tool_name,
                error_code=e.code.value,
                error=e.message,
                path=e.path,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 1),
            )
            return ToolResult(
                structured_content={
                    "error": e.to_response().to_dict(),
                    "summary": f"error: {e.code.value}",
                }
            )

        except Exception as e:
            log.error(
                "tool_internal_error",
                tool=tool_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            log.debug("tool_internal_error_traceback", tool=tool_name, exc_info=True)
            return ToolResult(
                structured_content={
                    "error": {
                        "code": "INTERNAL_ERROR",
                        "message": f"Error calling tool '{tool_name}': {e}",
                        "error_type": type(e).__name__,
                        "request_id": request_id,
                    },
                    "summary": f"error: internal error in {tool_name}",
                }
            )

        finally:
            clear_request_id()

    @staticmethod
    def _extract_log_params(kwargs: dict[str, Any]) -> dict[str, Any]:
        """Key params for tool_start, with long values truncated."""
        params: dict[str, Any] = {}
        for key, value in kwargs.items():
            if isinstance(value, str) and len(value) > 50:
                params[key] = value[:50] + "..."
            elif value is not None:
                params[key] = value
        return params

    @staticmethod
    def _extract_result_dict(result: Any) -> dict[str, Any] | None:
        """JSON dict from a ToolResult, CallToolResult or plain dict."""
        structured = getattr(result, "structured_content", None)
        if isinstance(structured, dict):
            return structured
        for content_item in getattr(result, "content", None) or []:
            text = getattr(content_item, "text", None)
            if text is None:
                continue
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                return data
        if isinstance(result, dict):
            return result
        return None

    def _format_tool_summary(self, result: Any) -> str:
        data = self._extract_result_dict(result)
        if data and data.get("summary"):
            return str(data["summary"])
        return ""
