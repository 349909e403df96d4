"""Structured error system for MCP tools.

Domain errors (DocPlaneError) are translated into MCPError with a
machine-readable code and a remediation hint, so agents can tell
"fix your input" apart from "try again later" and "server misconfigured".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from fastmcp.exceptions import ToolError

from docplane.core.errors import DocPlaneError, ErrorCode


class MCPErrorCode(StrEnum):
    """Machine-readable error codes for MCP tool failures."""

    # Validation errors - agent should fix input
    INVALID_PARAMS = "INVALID_PARAMS"
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"

    # Ingestion errors
    SCHEMA_ERROR = "SCHEMA_ERROR"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"

    # Embedding errors
    EMBEDDING_UNAVAILABLE = "EMBEDDING_UNAVAILABLE"
    EMBEDDING_INIT_FAILED = "EMBEDDING_INIT_FAILED"
    EMBEDDING_FAILED = "EMBEDDING_FAILED"

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class ErrorResponse:
    """Structured error response for MCP tools."""

    code: MCPErrorCode
    message: str
    remediation: str
    path: str | None = None
    retryable: bool = False
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "remediation": self.remediation,
            "path": self.path,
            "retryable": self.retryable,
            "context": self.context,
        }


class MCPError(ToolError):
    """Base exception for MCP tool errors with structured response.

    Extends FastMCP's ToolError so FastMCP passes it through unchanged
    instead of wrapping it in a generic ToolError; ToolMiddleware then
    turns it into a structured error payload.
    """

    def __init__(
        self,
        code: MCPErrorCode,
        message: str,
        remediation: str,
        path: str | None = None,
        retryable: bool = False,
        **context: Any,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.remediation = remediation
        self.path = path
        self.retryable = retryable
        self.context = context

    @classmethod
    def from_domain(cls, err: DocPlaneError) -> MCPError:
        """Translate a DocPlaneError into the MCP error surface."""
        code = _DOMAIN_CODES.get(err.code, MCPErrorCode.INTERNAL_ERROR)
        details = {k: v for k, v in err.details.items() if k not in _RESERVED_KEYS}
        path = next(
            (err.details[k] for k in ("project_path", "project", "path") if err.details.get(k)),
            None,
        )
        return cls(
            code=code,
            message=err.message,
            remediation=_REMEDIATION[code],
            path=path,
            retryable=err.retryable,
            **details,
        )

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            code=self.code,
            message=self.message,
            remediation=self.remediation,
            path=self.path,
            retryable=self.retryable,
            context=self.context,
        )


_RESERVED_KEYS = frozenset(
    {"code", "message", "remediation", "path", "retryable", "project_path", "project"}
)

_DOMAIN_CODES: dict[ErrorCode, MCPErrorCode] = {
    ErrorCode.INVALID_INPUT: MCPErrorCode.INVALID_PARAMS,
    ErrorCode.PROJECT_NOT_FOUND: MCPErrorCode.PROJECT_NOT_FOUND,
    ErrorCode.ITEM_NOT_FOUND: MCPErrorCode.ITEM_NOT_FOUND,
    ErrorCode.SCHEMA_MISSING_SECTION: MCPErrorCode.SCHEMA_ERROR,
    ErrorCode.SCHEMA_MALFORMED: MCPErrorCode.SCHEMA_ERROR,
    ErrorCode.EXTRACTION_FAILED: MCPErrorCode.EXTRACTION_FAILED,
    ErrorCode.EXTRACTION_OUTPUT_MISSING: MCPErrorCode.EXTRACTION_FAILED,
    ErrorCode.EMBEDDING_UNAVAILABLE: MCPErrorCode.EMBEDDING_UNAVAILABLE,
    ErrorCode.EMBEDDING_INIT_FAILED: MCPErrorCode.EMBEDDING_INIT_FAILED,
    ErrorCode.EMBEDDING_FAILED: MCPErrorCode.EMBEDDING_FAILED,
}

_REMEDIATION: dict[MCPErrorCode, str] = {
    MCPErrorCode.INVALID_PARAMS: "Check the parameter values against the tool schema and retry.",
    MCPErrorCode.PROJECT_NOT_FOUND: "Call list_projects for known projects, or process_rust_project first.",
    MCPErrorCode.ITEM_NOT_FOUND: "Use query_documentation to find the exact item_full_path.",
    MCPErrorCode.SCHEMA_ERROR: "The rustdoc JSON is incompatible; regenerate it with a current nightly.",
    MCPErrorCode.EXTRACTION_FAILED: "Check that the project builds with cargo +nightly rustdoc.",
    MCPErrorCode.EMBEDDING_UNAVAILABLE: "The embedding model is still loading. Retry shortly.",
    MCPErrorCode.EMBEDDING_INIT_FAILED: "The embedding model failed to load; fix the model config and restart.",
    MCPErrorCode.EMBEDDING_FAILED: "Retry the request; if it persists, check the server log.",
    MCPErrorCode.INTERNAL_ERROR: "Retry; if the error persists it is a server-side issue.",
}


# =============================================================================
# Error Catalog for Introspection
# =============================================================================


@dataclass
class ErrorDocumentation:
    """Documentation for an error code."""

    code: MCPErrorCode
    category: str  # validation, ingest, embedding, system
    description: str
    causes: list[str]
    remediation: list[str]


ERROR_CATALOG: dict[str, ErrorDocumentation] = {
    MCPErrorCode.INVALID_PARAMS.value: ErrorDocumentation(
        code=MCPErrorCode.INVALID_PARAMS,
        category="validation",
        description="A parameter value was rejected.",
        causes=[
            "Project path does not exist or is not a directory",
            "Empty query text",
            "num_results outside 1-100",
        ],
        remediation=[
            "Pass an absolute path to a Cargo project directory",
            "Keep num_results within the documented bounds",
        ],
    ),
    MCPErrorCode.PROJECT_NOT_FOUND.value: ErrorDocumentation(
        code=MCPErrorCode.PROJECT_NOT_FOUND,
        category="validation",
        description="The project has not been processed in this server process.",
        causes=[
            "Project path spelled differently than when it was processed",
            "Server restarted since processing (the index is in-memory)",
        ],
        remediation=[
            "Call list_projects and use an identifier exactly as listed",
            "Call process_rust_project again after a restart",
        ],
    ),
    MCPErrorCode.ITEM_NOT_FOUND.value: ErrorDocumentation(
        code=MCPErrorCode.ITEM_NOT_FOUND,
        category="validation",
        description="No item with that full path exists in the project.",
        causes=["Partial path instead of the full crate::module::name path"],
        remediation=["Copy item_full_path from a query_documentation result"],
    ),
    MCPErrorCode.SCHEMA_ERROR.value: ErrorDocumentation(
        code=MCPErrorCode.SCHEMA_ERROR,
        category="ingest",
        description="The documentation JSON is missing required sections or is malformed.",
        causes=[
            "rustdoc JSON format changed incompatibly",
            "File is not rustdoc JSON output",
        ],
        remediation=["Regenerate with cargo +nightly rustdoc --output-format json"],
    ),
    MCPErrorCode.EXTRACTION_FAILED.value: ErrorDocumentation(
        code=MCPErrorCode.EXTRACTION_FAILED,
        category="ingest",
        description="cargo rustdoc failed or produced no output.",
        causes=[
            "No Cargo.toml or no library target",
            "Nightly toolchain not installed",
            "Compilation errors in the crate",
        ],
        remediation=[
            "Run rustup toolchain install nightly",
            "Read stderr in the error context and fix the build",
        ],
    ),
    MCPErrorCode.EMBEDDING_UNAVAILABLE.value: ErrorDocumentation(
        code=MCPErrorCode.EMBEDDING_UNAVAILABLE,
        category="embedding",
        description="The embedding model has not finished initializing.",
        causes=[
            "Server just started and the model is still loading",
            "Another request triggered the first model load",
        ],
        remediation=["Retry after a short delay"],
    ),
    MCPErrorCode.EMBEDDING_INIT_FAILED.value: ErrorDocumentation(
        code=MCPErrorCode.EMBEDDING_INIT_FAILED,
        category="embedding",
        description="The embedding model could not be loaded. Retrying will not help.",
        causes=[
            "Unknown model name",
            "Model download failed (no network, bad cache_dir)",
        ],
        remediation=[
            "Fix embedding.model_name or embedding.cache_dir",
            "Restart the server",
        ],
    ),
    MCPErrorCode.EMBEDDING_FAILED.value: ErrorDocumentation(
        code=MCPErrorCode.EMBEDDING_FAILED,
        category="embedding",
        description="The model raised while embedding the text.",
        causes=["Runtime failure inside the ONNX session"],
        remediation=["Retry the request", "Check the server log for the underlying error"],
    ),
    MCPErrorCode.INTERNAL_ERROR.value: ErrorDocumentation(
        code=MCPErrorCode.INTERNAL_ERROR,
        category="system",
        description="An unexpected server-side error.",
        causes=["A bug"],
        remediation=["Retry", "Report the error with the server log attached"],
    ),
}


def get_error_documentation(code: str) -> ErrorDocumentation | None:
    """Get documentation for an error code."""
    return ERROR_CATALOG.get(code)
