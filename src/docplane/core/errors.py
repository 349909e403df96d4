"""DocPlane error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Schema / extraction
- 4xxx: Embedding
- 5xxx: Project / input
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Schema / extraction (3xxx)
    SCHEMA_MISSING_SECTION = 3001
    SCHEMA_MALFORMED = 3002
    EXTRACTION_FAILED = 3101
    EXTRACTION_OUTPUT_MISSING = 3102

    # Embedding (4xxx)
    EMBEDDING_UNAVAILABLE = 4001
    EMBEDDING_INIT_FAILED = 4002
    EMBEDDING_FAILED = 4003

    # Project / input (5xxx)
    PROJECT_NOT_FOUND = 5001
    ITEM_NOT_FOUND = 5002
    INVALID_INPUT = 5003

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class DocPlaneError(Exception):
    """Base error with structured context for MCP and HTTP responses."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'SCHEMA_MALFORMED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON/MCP responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(DocPlaneError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class SchemaError(DocPlaneError):
    """The raw documentation tree is missing sections or malformed."""

    @classmethod
    def missing_section(cls, section: str, project: str | None = None) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_MISSING_SECTION,
            message=f"Missing '{section}' in documentation tree",
            details={"section": section, "project": project, "stage": "normalize"},
        )

    @classmethod
    def malformed(cls, reason: str, project: str | None = None) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_MALFORMED,
            message=f"Malformed documentation tree: {reason}",
            details={"reason": reason, "project": project, "stage": "normalize"},
        )


class ExtractionError(DocPlaneError):
    """The documentation extraction toolchain failed for a project."""

    @classmethod
    def failed(cls, project: str, reason: str, **details: Any) -> "ExtractionError":
        return cls(
            code=ErrorCode.EXTRACTION_FAILED,
            message=f"Failed to generate documentation for {project}: {reason}",
            details={"project": project, "stage": "extract", **details},
        )

    @classmethod
    def output_missing(cls, project: str, expected: str, found: list[str]) -> "ExtractionError":
        return cls(
            code=ErrorCode.EXTRACTION_OUTPUT_MISSING,
            message=f"Documentation output not found at expected path: {expected}",
            details={"project": project, "stage": "extract", "expected": expected, "found": found},
        )


class EmbeddingUnavailable(DocPlaneError):
    """The embedding provider has not finished initializing. Try again later."""

    @classmethod
    def not_ready(cls, state: str) -> "EmbeddingUnavailable":
        return cls(
            code=ErrorCode.EMBEDDING_UNAVAILABLE,
            message=f"Embedder not ready (state: {state})",
            retryable=True,
            details={"state": state},
        )


class EmbeddingInitFailure(DocPlaneError):
    """Embedding provider initialization was attempted and failed."""

    @classmethod
    def from_exception(cls, model: str, exc: BaseException) -> "EmbeddingInitFailure":
        return cls(
            code=ErrorCode.EMBEDDING_INIT_FAILED,
            message=f"Failed to initialize embedding model {model}: {exc}",
            retryable=False,
            details={"model": model, "reason": str(exc)},
        )


class EmbeddingFailure(DocPlaneError):
    """A single embed call failed."""

    @classmethod
    def batch(cls, count: int, reason: str) -> "EmbeddingFailure":
        return cls(
            code=ErrorCode.EMBEDDING_FAILED,
            message=f"Failed to embed batch of {count} texts: {reason}",
            details={"count": count, "reason": reason},
        )


class ProjectNotFound(DocPlaneError):
    """A project identifier is not present in the index store."""

    @classmethod
    def for_path(cls, project_path: str) -> "ProjectNotFound":
        return cls(
            code=ErrorCode.PROJECT_NOT_FOUND,
            message=f"Project '{project_path}' has not been processed or was not found.",
            details={"project_path": project_path},
        )


class ItemNotFound(DocPlaneError):
    """An item path is not present in a project's catalog."""

    @classmethod
    def for_path(cls, project_path: str, item_path: str) -> "ItemNotFound":
        return cls(
            code=ErrorCode.ITEM_NOT_FOUND,
            message=f"Item '{item_path}' not found in project '{project_path}'",
            details={"project_path": project_path, "item_path": item_path},
        )


class InvalidInput(DocPlaneError):
    """Caller-supplied input was rejected."""

    @classmethod
    def not_a_directory(cls, path: str) -> "InvalidInput":
        return cls(
            code=ErrorCode.INVALID_INPUT,
            message=f"Project path does not exist or is not a directory: {path}",
            details={"path": path},
        )

    @classmethod
    def bad_value(cls, field: str, value: Any, reason: str) -> "InvalidInput":
        return cls(
            code=ErrorCode.INVALID_INPUT,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class InternalError(DocPlaneError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
