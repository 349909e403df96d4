"""Core module exports."""

from docplane.core.errors import (
    ConfigError,
    DocPlaneError,
    EmbeddingFailure,
    EmbeddingInitFailure,
    EmbeddingUnavailable,
    ErrorCode,
    ExtractionError,
    InternalError,
    InvalidInput,
    ItemNotFound,
    ProjectNotFound,
    SchemaError,
)
from docplane.core.logging import (
    clear_request_id,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Errors
    "DocPlaneError",
    "ErrorCode",
    "ConfigError",
    "SchemaError",
    "ExtractionError",
    "EmbeddingUnavailable",
    "EmbeddingInitFailure",
    "EmbeddingFailure",
    "ProjectNotFound",
    "ItemNotFound",
    "InvalidInput",
    "InternalError",
    # Logging
    "clear_request_id",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
