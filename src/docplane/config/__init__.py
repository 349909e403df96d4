"""Config module exports."""

from docplane.config.loader import load_config
from docplane.config.models import (
    DocPlaneConfig,
    EmbeddingConfig,
    IngestConfig,
    LoggingConfig,
    QueryConfig,
    ServerConfig,
)

__all__ = [
    "load_config",
    "DocPlaneConfig",
    "ServerConfig",
    "EmbeddingConfig",
    "IngestConfig",
    "QueryConfig",
    "LoggingConfig",
]
