"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (DOCPLANE__SECTION__KEY)
3. Explicit YAML file passed to load_config()
4. Global YAML (~/.config/docplane/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    DOCPLANE__<SECTION>__<KEY>=<VALUE>

Examples:
    DOCPLANE__LOGGING__LEVEL=DEBUG
    DOCPLANE__SERVER__PORT=8080
    DOCPLANE__INGEST__SKIP_STRIPPED=true
    DOCPLANE__QUERY__SNIPPET_CHARS=150
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from docplane.config.constants import (
    PORT_MAX,
    PORT_MIN,
    QUERY_MAX_RESULTS,
    SNIPPET_MAX_CHARS,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        DOCPLANE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every scored batch and may be noisy.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class ServerConfig(BaseModel):
    """Server configuration.

    Env vars:
        DOCPLANE__SERVER__HOST: Bind address (default: 127.0.0.1)
        DOCPLANE__SERVER__PORT: Port number (default: 3001)
        DOCPLANE__SERVER__STATE_DIR: Directory for PID/port files and extraction output
    """

    host: str = Field(
        default="127.0.0.1",
        description="Bind address. Use 0.0.0.0 for network access (security risk).",
    )
    port: int = Field(
        default=3001,
        description="Server port for both the MCP endpoint and the local command routes.",
    )
    state_dir: str = Field(
        default="~/.cache/docplane",
        description="Directory holding daemon PID/port files and generated documentation JSON.",
    )
    shutdown_timeout_sec: float = Field(
        default=5.0,
        description="Graceful shutdown timeout before force-exit.",
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not (PORT_MIN <= v <= PORT_MAX):
            raise ValueError(f"Port must be {PORT_MIN}-{PORT_MAX}, got {v}")
        return v

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).expanduser()


class EmbeddingConfig(BaseModel):
    """Embedding model configuration.

    Env vars:
        DOCPLANE__EMBEDDING__MODEL_NAME: fastembed model identifier
        DOCPLANE__EMBEDDING__EAGER_INIT: Load the model at server startup
    """

    model_name: str = Field(
        default="BAAI/bge-small-en-v1.5",
        description="fastembed TextEmbedding model. Changing it invalidates nothing on disk "
        "(the index is in-memory) but projects must be re-ingested to be comparable.",
    )
    threads: int | None = Field(
        default=None,
        description="ONNX Runtime threads. Default: half the CPU count.",
    )
    cache_dir: str | None = Field(
        default=None,
        description="fastembed model cache directory. Default: fastembed's own.",
    )
    batch_size: int = Field(
        default=256,
        ge=1,
        description="Texts handed to the model per forward pass.",
    )
    max_text_chars: int = Field(
        default=1500,
        ge=1,
        description="Texts longer than this are truncated (512-token context window).",
    )
    eager_init: bool = Field(
        default=True,
        description="Initialize the model when the server starts instead of on first use.",
    )


class IngestConfig(BaseModel):
    """Ingestion configuration.

    Env vars:
        DOCPLANE__INGEST__SKIP_STRIPPED: Drop items rustdoc marks as stripped
        DOCPLANE__INGEST__TOOLCHAIN: Rust toolchain used for JSON output
    """

    skip_stripped: bool = Field(
        default=False,
        description="Exclude items marked is_stripped. Off by default: skipping silently "
        "loses documented re-exports.",
    )
    toolchain: str = Field(
        default="nightly",
        description="Toolchain passed as cargo +<toolchain>. JSON output is unstable-only.",
    )
    document_private_items: bool = Field(
        default=True,
        description="Pass --document-private-items to rustdoc.",
    )
    extraction_timeout_sec: float = Field(
        default=600.0,
        gt=0,
        description="Kill cargo rustdoc after this many seconds.",
    )


class QueryConfig(BaseModel):
    """Query defaults.

    Env vars:
        DOCPLANE__QUERY__DEFAULT_NUM_RESULTS: Results when the caller passes none
        DOCPLANE__QUERY__SNIPPET_CHARS: Description snippet length
    """

    default_num_results: int = Field(
        default=5,
        description="Results returned when num_results is omitted.",
    )
    snippet_chars: int = Field(
        default=300,
        description="Description characters kept in each result.",
    )

    @field_validator("default_num_results")
    @classmethod
    def validate_num_results(cls, v: int) -> int:
        if not (1 <= v <= QUERY_MAX_RESULTS):
            raise ValueError(f"default_num_results must be 1-{QUERY_MAX_RESULTS}, got {v}")
        return v

    @field_validator("snippet_chars")
    @classmethod
    def validate_snippet_chars(cls, v: int) -> int:
        if not (1 <= v <= SNIPPET_MAX_CHARS):
            raise ValueError(f"snippet_chars must be 1-{SNIPPET_MAX_CHARS}, got {v}")
        return v


class DocPlaneConfig(BaseModel):
    """Root configuration for DocPlane."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
