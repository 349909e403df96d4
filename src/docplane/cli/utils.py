"""CLI utilities: config resolution and daemon client."""

from __future__ import annotations

from typing import Any

import click
import httpx

from docplane.config.loader import load_config
from docplane.config.models import DocPlaneConfig
from docplane.core.errors import ConfigError
from docplane.core.logging import get_request_id
from docplane.daemon.lifecycle import is_server_running, read_server_info
from docplane.daemon.middleware import REQUEST_ID_HEADER


def get_config(ctx: click.Context) -> DocPlaneConfig:
    """Load config once per invocation, honoring ``dpl --config``."""
    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        try:
            obj["config"] = load_config(obj.get("config_path"))
        except ConfigError as e:
            raise click.ClickException(e.message) from e
    config: DocPlaneConfig = obj["config"]
    return config


def daemon_url(config: DocPlaneConfig) -> str:
    """Base URL of the running daemon.

    Raises:
        click.ClickException: If no daemon is running.
    """
    state_dir = config.server.state_path
    info = read_server_info(state_dir) if is_server_running(state_dir) else None
    if info is None:
        raise click.ClickException("DocPlane daemon is not running. Start it with 'dpl up'.")
    _, port = info
    host = config.server.host
    if host in ("0.0.0.0", "::"):
        host = "127.0.0.1"
    return f"http://{host}:{port}"


def call_daemon(
    config: DocPlaneConfig,
    method: str,
    path: str,
    *,
    timeout: float = 30.0,
    **kwargs: Any,
) -> dict[str, Any]:
    """Send one request to the daemon and return its JSON body.

    Error bodies (``{"error": ..., "message": ...}``) become ClickException.
    """
    headers = {}
    if rid := get_request_id():
        headers[REQUEST_ID_HEADER] = rid
    try:
        response = httpx.request(
            method,
            f"{daemon_url(config)}{path}",
            headers=headers,
            timeout=timeout,
            **kwargs,
        )
    except httpx.RequestError as e:
        raise click.ClickException(f"Cannot reach daemon: {e}") from e

    try:
        data = response.json()
    except ValueError as e:
        raise click.ClickException(
            f"Unexpected response from daemon (HTTP {response.status_code})"
        ) from e

    if response.is_error:
        message = data.get("message") if isinstance(data, dict) else None
        name = data.get("error") if isinstance(data, dict) else None
        prefix = f"{name}: " if name else ""
        raise click.ClickException(f"{prefix}{message or f'HTTP {response.status_code}'}")
    if not isinstance(data, dict):
        raise click.ClickException("Unexpected response from daemon")
    return data
