"""dpl up command - start the server in the foreground."""

import asyncio
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version

import click

from docplane.cli.utils import get_config
from docplane.core.progress import get_console


def _version() -> str:
    try:
        return version("docplane")
    except PackageNotFoundError:
        return "dev"


def _print_banner(host: str, port: int, model: str) -> None:
    """Print startup banner with endpoints."""
    console = get_console()
    banner_width = 64
    rule_line = "─" * banner_width
    base_url = f"http://{host}:{port}"

    console.print()
    console.print(rule_line, style="dim cyan", highlight=False)
    console.print(
        f"DocPlane v{_version()} · Ready".center(banner_width), style="bold cyan", highlight=False
    )
    console.print(rule_line, style="dim cyan", highlight=False)
    console.print()

    console.print(f"  MCP Endpoint:    {base_url}/mcp", style="green", highlight=False)
    console.print(f"  Health Check:    {base_url}/health", highlight=False)
    console.print(f"  Status:          {base_url}/status", highlight=False)
    console.print(f"  Model:           {model}", style="dim", highlight=False)
    console.print()


@click.command()
@click.option("--port", "-p", type=int, help="Override server port")
@click.option("--host", type=str, help="Override bind address")
@click.pass_context
def up_command(ctx: click.Context, port: int | None, host: str | None) -> None:
    """Start the DocPlane server. Runs in foreground.

    If already running, reports the existing instance.
    """
    from docplane.config.models import LoggingConfig, LogOutputConfig
    from docplane.core.logging import configure_logging
    from docplane.daemon.lifecycle import is_server_running, read_server_info, run_server

    config = get_config(ctx)
    if port is not None:
        config.server.port = port
    if host is not None:
        config.server.host = host

    state_dir = config.server.state_path
    if is_server_running(state_dir):
        info = read_server_info(state_dir)
        if info:
            pid, server_port = info
            click.echo(f"Already running (PID {pid}, port {server_port})")
            return

    # Console at the configured level, full DEBUG to a per-run file
    log_file = state_dir / "logs" / f"{datetime.now().strftime('%Y-%m-%d-%H%M%S')}.log"
    console_level = "DEBUG" if ctx.obj.get("verbose") else config.logging.level
    configure_logging(
        config=LoggingConfig(
            level="DEBUG",
            outputs=[
                LogOutputConfig(destination="stderr", format="console", level=console_level),
                LogOutputConfig(destination=str(log_file), format="json", level="DEBUG"),
            ],
        ),
    )

    _print_banner(config.server.host, config.server.port, config.embedding.model_name)

    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        click.echo("\nStopped")
