"""dpl down command - stop the DocPlane daemon."""

from __future__ import annotations

import time

import click

from docplane.cli.utils import get_config
from docplane.daemon.lifecycle import is_server_running, read_server_info, stop_daemon


@click.command()
@click.pass_context
def down_command(ctx: click.Context) -> None:
    """Stop the DocPlane daemon."""
    state_dir = get_config(ctx).server.state_path

    info = read_server_info(state_dir)
    if info is None or not is_server_running(state_dir):
        click.echo("Daemon is not running.")
        return

    pid, port = info
    click.echo(f"Stopping daemon (PID {pid}, port {port})...")

    if not stop_daemon(state_dir):
        click.echo("Failed to send stop signal.", err=True)
        raise SystemExit(1)

    # Wait for process to exit (up to 5 seconds)
    for _ in range(50):
        if not is_server_running(state_dir):
            click.echo("Daemon stopped.")
            return
        time.sleep(0.1)

    click.echo("Daemon did not stop within 5 seconds.", err=True)
    raise SystemExit(1)
