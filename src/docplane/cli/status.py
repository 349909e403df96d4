"""dpl status command - show daemon status."""

import json

import click
import httpx

from docplane.cli.utils import get_config
from docplane.daemon.lifecycle import is_server_running, read_server_info


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status_command(ctx: click.Context, as_json: bool) -> None:
    """Show DocPlane daemon status."""
    config = get_config(ctx)
    state_dir = config.server.state_path

    info = read_server_info(state_dir) if is_server_running(state_dir) else None
    if info is None:
        if as_json:
            click.echo(json.dumps({"running": False}))
        else:
            click.echo("Daemon: not running")
        return

    pid, port = info

    try:
        response = httpx.get(f"http://127.0.0.1:{port}/status", timeout=5.0)
        status_data = response.json()
    except (httpx.RequestError, json.JSONDecodeError) as e:
        if as_json:
            click.echo(json.dumps({"running": True, "pid": pid, "port": port, "error": str(e)}))
        else:
            click.echo(f"Daemon: running (PID {pid}, port {port})")
            click.echo(f"Status: unavailable ({e})")
        return

    if as_json:
        click.echo(json.dumps({"running": True, "pid": pid, "port": port, **status_data}))
        return

    click.echo(f"Daemon: running (PID {pid}, port {port})")

    embedding = status_data.get("embedding", {})
    click.echo(f"Embedding: {embedding.get('state', 'unknown')} ({embedding.get('model', '?')})")
    if embedding.get("error"):
        click.echo(f"  Error: {embedding['error']}")

    index = status_data.get("index", {})
    click.echo(
        f"Index: {index.get('projects', 0)} projects, "
        f"{index.get('items', 0)} items, {index.get('embedded', 0)} embedded"
    )
