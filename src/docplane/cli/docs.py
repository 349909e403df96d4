"""dpl ingest / query / projects / item - client commands for a running daemon."""

from __future__ import annotations

import json
from pathlib import Path

import click

from docplane.cli.utils import call_daemon, get_config
from docplane.core.progress import get_console, make_results_table, pluralize, spinner, status


@click.command()
@click.argument(
    "path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True, path_type=Path),
)
@click.option(
    "--from-json",
    "json_path",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True, path_type=Path),
    help="Use a pre-generated rustdoc JSON file instead of running cargo",
)
@click.pass_context
def ingest_command(ctx: click.Context, path: Path, json_path: Path | None) -> None:
    """Generate, embed and index documentation for the Rust project at PATH."""
    config = get_config(ctx)
    body: dict[str, str] = {"path": str(path)}
    if json_path is not None:
        body["json_path"] = str(json_path)

    with spinner(f"Processing {path.name}"):
        data = call_daemon(
            config,
            "POST",
            "/api/ingest",
            json=body,
            timeout=config.ingest.extraction_timeout_sec + 120,
        )

    status(data.get("message", "done"), style="success")
    if data.get("embedding_error"):
        status(f"Embedding failed: {data['embedding_error']}", style="warning", indent=2)


@click.command()
@click.argument("text")
@click.option("-p", "--project", "project_path", help="Restrict to one project identifier")
@click.option("-n", "--num-results", type=int, help="Maximum results (default 5)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def query_command(
    ctx: click.Context,
    text: str,
    project_path: str | None,
    num_results: int | None,
    as_json: bool,
) -> None:
    """Semantic search for TEXT across processed projects."""
    config = get_config(ctx)
    body: dict[str, object] = {"query": text}
    if project_path is not None:
        body["project_path"] = project_path
    if num_results is not None:
        body["num_results"] = num_results

    data = call_daemon(config, "POST", "/api/query", json=body)
    results = data.get("results", [])

    if as_json:
        click.echo(json.dumps(results, indent=2))
        return
    if not results:
        status("No results", style="warning")
        return
    get_console().print(make_results_table(results))


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def projects_command(ctx: click.Context, as_json: bool) -> None:
    """List processed projects."""
    data = call_daemon(get_config(ctx), "GET", "/api/projects")
    projects = data.get("projects", [])

    if as_json:
        click.echo(json.dumps(projects))
        return
    if not projects:
        click.echo("No projects processed yet. Run 'dpl ingest PATH'.")
        return
    click.echo(pluralize(len(projects), "project") + ":")
    for project in projects:
        click.echo(f"  {project}")


@click.command()
@click.argument("project_path")
@click.argument("item_path")
@click.pass_context
def item_command(ctx: click.Context, project_path: str, item_path: str) -> None:
    """Show the full documentation record for ITEM_PATH in PROJECT_PATH."""
    data = call_daemon(
        get_config(ctx),
        "GET",
        "/api/item",
        params={"project_path": project_path, "item_path": item_path},
    )
    item = data.get("item", {})
    click.echo(f"{item.get('full_path')} ({item.get('raw_kind') or item.get('item_kind')})")
    description = item.get("description")
    if description:
        click.echo()
        click.echo(description)
