"""DocPlane CLI - dpl command."""

from pathlib import Path

import click

from docplane.cli.docs import ingest_command, item_command, projects_command, query_command
from docplane.cli.down import down_command
from docplane.cli.status import status_command
from docplane.cli.up import up_command
from docplane.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="dpl")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML config file layered over ~/.config/docplane/config.yaml",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """DocPlane - semantic search over Rust crate documentation."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(up_command, name="up")
cli.add_command(down_command, name="down")
cli.add_command(status_command, name="status")
cli.add_command(ingest_command, name="ingest")
cli.add_command(query_command, name="query")
cli.add_command(projects_command, name="projects")
cli.add_command(item_command, name="item")


if __name__ == "__main__":
    cli()
