"""Main CLI entry point."""

import importlib
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

import rich_click as click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from palmwire import __version__

console = Console()

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_HELPTEXT_FIRST = True
click.rich_click.STYLE_COMMANDS_TABLE_SHOW_LINES = False
click.rich_click.STYLE_COMMANDS_TABLE_HEADER = "bold magenta"
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running 'palmwire --help' for more information."

click.rich_click.STYLE_HEADER_TEXT = "bold green"
click.rich_click.STYLE_OPTION = "green"
click.rich_click.STYLE_SWITCH = "green"
click.rich_click.STYLE_METAVAR = "dim white"
click.rich_click.STYLE_USAGE_COMMAND = "green"
click.rich_click.STYLE_USAGE = "dim"


def import_app(app_str: str) -> Any:
    """Import application from string (e.g. 'main:app')."""
    if ":" not in app_str:
        raise click.BadParameter("App must be in format 'module:app'", param_hint="APP")

    module_name, app_name = app_str.split(":", 1)

    # Add current directory to path so we can import local modules
    sys.path.insert(0, os.getcwd())

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(
            f"Could not import module '{module_name}': {e}", param_hint="APP"
        )

    try:
        app = getattr(module, app_name)
    except AttributeError:
        raise click.BadParameter(
            f"Attribute '{app_name}' not found in module '{module_name}'",
            param_hint="APP",
        )

    return app


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


@click.group(
    help=f"""
[bold white on green] palmwire [/] [bold green]v{__version__}[/] Server-rendered components that hydrate.

[dim]APP should be a string in format 'module:instance', e.g. 'main:app'.[/dim]
"""
)
@click.version_option(__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    _configure_logging(verbose)


@cli.command()
@click.argument("app")
@click.argument("slug")
@click.option("--output", "-o", default=None, help="Write the page to a file")
def render(app: str, slug: str, output: Optional[str]) -> None:
    """Render a view to a full HTML page."""
    palm_app = import_app(app)

    try:
        html = palm_app.render_page(slug)
    except KeyError:
        raise click.BadParameter(f"View '{slug}' is not registered", param_hint="SLUG")

    if output:
        Path(output).write_text(html, "utf-8")
        console.print(f"✅ Wrote [cyan]{slug}[/] to {output}")
    else:
        click.echo(html)


@cli.command()
@click.argument("app")
def routes(app: str) -> None:
    """List registered views."""
    palm_app = import_app(app)

    table = Table(show_header=True, header_style="bold magenta", box=None)
    table.add_column("Path", style="cyan")
    table.add_column("Slug")
    table.add_column("Title", style="dim")
    for route in palm_app.views.values():
        table.add_row(route.path, route.slug, route.title or "")
    console.print(table)


@cli.command()
@click.argument("app")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, type=int, help="Port to bind to")
@click.option("--workers", default=None, type=int, help="Number of worker processes")
@click.option("--no-access-log", is_flag=True, help="Disable access logging")
def run(
    app: str,
    host: str,
    port: int,
    workers: Optional[int],
    no_access_log: bool,
) -> None:
    """Run the application using Uvicorn."""
    import uvicorn

    # Verify import, but pass the string so workers can re-import it
    import_app(app)

    console.print(f"🚀 Starting [cyan]{app}[/]")
    console.print(
        f"🌍 Listening on [link=http://{host}:{port}]http://{host}:{port}[/link]"
    )

    uvicorn.run(
        app,
        host=host,
        port=port,
        workers=workers,
        access_log=not no_access_log,
        factory=False,
    )


if __name__ == "__main__":
    cli()
