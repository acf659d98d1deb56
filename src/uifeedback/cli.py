"""uifeedback CLI - run the GUI feedback MCP server."""

import logging
import sys
from typing import Annotated, Optional

import anyio
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from uifeedback import __version__
from uifeedback.config import LOG_LEVEL

app = typer.Typer(
    name="uifeedback",
    help="Launch, observe and drive GUI apps over MCP.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"uifeedback {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Send logs to stderr; stdout carries the MCP stdio transport."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """uifeedback - screenshots, interactions and logs of GUI apps for AI agents."""


@app.command("serve")
def serve(
    log_level: Annotated[
        str, typer.Option("--log-level", "-l", help="DEBUG, INFO, WARNING or ERROR")
    ] = LOG_LEVEL,
) -> None:
    """Start the MCP server (stdio transport)."""
    from uifeedback.mcp.server import create_server

    configure_logging(log_level)
    logging.getLogger(__name__).info("uifeedback %s starting (stdio)", __version__)
    try:
        create_server().run("stdio")
    except KeyboardInterrupt:
        err_console.print("[dim]Interrupted.[/dim]")
        sys.exit(130)


@app.command("tools")
def tools() -> None:
    """List the tools the server exposes."""
    from uifeedback.mcp.server import create_server

    server = create_server()
    registered = anyio.run(server.list_tools)

    table = Table(title=f"uifeedback {__version__} tools")
    table.add_column("Tool", style="cyan")
    table.add_column("Description")
    for tool in registered:
        summary = (tool.description or "").strip().splitlines()
        table.add_row(tool.name, summary[0] if summary else "")

    console.print(table)
