"""Main CLI entry point for Teamescrow.

This module provides the main Typer application with sub-commands for the
escrow background jobs and project read models.

Usage:
    teamescrow serve --port 8000
    teamescrow escrow release-sweep
    teamescrow escrow expire-invitations
    teamescrow project budget <project-id>
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from teamescrow.cli import escrow as escrow_cli
from teamescrow.cli import project as project_cli
from teamescrow.config import TeamescrowConfig, load_config
from teamescrow.database.connection import get_engine, get_session_factory
from teamescrow.engine.service import EscrowEngine
from teamescrow.logging import setup_logging

app = typer.Typer(
    name="teamescrow",
    help="Teamescrow: team project escrow and budget allocation",
    no_args_is_help=True,
)

app.add_typer(escrow_cli.app, name="escrow", help="Run escrow background jobs once")
app.add_typer(project_cli.app, name="project", help="Inspect projects")

console = Console()


class AppContext:
    """Application context shared across CLI commands.

    Attributes:
        config: Loaded Teamescrow configuration
        engine: Async SQLAlchemy engine
        session_factory: Factory for creating database sessions
        escrow: Escrow engine wired to the session factory
    """

    def __init__(self, config: TeamescrowConfig):
        self.config = config
        self.engine = get_engine(config.database)
        self.session_factory = get_session_factory(self.engine)
        self.escrow = EscrowEngine.build(self.session_factory, config)

    async def close(self) -> None:
        """Stop the engine's jobs and dispose of the connection pool."""
        await self.escrow.stop()
        await self.engine.dispose()


_app_context: AppContext | None = None


def get_app_context() -> AppContext:
    """Get the shared application context.

    Raises:
        RuntimeError: If context has not been initialized
    """
    if _app_context is None:
        raise RuntimeError("Application context not initialized. Call initialize_context first.")
    return _app_context


def initialize_context(config: TeamescrowConfig) -> AppContext:
    """Initialize the global application context."""
    global _app_context
    _app_context = AppContext(config)
    return _app_context


@app.command()
def serve(
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Host to bind to (default: web.host)"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port to bind to (default: web.port)"),
    ] = None,
) -> None:
    """Start the Teamescrow web API with its background jobs."""
    import uvicorn

    from teamescrow.web.app import create_app

    config = get_app_context().config
    bind_host = host or config.web.host
    bind_port = port or config.web.port

    console.print("[bold cyan]Starting Teamescrow Web Server[/bold cyan]")
    console.print(f"[dim]Host:[/dim] {bind_host}")
    console.print(f"[dim]Port:[/dim] {bind_port}")
    console.print()

    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_level="info")


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Load configuration, set up logging and initialize the application context."""
    try:
        config = load_config(config_path)
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1)

    if verbose:
        config.logging.level = "DEBUG"
    setup_logging(config.logging)

    try:
        initialize_context(config)
    except Exception as e:
        console.print(f"[red]Error initializing application:[/red] {e}")
        raise typer.Exit(code=1)

    if verbose:
        console.print("[dim]Debug logging enabled[/dim]")


if __name__ == "__main__":
    app()
