"""Escrow job CLI commands.

Each command runs one pass of a background job that the web server
otherwise runs on a timer, which is useful from cron or after downtime.
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(help="Escrow background jobs")
console = Console()


def _print_counts(title: str, counts: dict[str, int]) -> None:
    table = Table(title=title)
    table.add_column("Outcome", style="bold")
    table.add_column("Count", justify="right", style="cyan")
    for name, value in counts.items():
        table.add_row(name, str(value))
    console.print(table)


@app.command("release-sweep")
def release_sweep() -> None:
    """Release every locked payout older than the release delay."""
    from teamescrow.main import get_app_context

    ctx = get_app_context()

    async def _sweep():
        try:
            return await ctx.escrow.scheduler.sweep()
        finally:
            await ctx.close()

    try:
        result = asyncio.run(_sweep())
    except Exception as e:
        console.print(f"[red]Release sweep failed:[/red] {e}")
        raise typer.Exit(code=1)

    _print_counts("Release Sweep", result.model_dump())
    if result.failed:
        raise typer.Exit(code=1)


@app.command("expire-invitations")
def expire_invitations() -> None:
    """Expire unanswered invitations and re-run recruitment."""
    from teamescrow.main import get_app_context

    ctx = get_app_context()

    async def _expire():
        try:
            return await ctx.escrow.expiry.expire()
        finally:
            await ctx.close()

    try:
        result = asyncio.run(_expire())
    except Exception as e:
        console.print(f"[red]Invitation expiry failed:[/red] {e}")
        raise typer.Exit(code=1)

    _print_counts("Invitation Expiry", result.model_dump())
    if result.failed:
        raise typer.Exit(code=1)
