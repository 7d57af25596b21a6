"""Project read-model CLI commands."""

from __future__ import annotations

import asyncio
import json
from typing import Annotated, Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from teamescrow.database.models.project import ProjectStatus

app = typer.Typer(help="Project commands")
console = Console()

STATUS_COLORS = {
    "not_started": "dim",
    "started": "white",
    "team_selection": "cyan",
    "work_started": "green",
    "on_hold": "yellow",
    "completed": "blue",
    "cancelled": "red",
}


@app.command("list")
def list_projects(
    status: Annotated[
        Optional[str],
        typer.Option("--status", "-s", help="Filter by status"),
    ] = None,
    client_id: Annotated[
        Optional[str],
        typer.Option("--client", help="Filter by client id"),
    ] = None,
) -> None:
    """List projects with their budgets."""
    from teamescrow.main import get_app_context

    ctx = get_app_context()

    status_filter = None
    if status is not None:
        try:
            status_filter = ProjectStatus(status)
        except ValueError:
            valid = ", ".join(s.value for s in ProjectStatus)
            console.print(f"[red]Invalid status:[/red] {status}. Valid values: {valid}")
            raise typer.Exit(code=1)

    async def _list():
        try:
            return await ctx.escrow.projects.list_projects(
                UUID(client_id) if client_id else None, status_filter
            )
        finally:
            await ctx.close()

    try:
        projects = asyncio.run(_list())
    except Exception as e:
        console.print(f"[red]Error listing projects:[/red] {e}")
        raise typer.Exit(code=1)

    if not projects:
        console.print("[yellow]No projects found[/yellow]")
        return

    table = Table(title="Projects")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="bold")
    table.add_column("Status")
    table.add_column("Budget", justify="right")
    table.add_column("Team", justify="right")

    for p in projects:
        color = STATUS_COLORS.get(p.status.value, "white")
        table.add_row(
            str(p.id),
            p.title,
            f"[{color}]{p.status.value}[/{color}]",
            str(p.budget),
            f"{len(p.members)}/{p.team_size}",
        )

    console.print(table)


@app.command()
def budget(
    project_id: Annotated[str, typer.Argument(help="Project UUID")],
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (table or json)"),
    ] = "table",
) -> None:
    """Show a project's budget, committed and remaining amounts."""
    from teamescrow.main import get_app_context

    ctx = get_app_context()

    try:
        pid = UUID(project_id)
    except ValueError:
        console.print(f"[red]Invalid project id:[/red] {project_id}")
        raise typer.Exit(code=1)

    async def _summary():
        try:
            return await ctx.escrow.projects.budget_summary(pid)
        finally:
            await ctx.close()

    try:
        summary = asyncio.run(_summary())
    except Exception as e:
        console.print(f"[red]Error loading budget:[/red] {e}")
        raise typer.Exit(code=1)

    if format == "json":
        console.print(json.dumps(summary.model_dump(mode="json"), indent=2))
        return

    totals = Table(title=f"Budget for {summary.project_id}")
    totals.add_column("Budget", justify="right")
    totals.add_column("Tasks", justify="right")
    totals.add_column("Payouts", justify="right")
    totals.add_column("Committed", justify="right")
    totals.add_column("Remaining", justify="right", style="green")
    totals.add_row(
        str(summary.budget),
        str(summary.committed_tasks),
        str(summary.committed_payouts),
        str(summary.committed),
        str(summary.remaining),
    )
    console.print(totals)

    if summary.members:
        members = Table(title="Member Earnings")
        members.add_column("Freelancer", style="cyan", no_wrap=True)
        members.add_column("Role")
        members.add_column("Approved", justify="right")
        members.add_column("Paid Out", justify="right")
        members.add_column("Available", justify="right", style="green")
        for m in summary.members:
            members.add_row(
                str(m.freelancer_id), m.role, str(m.approved), str(m.paid_out), str(m.available)
            )
        console.print(members)
