"""``snippetvault preview LOCATION`` — what a request would receive."""

from __future__ import annotations

from datetime import datetime

import typer
from rich.panel import Panel
from rich.syntax import Syntax

from snippetvault.cli.commands.common import build_service, console
from snippetvault.core.service import UnknownLocationError


def preview_cmd(
    location: str = typer.Argument(..., help="Location name."),
    path: str = typer.Option("/", "--path", "-p", help="Request path."),
    front_page: bool = typer.Option(False, "--front-page", help="The request is the front page."),
    singular: bool = typer.Option(False, "--singular", help="The request is a singular content view."),
    content_type: str = typer.Option(None, "--type", help="Content type of the singular view."),
    object_id: int = typer.Option(None, "--id", help="Numeric ID of the singular view."),
    logged_in: bool = typer.Option(False, "--logged-in", help="The visitor is authenticated."),
    at: datetime = typer.Option(None, "--at", help="Evaluate at this local date/time instead of now."),
) -> None:
    """Evaluate stored rules against a simulated request and show the result."""
    service = build_service()
    context = service.context_for(
        path=path,
        is_front_page=front_page,
        is_singular=singular,
        content_type=content_type,
        object_id=object_id,
        is_authenticated=logged_in,
        at=at,
    )
    try:
        plan = service.select(location, context)
    except UnknownLocationError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"[dim]Evaluated at {context.now.isoformat()} for {path}[/dim]")
    if plan.is_empty:
        console.print(f"[dim]Nothing applies at {location}.[/dim]")
        return
    for url in plan.urls:
        console.print(f"[cyan]link[/cyan]  {url}")
    for f in plan.files:
        console.print(f"[cyan]file[/cyan]  {f.filename} [dim]({f.label})[/dim]")
    if plan.content is not None:
        console.print(Panel(Syntax(plan.content, "javascript"), title="inline content", border_style="green"))
