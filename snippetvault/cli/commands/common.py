"""Helpers shared by the command modules: service wiring and Rich output."""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from snippetvault.config import VaultConfig
from snippetvault.core.service import VaultService
from snippetvault.models.context import Actor
from snippetvault.models.outcomes import OutcomeBase
from snippetvault.models.snapshot import HistoryRow

console = Console()


def build_service() -> VaultService:
    """Construct the service from the current environment."""
    return VaultService(VaultConfig())


def cli_actor(service: VaultService) -> Actor:
    """The local operator, holding the configured capability."""
    name = service.config.cli_actor
    return Actor(id=name, display_name=name, capabilities=[service.config.required_capability])


def read_input(text: str | None, path: Path | None) -> str:
    """Return literal *text*, the contents of *path*, or stdin for ``-``."""
    if text is not None and path is not None:
        console.print("[bold red]Use either --text or --file, not both.[/bold red]")
        raise typer.Exit(code=2)
    if text is not None:
        return text
    if path is None:
        console.print("[bold red]Nothing to save:[/bold red] pass --text or --file.")
        raise typer.Exit(code=2)
    if str(path) == "-":
        return sys.stdin.read()
    if not path.exists():
        console.print(f"[bold red]File not found:[/bold red] {path}")
        raise typer.Exit(code=1)
    return path.read_text(encoding="utf-8")


def report(result: OutcomeBase, success: str) -> None:
    """Print notices, then the success line or the rejection (exit 1)."""
    for notice in result.notices:
        console.print(f"[yellow]![/yellow] {notice.message} [dim]({notice.code.value})[/dim]")
    if result.accepted:
        console.print(f"[bold green]{success}[/bold green]")
        return
    rejection = result.rejection
    console.print(f"[bold red]Rejected:[/bold red] {rejection.message} [dim]({rejection.reason.value})[/dim]")
    raise typer.Exit(code=1)


def history_table(title: str, rows: list[HistoryRow]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Action")
    table.add_column("When (UTC)")
    table.add_column("Actor")
    table.add_column("Size", justify="right")
    table.add_column("Summary", style="dim")
    for row in rows:
        table.add_row(
            str(row.id),
            row.action.value,
            row.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            row.actor,
            "" if row.size_or_count is None else str(row.size_or_count),
            row.summary,
        )
    return table
