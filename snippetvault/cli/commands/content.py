"""``snippetvault content`` — inline content per location."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel
from rich.syntax import Syntax

from snippetvault.cli.commands.common import (
    build_service,
    cli_actor,
    console,
    history_table,
    read_input,
    report,
)
from snippetvault.core.rule_engine import describe_rule_set
from snippetvault.core.service import UnknownLocationError
from snippetvault.models.snapshot import PayloadKind

content_app = typer.Typer(help="Show, save, and restore inline content.", no_args_is_help=True)


@content_app.command("show")
def show_cmd(
    location: str = typer.Argument(..., help="Location name, e.g. head or footer."),
) -> None:
    """Show the stored content and its conditions."""
    service = build_service()
    try:
        result = service.get_content(location)
    except UnknownLocationError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)

    body = Syntax(result.content, "javascript") if result.content else "[dim](empty)[/dim]"
    console.print(Panel(body, title=f"[bold]{location}[/bold] · {result.byte_count:,} bytes", border_style="cyan"))
    console.print(describe_rule_set(result.rule_set))


@content_app.command("set")
def set_cmd(
    location: str = typer.Argument(..., help="Location name."),
    text: str = typer.Option(None, "--text", "-t", help="Content to save."),
    file: Path = typer.Option(None, "--file", "-f", help="Read content from a file ('-' for stdin)."),
    rules: str = typer.Option(
        None,
        "--rules",
        "-r",
        help='Rule set as JSON, e.g. \'{"logic": "and", "rules": [{"type": "front_page"}]}\'.',
    ),
) -> None:
    """Save content through the validation pipeline."""
    content = read_input(text, file)
    service = build_service()
    actor = cli_actor(service)
    result = service.set_content(
        actor, location, content, rules, token=service.location_token(location, actor)
    )
    suffix = f" as snapshot #{result.snapshot_id}" if result.snapshot_id else " (unchanged)"
    report(result, f"Saved {result.byte_count:,} bytes to {location}{suffix}.")


@content_app.command("history")
def history_cmd(
    location: str = typer.Argument(..., help="Location name."),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries to show."),
) -> None:
    """List content snapshots, newest first."""
    service = build_service()
    rows = service.history(PayloadKind.CONTENT, location, limit=limit)
    if not rows:
        console.print(f"[dim]No content history for {location}.[/dim]")
        return
    console.print(history_table(f"Content history · {location}", rows))


@content_app.command("rollback")
def rollback_cmd(
    snapshot_id: int = typer.Argument(..., help="Snapshot ID to restore."),
) -> None:
    """Restore content from a snapshot without re-validating it."""
    service = build_service()
    actor = cli_actor(service)
    result = service.rollback(actor, PayloadKind.CONTENT, snapshot_id, token=service.restore_token(actor))
    report(result, f"Restored content from snapshot #{snapshot_id}.")
