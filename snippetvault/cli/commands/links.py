"""``snippetvault links`` — linked external references per location."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.table import Table

from snippetvault.cli.commands.common import (
    build_service,
    cli_actor,
    console,
    history_table,
    read_input,
    report,
)
from snippetvault.core.rule_engine import describe_rule_set
from snippetvault.core.service import UnknownLocationError, VaultService
from snippetvault.models.location import LinkedItem
from snippetvault.models.snapshot import PayloadKind

links_app = typer.Typer(help="Show, edit, and restore linked URLs.", no_args_is_help=True)


def _current(service: VaultService, location: str) -> list[LinkedItem]:
    try:
        return service.get_linked_items(location)
    except UnknownLocationError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)


def _save(service: VaultService, location: str, items: object) -> None:
    actor = cli_actor(service)
    result = service.set_linked_items(
        actor, location, items, token=service.location_token(location, actor)
    )
    report(result, f"{location} now has {result.count} linked item(s).")


@links_app.command("show")
def show_cmd(
    location: str = typer.Argument(..., help="Location name."),
) -> None:
    """List linked items in emission order."""
    service = build_service()
    items = _current(service, location)
    if not items:
        console.print(f"[dim]No linked items at {location}.[/dim]")
        return
    table = Table(title=f"Linked items · {location}")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("URL")
    table.add_column("Conditions", style="dim")
    for index, item in enumerate(items, start=1):
        table.add_row(str(index), item.url, describe_rule_set(item.rule_set))
    console.print(table)


@links_app.command("set")
def set_cmd(
    location: str = typer.Argument(..., help="Location name."),
    text: str = typer.Option(None, "--json", "-j", help="JSON list of URLs or {url, rule_set} objects."),
    file: Path = typer.Option(None, "--file", "-f", help="Read the JSON list from a file ('-' for stdin)."),
) -> None:
    """Replace the whole list."""
    raw = read_input(text, file)
    _save(build_service(), location, raw)


@links_app.command("add")
def add_cmd(
    location: str = typer.Argument(..., help="Location name."),
    url: str = typer.Argument(..., help="Absolute http(s) URL."),
    rules: str = typer.Option(None, "--rules", "-r", help="Rule set as JSON."),
) -> None:
    """Append one URL to the list."""
    service = build_service()
    items = [item.model_dump(mode="json") for item in _current(service, location)]
    entry: dict[str, object] = {"url": url}
    if rules:
        entry["rule_set"] = rules
    items.append(entry)
    _save(service, location, items)


@links_app.command("remove")
def remove_cmd(
    location: str = typer.Argument(..., help="Location name."),
    url: str = typer.Argument(..., help="URL to remove."),
) -> None:
    """Remove every occurrence of a URL from the list."""
    service = build_service()
    current = _current(service, location)
    remaining = [item for item in current if item.url != url]
    if len(remaining) == len(current):
        console.print(f"[yellow]{url} is not linked at {location}.[/yellow]")
        raise typer.Exit(code=1)
    _save(service, location, json.dumps([item.model_dump(mode="json") for item in remaining]))


@links_app.command("history")
def history_cmd(
    location: str = typer.Argument(..., help="Location name."),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries to show."),
) -> None:
    """List linked-item snapshots, newest first."""
    service = build_service()
    rows = service.history(PayloadKind.LINKED_ITEMS, location, limit=limit)
    if not rows:
        console.print(f"[dim]No linked-item history for {location}.[/dim]")
        return
    console.print(history_table(f"Linked-item history · {location}", rows))


@links_app.command("rollback")
def rollback_cmd(
    snapshot_id: int = typer.Argument(..., help="Snapshot ID to restore."),
) -> None:
    """Restore a linked-item list from a snapshot."""
    service = build_service()
    actor = cli_actor(service)
    result = service.rollback(actor, PayloadKind.LINKED_ITEMS, snapshot_id, token=service.restore_token(actor))
    report(result, f"Restored linked items from snapshot #{snapshot_id}.")
