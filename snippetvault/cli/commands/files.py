"""``snippetvault files`` — managed standalone files."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel
from rich.syntax import Syntax
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
from snippetvault.models.proposals import FileProposal
from snippetvault.models.snapshot import PayloadKind

files_app = typer.Typer(help="Create, edit, delete, and restore managed files.", no_args_is_help=True)


@files_app.command("list")
def list_cmd(
    location: str = typer.Option(None, "--location", "-l", help="Only files at this location."),
) -> None:
    """List managed files in load order."""
    service = build_service()
    files = service.list_managed_files(location)
    if not files:
        console.print("[dim]No managed files.[/dim]")
        return
    table = Table(title="Managed files")
    table.add_column("ID", style="cyan")
    table.add_column("Label")
    table.add_column("Filename")
    table.add_column("Location")
    table.add_column("Conditions", style="dim")
    for f in files:
        table.add_row(f.file_id, f.label, f.filename, f.location, describe_rule_set(f.rule_set))
    console.print(table)


@files_app.command("show")
def show_cmd(
    file_id: str = typer.Argument(..., help="Managed file ID."),
) -> None:
    """Show a managed file's metadata and body."""
    service = build_service()
    result = service.get_managed_file(file_id)
    if not result.accepted:
        console.print(f"[bold red]{result.rejection.message}[/bold red]")
        raise typer.Exit(code=1)
    f = result.file
    console.print(Panel(
        Syntax(result.content, "javascript"),
        title=f"[bold]{f.label}[/bold] · {f.filename} · {f.location}",
        border_style="cyan",
    ))
    console.print(describe_rule_set(f.rule_set))


@files_app.command("save")
def save_cmd(
    label: str = typer.Option(..., "--label", help="Display label (required)."),
    file: Path = typer.Option(None, "--file", "-f", help="Read the body from a file ('-' for stdin)."),
    text: str = typer.Option(None, "--text", "-t", help="Body text."),
    file_id: str = typer.Option("", "--id", help="Existing file ID to edit. Omit to create."),
    filename: str = typer.Option("", "--filename", help="Target filename. Derived from the label if omitted."),
    location: str = typer.Option("head", "--location", "-l", help="Location to load the file at."),
    rules: str = typer.Option(None, "--rules", "-r", help="Rule set as JSON."),
) -> None:
    """Create or edit a managed file through the validation pipeline."""
    content = read_input(text, file)
    service = build_service()
    actor = cli_actor(service)
    proposal = FileProposal(
        file_id=file_id,
        label=label,
        filename=filename,
        content=content,
        location=location,
        rule_set=rules,
    )
    result = service.set_managed_file(actor, proposal, token=service.files_token(actor))
    name = result.file.filename if result.file else filename
    report(result, f"Saved {name} ({result.byte_count:,} bytes).")


@files_app.command("upload")
def upload_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload."),
    label: str = typer.Option("", "--label", help="Display label. Defaults to the file name."),
    location: str = typer.Option("head", "--location", "-l", help="Location to load the file at."),
    rules: str = typer.Option(None, "--rules", "-r", help="Rule set as JSON."),
) -> None:
    """Upload a file from disk as a new managed file."""
    service = build_service()
    actor = cli_actor(service)
    result = service.upload_managed_file(
        actor,
        path.read_bytes(),
        path.name,
        token=service.files_token(actor),
        label=label,
        location=location,
        rule_set=rules,
    )
    name = result.file.filename if result.file else path.name
    report(result, f"Uploaded {name} ({result.byte_count:,} bytes).")


@files_app.command("delete")
def delete_cmd(
    file_id: str = typer.Argument(..., help="Managed file ID."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete a managed file. Its last content stays restorable from history."""
    if not yes:
        typer.confirm(f"Delete managed file {file_id}?", abort=True)
    service = build_service()
    actor = cli_actor(service)
    result = service.delete_managed_file(actor, file_id, token=service.files_token(actor))
    report(result, f"Deleted {file_id} (snapshot #{result.snapshot_id}).")


@files_app.command("history")
def history_cmd(
    file_id: str = typer.Argument(..., help="Managed file ID."),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries to show."),
) -> None:
    """List snapshots of one managed file, newest first."""
    service = build_service()
    rows = service.history(PayloadKind.FILE, subject=file_id, limit=limit)
    if not rows:
        console.print(f"[dim]No history for {file_id}.[/dim]")
        return
    console.print(history_table(f"File history · {file_id}", rows))


@files_app.command("rollback")
def rollback_cmd(
    snapshot_id: int = typer.Argument(..., help="Snapshot ID to restore."),
) -> None:
    """Restore a managed file (including a deleted one) from a snapshot."""
    service = build_service()
    actor = cli_actor(service)
    result = service.rollback(actor, PayloadKind.FILE, snapshot_id, token=service.restore_token(actor))
    report(result, f"Restored file from snapshot #{snapshot_id}.")
