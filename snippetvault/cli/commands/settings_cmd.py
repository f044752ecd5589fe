"""``snippetvault settings`` — retention cap and teardown behaviour."""

from __future__ import annotations

import typer
from rich.panel import Panel

from snippetvault.cli.commands.common import build_service, cli_actor, console, report
from snippetvault.models.settings import HISTORY_LIMIT_MAX, HISTORY_LIMIT_MIN

settings_app = typer.Typer(help="Show and change persisted settings.", no_args_is_help=True)


@settings_app.command("show")
def show_cmd() -> None:
    """Show the persisted settings."""
    service = build_service()
    settings = service.get_settings()
    console.print(Panel(
        "\n".join([
            f"[bold]History limit:[/bold]        {settings.history_limit}",
            f"[bold]Keep data on teardown:[/bold] {'yes' if settings.keep_data_on_teardown else 'no'}",
            f"[bold]Locations:[/bold]            {', '.join(service.locations)}",
        ]),
        title="[bold]snippetvault settings[/bold]",
        border_style="cyan",
    ))


@settings_app.command("set")
def set_cmd(
    history_limit: int = typer.Option(
        None,
        "--history-limit",
        help=f"Snapshots to keep ({HISTORY_LIMIT_MIN}-{HISTORY_LIMIT_MAX}). Lowering it prunes now.",
    ),
    keep_data: bool = typer.Option(
        None,
        "--keep-data/--no-keep-data",
        help="Whether teardown leaves stored data in place.",
    ),
) -> None:
    """Change one or more settings."""
    changes: dict[str, object] = {}
    if history_limit is not None:
        changes["history_limit"] = history_limit
    if keep_data is not None:
        changes["keep_data_on_teardown"] = keep_data
    if not changes:
        console.print("[yellow]Nothing to change.[/yellow]")
        raise typer.Exit(code=2)

    service = build_service()
    actor = cli_actor(service)
    result = service.update_settings(actor, token=service.settings_token(actor), **changes)
    pruned = f" Pruned {result.pruned} snapshot(s)." if result.pruned else ""
    report(result, f"Settings saved. History limit is {result.settings.history_limit}.{pruned}")
