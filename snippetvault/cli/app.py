"""Main Typer application — imports and registers all CLI commands.

Entry point: ``snippetvault`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from snippetvault.cli.commands.common import build_service, console
from snippetvault.cli.commands.content import content_app
from snippetvault.cli.commands.files import files_app
from snippetvault.cli.commands.links import links_app
from snippetvault.cli.commands.preview import preview_cmd
from snippetvault.cli.commands.settings_cmd import settings_app
from snippetvault.config import config
from snippetvault.core.storage import StorageError

app = typer.Typer(
    name="snippetvault",
    help="snippetvault: location-scoped snippets with conditional rules and restorable history.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Configure logging once per invocation."""
    level = logging.DEBUG if verbose or config.debug else config.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


# Register sub-apps and commands
app.add_typer(content_app, name="content")
app.add_typer(links_app, name="links")
app.add_typer(files_app, name="files")
app.add_typer(settings_app, name="settings")
app.command(name="preview", help="Show what applies at a location for a simulated request.")(preview_cmd)


@app.command(name="teardown", help="Remove all stored data (honors keep-data-on-teardown).")
def teardown_cmd(
    force: bool = typer.Option(False, "--force", help="Remove data even if keep-data-on-teardown is set."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Drop every table and managed file body."""
    if not yes:
        typer.confirm("Remove all snippetvault data?", abort=True)
    service = build_service()
    if service.teardown(force=force):
        console.print("[bold green]All data removed.[/bold green]")
    else:
        console.print("[yellow]Data kept (keep-data-on-teardown is set). Use --force to override.[/yellow]")


def main() -> None:
    """CLI entry point."""
    try:
        app()
    except StorageError as exc:
        console.print(f"[bold red]Storage failure:[/bold red] {exc}")
        raise SystemExit(2) from exc


if __name__ == "__main__":
    main()
