"""snippetvault CLI — Typer-based command-line interface.

Provides the ``snippetvault`` command with sub-apps for inline content,
linked items, managed files and settings, plus read-side preview and
teardown. The CLI is a transport binding: every command goes through
``VaultService``.

All output uses Rich for formatted terminal display.
"""
