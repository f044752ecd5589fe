"""The small persisted settings record (retention cap and related tunables)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from snippetvault.core.storage import ensure_parent, transaction
from snippetvault.models.settings import VaultSettings, clamp_history_limit

logger = logging.getLogger(__name__)

_CREATE_SETTINGS = """
CREATE TABLE IF NOT EXISTS settings (
    key    TEXT PRIMARY KEY,
    value  TEXT NOT NULL
);
"""


class SettingsStore:
    """Reads and writes ``VaultSettings`` as JSON values keyed by field name."""

    def __init__(self, db_path: Path, defaults: VaultSettings | None = None) -> None:
        self._db_path = ensure_parent(db_path)
        self._defaults = defaults or VaultSettings()
        with transaction(self._db_path, "settings schema init") as conn:
            conn.execute(_CREATE_SETTINGS)

    def get(self) -> VaultSettings:
        with transaction(self._db_path, "read settings") as conn:
            rows = conn.execute("SELECT key, value FROM settings").fetchall()
        stored = {key: json.loads(value) for key, value in rows}
        merged = {**self._defaults.model_dump(), **stored}
        merged["history_limit"] = clamp_history_limit(merged["history_limit"])
        return VaultSettings.model_validate(merged)

    def update(self, **changes: Any) -> VaultSettings:
        """Persist the given fields and return the resulting settings."""
        current = self.get().model_dump()
        unknown = set(changes) - set(current)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        if "history_limit" in changes:
            changes["history_limit"] = clamp_history_limit(changes["history_limit"])
        updated = VaultSettings.model_validate({**current, **changes})
        with transaction(self._db_path, "write settings") as conn:
            for key in changes:
                conn.execute(
                    "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                    (key, json.dumps(getattr(updated, key))),
                )
        logger.info("Settings updated: %s", ", ".join(sorted(changes)))
        return updated

    def clear(self) -> None:
        with transaction(self._db_path, "clear settings") as conn:
            conn.execute("DROP TABLE IF EXISTS settings")
