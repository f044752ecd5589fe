"""Current-state store: one ``LocationConfig`` record per named location.

Writes are last-write-wins. The snapshot log, not this table, is the record
of everything that was ever accepted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from snippetvault.core.storage import ensure_parent, transaction
from snippetvault.models.location import LocationConfig

_CREATE_LOCATIONS = """
CREATE TABLE IF NOT EXISTS locations (
    key          TEXT PRIMARY KEY,
    config_json  TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);
"""


class LocationConfigStore:
    """Key/value store of location configurations backed by SQLite.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = ensure_parent(db_path)
        with transaction(self._db_path, "location schema init") as conn:
            conn.execute(_CREATE_LOCATIONS)

    def get(self, location: str) -> LocationConfig:
        """Return the stored config, creating empty defaults on first read."""
        with transaction(self._db_path, f"read location {location!r}") as conn:
            row = conn.execute(
                "SELECT config_json FROM locations WHERE key = ?", (location,)
            ).fetchone()
            if row is None:
                default = LocationConfig()
                conn.execute(
                    "INSERT OR IGNORE INTO locations (key, config_json, updated_at) VALUES (?, ?, ?)",
                    (location, default.model_dump_json(), _utc_now()),
                )
                return default
        return LocationConfig.model_validate_json(row[0])

    def put(self, location: str, config: LocationConfig) -> None:
        with transaction(self._db_path, f"write location {location!r}") as conn:
            conn.execute(
                "INSERT OR REPLACE INTO locations (key, config_json, updated_at) VALUES (?, ?, ?)",
                (location, config.model_dump_json(), _utc_now()),
            )

    def clear(self) -> None:
        with transaction(self._db_path, "clear locations") as conn:
            conn.execute("DROP TABLE IF EXISTS locations")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()
