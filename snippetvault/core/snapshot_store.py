"""Append-only snapshot log backed by SQLite.

Every accepted change is recorded as a ``SnapshotEntry`` carrying enough
state to reconstruct the resource it describes.

Design:
- ``append()`` is the only insert path. Ids come from AUTOINCREMENT, so two
  concurrent appends can never share an id.
- Retention is FIFO by ``id``: the same transaction that inserts an entry
  deletes everything below the Nth-most-recent in one statement.
- No update path. Rows leave the table only through pruning or ``clear()``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import Literal, Union

from snippetvault.core.storage import ensure_parent, transaction
from snippetvault.models.snapshot import PayloadKind, SnapshotEntry, SnapshotQuery

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS snapshots (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp     TEXT NOT NULL,
    actor_id      TEXT NOT NULL DEFAULT '',
    actor_name    TEXT NOT NULL DEFAULT '',
    action        TEXT NOT NULL,
    location_key  TEXT NOT NULL,
    subject_key   TEXT,
    payload_kind  TEXT NOT NULL,
    payload_json  TEXT NOT NULL,
    summary       TEXT NOT NULL DEFAULT '',
    size          INTEGER
);
"""

_CREATE_IDX_LOCATION = """
CREATE INDEX IF NOT EXISTS idx_snapshots_location ON snapshots(location_key, id);
"""

_CREATE_IDX_SUBJECT = """
CREATE INDEX IF NOT EXISTS idx_snapshots_subject ON snapshots(subject_key, id);
"""

_PRUNE_GLOBAL = """
DELETE FROM snapshots
WHERE id < (SELECT id FROM snapshots ORDER BY id DESC LIMIT 1 OFFSET ?)
"""

_PRUNE_LOCATION = """
DELETE FROM snapshots
WHERE location_key = ?
  AND id < (SELECT id FROM snapshots WHERE location_key = ? ORDER BY id DESC LIMIT 1 OFFSET ?)
"""

_COLUMNS = (
    "id, timestamp, actor_id, actor_name, action, location_key, subject_key, "
    "payload_kind, payload_json, summary, size"
)

RetentionScope = Literal["global", "location"]


class SnapshotNotFoundError(LookupError):
    """Raised when a snapshot id does not exist (or was pruned)."""


class SnapshotShapeError(ValueError):
    """Raised when a snapshot's payload is not the kind being restored."""


class SnapshotStore:
    """Append-only snapshot log with bounded retention.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    retention:
        Maximum number of entries kept, or a callable returning it. The
        callable is consulted on every append so a changed setting applies
        to the next write.
    scope:
        ``"global"`` caps the whole table; ``"location"`` caps each
        ``location_key`` independently.
    """

    def __init__(
        self,
        db_path: Path,
        retention: Union[int, Callable[[], int]] = 200,
        scope: RetentionScope = "global",
    ) -> None:
        self._db_path = ensure_parent(db_path)
        self._retention = retention
        self.scope = scope
        with transaction(self._db_path, "snapshot schema init") as conn:
            conn.execute(_CREATE_SNAPSHOTS)
            conn.execute(_CREATE_IDX_LOCATION)
            conn.execute(_CREATE_IDX_SUBJECT)

    @property
    def retention(self) -> int:
        value = self._retention() if callable(self._retention) else self._retention
        return max(1, int(value))

    # ------------------------------------------------------------------
    # Core: append + prune
    # ------------------------------------------------------------------

    def append(self, entry: SnapshotEntry) -> SnapshotEntry:
        """Insert *entry* and prune, in one transaction.

        Returns the entry with its assigned ``id``. Storage failures
        propagate as ``StorageError``.
        """
        keep = self.retention
        with transaction(self._db_path, f"append snapshot for {entry.location_key!r}") as conn:
            cursor = conn.execute(
                f"""
                INSERT INTO snapshots ({_COLUMNS})
                VALUES (NULL, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.timestamp.isoformat(),
                    entry.actor_id,
                    entry.actor_name,
                    entry.action.value,
                    entry.location_key,
                    entry.subject_key,
                    entry.payload.kind,
                    entry.payload.model_dump_json(),
                    entry.summary,
                    entry.size,
                ),
            )
            new_id = cursor.lastrowid
            pruned = self._prune(conn, keep, entry.location_key)

        if pruned:
            logger.debug("Pruned %d snapshot(s) after append of #%d", pruned, new_id)
        return entry.model_copy(update={"id": new_id})

    def prune(self) -> int:
        """Apply the retention cap to every scope now. Returns rows deleted."""
        keep = self.retention
        with transaction(self._db_path, "prune snapshots") as conn:
            if self.scope == "global":
                pruned = self._prune(conn, keep, None)
            else:
                keys = [row[0] for row in conn.execute("SELECT DISTINCT location_key FROM snapshots")]
                pruned = sum(self._prune(conn, keep, key) for key in keys)
        if pruned:
            logger.info("Pruned %d snapshot(s) to retention of %d", pruned, keep)
        return pruned

    def _prune(self, conn: sqlite3.Connection, keep: int, location_key: str | None) -> int:
        if self.scope == "location" and location_key is not None:
            cursor = conn.execute(_PRUNE_LOCATION, (location_key, location_key, keep - 1))
        else:
            cursor = conn.execute(_PRUNE_GLOBAL, (keep - 1,))
        return max(cursor.rowcount, 0)

    # ------------------------------------------------------------------
    # Query methods (read-only)
    # ------------------------------------------------------------------

    def list_filtered(
        self,
        location_key: str | None = None,
        subject_key: str | None = None,
        kind: PayloadKind | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[SnapshotEntry]:
        """Return entries newest-first by ``id``. Filters are conjunctive."""
        clauses: list[str] = []
        params: list[object] = []
        if location_key is not None:
            clauses.append("location_key = ?")
            params.append(location_key)
        if subject_key is not None:
            clauses.append("subject_key = ?")
            params.append(subject_key)
        if kind is not None:
            clauses.append("payload_kind = ?")
            params.append(PayloadKind(kind).value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.extend([max(limit, 0), max(offset, 0)])

        with transaction(self._db_path, "list snapshots") as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM snapshots {where} ORDER BY id DESC LIMIT ? OFFSET ?",
                params,
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def query(self, query: SnapshotQuery) -> list[SnapshotEntry]:
        return self.list_filtered(
            location_key=query.location_key,
            subject_key=query.subject_key,
            kind=query.kind,
            limit=query.limit,
            offset=query.offset,
        )

    def get_by_id(self, snapshot_id: int) -> SnapshotEntry | None:
        with transaction(self._db_path, f"read snapshot #{snapshot_id}") as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM snapshots WHERE id = ?", (snapshot_id,)
            ).fetchone()
        return self._row_to_entry(row) if row else None

    def require(self, snapshot_id: int, kind: PayloadKind) -> SnapshotEntry:
        """Load an entry for restore, checking its payload tag.

        Raises
        ------
        SnapshotNotFoundError
            No entry with that id exists.
        SnapshotShapeError
            The entry holds a different payload kind.
        """
        entry = self.get_by_id(snapshot_id)
        if entry is None:
            raise SnapshotNotFoundError(f"Snapshot #{snapshot_id} does not exist.")
        if entry.kind is not PayloadKind(kind):
            raise SnapshotShapeError(
                f"Snapshot #{snapshot_id} holds {entry.kind.value!r}, not {PayloadKind(kind).value!r}."
            )
        return entry

    def count(self, location_key: str | None = None) -> int:
        with transaction(self._db_path, "count snapshots") as conn:
            if location_key is None:
                row = conn.execute("SELECT COUNT(*) FROM snapshots").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM snapshots WHERE location_key = ?", (location_key,)
                ).fetchone()
        return int(row[0])

    def clear(self) -> None:
        with transaction(self._db_path, "clear snapshots") as conn:
            conn.execute("DROP TABLE IF EXISTS snapshots")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_entry(row: tuple) -> SnapshotEntry:
        (
            snapshot_id,
            timestamp,
            actor_id,
            actor_name,
            action,
            location_key,
            subject_key,
            _payload_kind,
            payload_json,
            summary,
            size,
        ) = row
        return SnapshotEntry.model_validate({
            "id": snapshot_id,
            "timestamp": timestamp,
            "actor_id": actor_id,
            "actor_name": actor_name,
            "action": action,
            "location_key": location_key,
            "subject_key": subject_key,
            "payload": json.loads(payload_json),
            "summary": summary,
            "size": size,
        })
