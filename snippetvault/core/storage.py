"""Shared SQLite plumbing for the persistent stores.

Every store opens a short-lived connection per operation, in WAL mode, and
wraps driver errors in ``StorageError`` so callers see a single failure type.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the underlying store cannot complete an operation.

    This is the only error class the service layer lets escape to a
    transport binding: it means the durability guarantee is gone.
    """


def connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate sqlite3 and filesystem errors into ``StorageError``."""
    try:
        yield
    except (sqlite3.Error, OSError) as exc:
        logger.error("Storage failure during %s: %s", operation, exc)
        raise StorageError(f"{operation} failed: {exc}") from exc


def ensure_parent(db_path: Path) -> Path:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


@contextmanager
def transaction(db_path: Path, operation: str) -> Iterator[sqlite3.Connection]:
    """Open a connection, commit on success, roll back on error, always close."""
    with storage_errors(operation):
        conn = connect(db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()
