"""Per-(actor, location) save cooldown backed by expiring key/value entries."""

from __future__ import annotations

import logging
from pathlib import Path

from snippetvault.core.clock import Clock, SystemClock
from snippetvault.core.storage import ensure_parent, transaction

logger = logging.getLogger(__name__)

_CREATE_TRANSIENTS = """
CREATE TABLE IF NOT EXISTS transients (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL DEFAULT '',
    expires_at  REAL NOT NULL
);
"""


class TransientStore:
    """Key/value entries that vanish after a time-to-live.

    Expiry is evaluated lazily against the injected clock on read, and
    expired rows are swept on write.
    """

    def __init__(self, db_path: Path, clock: Clock | None = None) -> None:
        self._db_path = ensure_parent(db_path)
        self._clock = clock or SystemClock()
        with transaction(self._db_path, "transient schema init") as conn:
            conn.execute(_CREATE_TRANSIENTS)

    def _now(self) -> float:
        return self._clock.now().timestamp()

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        now = self._now()
        with transaction(self._db_path, "transient write") as conn:
            conn.execute("DELETE FROM transients WHERE expires_at <= ?", (now,))
            conn.execute(
                "INSERT OR REPLACE INTO transients (key, value, expires_at) VALUES (?, ?, ?)",
                (key, value, now + ttl_seconds),
            )

    def get(self, key: str) -> str | None:
        row = self._row(key)
        return row[0] if row else None

    def ttl(self, key: str) -> float:
        """Seconds until *key* expires; 0 when absent or expired."""
        row = self._row(key)
        return max(0.0, row[1] - self._now()) if row else 0.0

    def _row(self, key: str) -> tuple[str, float] | None:
        with transaction(self._db_path, "transient read") as conn:
            row = conn.execute(
                "SELECT value, expires_at FROM transients WHERE key = ? AND expires_at > ?",
                (key, self._now()),
            ).fetchone()
        return (row[0], row[1]) if row else None

    def clear(self) -> None:
        with transaction(self._db_path, "clear transients") as conn:
            conn.execute("DROP TABLE IF EXISTS transients")


class RateLimiter:
    """Cooldown gate keyed by actor and location.

    ``record()`` is called only after a fully successful validated write;
    rejected writes and restores never stamp it.
    """

    def __init__(self, store: TransientStore, ttl_seconds: int = 10) -> None:
        self._store = store
        self._ttl = ttl_seconds

    @staticmethod
    def _key(actor_id: str, location: str) -> str:
        return f"save:{location}:{actor_id}"

    def is_limited(self, actor_id: str, location: str) -> bool:
        return self._store.get(self._key(actor_id, location)) is not None

    def retry_after(self, actor_id: str, location: str) -> float:
        return self._store.ttl(self._key(actor_id, location))

    def record(self, actor_id: str, location: str) -> None:
        self._store.set(self._key(actor_id, location), "1", self._ttl)
        logger.debug("Rate limit stamped for %s at %s (%ds).", actor_id, location, self._ttl)
