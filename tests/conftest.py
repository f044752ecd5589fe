"""Shared test fixtures for snippetvault."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from snippetvault.config import VaultConfig
from snippetvault.core.file_store import ManagedFileStore
from snippetvault.core.location_store import LocationConfigStore
from snippetvault.core.rule_engine import RuleEngine
from snippetvault.core.service import VaultService
from snippetvault.core.snapshot_store import SnapshotStore
from snippetvault.models.context import Actor, RequestContext

# Sunday 2025-06-15, ISO week 24.
START = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)

TEST_SECRET = "test-integrity-secret-0123456789abcdef"


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test databases and files."""
    return tmp_path


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def db_path(tmp_dir: Path) -> Path:
    return tmp_dir / "vault.db"


@pytest.fixture
def vault_config(tmp_dir: Path) -> VaultConfig:
    """A development config pointing at the temp directory."""
    return VaultConfig(
        environment="development",
        database_path=tmp_dir / "vault.db",
        files_path=tmp_dir / "files",
        integrity_secret=TEST_SECRET,
        locations=["head", "footer"],
        history_limit=200,
        history_scope="global",
        rate_limit_seconds=10,
        time_zone="UTC",
    )


@pytest.fixture
def service(vault_config: VaultConfig, clock: FixedClock) -> VaultService:
    """Provide a fully wired service on a fixed clock."""
    return VaultService(vault_config, clock=clock)


@pytest.fixture
def admin() -> Actor:
    return Actor(id="7", display_name="Admin", capabilities=["manage_options"])


@pytest.fixture
def other_admin() -> Actor:
    return Actor(id="8", display_name="Second Admin", capabilities=["manage_options"])


@pytest.fixture
def visitor() -> Actor:
    return Actor(id="42", display_name="Visitor", capabilities=["read"])


@pytest.fixture
def engine() -> RuleEngine:
    return RuleEngine()


@pytest.fixture
def location_store(db_path: Path) -> LocationConfigStore:
    return LocationConfigStore(db_path)


@pytest.fixture
def file_store(db_path: Path, tmp_dir: Path) -> ManagedFileStore:
    return ManagedFileStore(db_path, tmp_dir / "files")


@pytest.fixture
def snapshot_store(db_path: Path) -> SnapshotStore:
    return SnapshotStore(db_path, retention=200)


@pytest.fixture
def make_context() -> Callable[..., RequestContext]:
    """Factory for request contexts; ``now`` defaults to the fixed start."""

    def _make(**overrides: Any) -> RequestContext:
        overrides.setdefault("now", START)
        return RequestContext(**overrides)

    return _make
