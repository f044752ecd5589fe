"""Adversarial tests for production configuration guard.

These tests assert that production mode enforces hard constraints
and that permissive settings cannot leak into production runs.
"""

from __future__ import annotations

import pytest

from snippetvault.config import VaultConfig
from snippetvault.core.production_guard import (
    MIN_SECRET_LENGTH,
    ProductionConfigError,
    enforce_production_constraints,
)
from snippetvault.core.service import VaultService

_GOOD_SECRET = "p" * MIN_SECRET_LENGTH


def _prod(**overrides) -> VaultConfig:
    fields = {"environment": "production", "integrity_secret": _GOOD_SECRET, "debug": False}
    fields.update(overrides)
    return VaultConfig(**fields)


class TestProductionGuardDebugMode:
    """Production must not run with debug=True."""

    def test_debug_true_in_production_raises(self):
        with pytest.raises(ProductionConfigError, match="debug=True"):
            enforce_production_constraints(_prod(debug=True))

    def test_debug_false_in_production_passes(self):
        enforce_production_constraints(_prod())  # should not raise

    def test_debug_true_in_development_allowed(self):
        enforce_production_constraints(VaultConfig(environment="development", debug=True))


class TestProductionSecret:
    """Production tokens must verify across processes, so a real secret is required."""

    def test_missing_secret_raises(self):
        with pytest.raises(ProductionConfigError, match="SNIPPETVAULT_INTEGRITY_SECRET"):
            enforce_production_constraints(_prod(integrity_secret=""))

    def test_short_secret_raises(self):
        with pytest.raises(ProductionConfigError):
            enforce_production_constraints(_prod(integrity_secret="p" * (MIN_SECRET_LENGTH - 1)))

    def test_missing_secret_allowed_in_development(self):
        enforce_production_constraints(VaultConfig(environment="development", integrity_secret=""))


class TestProductionLocations:
    def test_no_locations_raises(self):
        with pytest.raises(ProductionConfigError, match="locations"):
            enforce_production_constraints(_prod(locations=[]))


class TestGuardReportsEverything:
    def test_all_violations_listed_together(self):
        with pytest.raises(ProductionConfigError) as excinfo:
            enforce_production_constraints(_prod(debug=True, integrity_secret="", locations=[]))
        message = str(excinfo.value)
        assert message.count("  - ") == 3


class TestServiceRunsGuard:
    """The service must refuse to start with a bad production config."""

    def test_service_construction_fails(self, tmp_path):
        config = _prod(
            integrity_secret="short",
            database_path=tmp_path / "vault.db",
            files_path=tmp_path / "files",
        )
        with pytest.raises(ProductionConfigError):
            VaultService(config)
        assert not (tmp_path / "vault.db").exists()

    def test_service_starts_with_valid_production_config(self, tmp_path, clock):
        config = _prod(database_path=tmp_path / "vault.db", files_path=tmp_path / "files")
        service = VaultService(config, clock=clock)
        assert service.config.is_production
