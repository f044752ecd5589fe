"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and SNIPPETVAULT_* environment variables. Core
components receive a ``VaultConfig`` explicitly; only the CLI entry point
reads the module-level ``config`` instance.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class VaultConfig(BaseSettings):
    """Configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export SNIPPETVAULT_ENVIRONMENT=production
        export SNIPPETVAULT_INTEGRITY_SECRET=<64 hex chars>
        export SNIPPETVAULT_DATABASE_PATH=/data/vault.db
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SNIPPETVAULT_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Storage paths
    database_path: Path = Path(".snippetvault/vault.db")
    files_path: Path = Path(".snippetvault/files")

    # Named locations content can be attached to
    locations: list[str] = ["head", "footer"]

    # Authorization and request integrity
    required_capability: str = "manage_options"
    integrity_secret: str = ""
    integrity_lifetime_seconds: int = 86400

    # Write gates
    rate_limit_seconds: int = 10
    max_content_bytes: int = 100_000
    max_file_bytes: int = 2 * 1024 * 1024
    managed_file_extension: str = ".js"

    # History retention
    history_limit: int = 200
    history_scope: Literal["global", "location"] = "global"

    # Rule evaluation
    time_zone: str = "UTC"

    # Identity used by the command-line binding
    cli_actor: str = "cli"

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


# Module-level instance for the CLI: `from snippetvault.config import config`
config = VaultConfig()
