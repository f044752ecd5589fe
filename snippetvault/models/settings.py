"""The persisted settings record."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

HISTORY_LIMIT_MIN = 3
HISTORY_LIMIT_MAX = 1000


def clamp_history_limit(value: int) -> int:
    """Clamp a requested retention cap into the supported range."""
    return max(HISTORY_LIMIT_MIN, min(HISTORY_LIMIT_MAX, int(value)))


class VaultSettings(BaseModel):
    """Runtime tunables persisted alongside the data."""

    model_config = ConfigDict(frozen=True)

    history_limit: int = 200
    keep_data_on_teardown: bool = False
