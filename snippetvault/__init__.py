"""snippetvault: location-scoped content snippets with restorable history.

Operators store inline content and linked references against a fixed set of
named locations. Each piece carries a rule set that decides, per request,
whether it applies. Every accepted change lands in an append-only snapshot
log with bounded retention, and any snapshot can be restored.
"""

__version__ = "0.1.0"
__description__ = (
    "Location-scoped content snippets with conditional rules and restorable history"
)

from snippetvault.core.service import VaultService
from snippetvault.cli.app import app as cli

__all__ = ["VaultService", "cli", "__version__"]
