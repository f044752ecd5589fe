"""Production configuration guard — enforces hard constraints in production.

Runs once when the service is constructed and fails hard
(``ProductionConfigError``) if any constraint is violated. Other code should
not scatter ``if is_production`` checks.
"""

from __future__ import annotations

import logging

from snippetvault.config import VaultConfig

logger = logging.getLogger(__name__)

MIN_SECRET_LENGTH = 32


class ProductionConfigError(RuntimeError):
    """Raised when production configuration constraints are violated.

    The process should exit rather than catch this.
    """


def enforce_production_constraints(config: VaultConfig) -> None:
    """Validate all production-critical configuration constraints.

    Constraints enforced
    --------------------
    1. Debug mode must be disabled.
    2. An integrity secret of at least ``MIN_SECRET_LENGTH`` characters must
       be configured, so tokens verify across processes.
    3. At least one location must be configured.

    Raises
    ------
    ProductionConfigError
        Listing every violated constraint at once.
    """
    if not config.is_production:
        return

    violations: list[str] = []

    if config.debug:
        violations.append(
            "debug=True is not allowed in production. Set SNIPPETVAULT_DEBUG=false."
        )

    if len(config.integrity_secret) < MIN_SECRET_LENGTH:
        violations.append(
            f"An integrity secret of at least {MIN_SECRET_LENGTH} characters is required "
            "in production. Set SNIPPETVAULT_INTEGRITY_SECRET."
        )

    if not config.locations:
        violations.append("No locations configured. Set SNIPPETVAULT_LOCATIONS.")

    if violations:
        msg = "Production configuration guard failed.\n" + "\n".join(
            f"  - {v}" for v in violations
        )
        logger.critical(msg)
        raise ProductionConfigError(msg)

    logger.info("Production configuration guard passed.")
