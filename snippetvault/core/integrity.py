"""Capability checks and request-integrity tokens.

Integrity tokens are short keyed BLAKE2b MACs (via PyNaCl) over the token
scope, the actor and a time tick. A token is accepted during the tick it was
minted in and the one after, so its validity window is between half and the
full configured lifetime.
"""

from __future__ import annotations

import hmac
import logging
import math
from typing import Protocol, runtime_checkable

import nacl.encoding
import nacl.hash
import nacl.utils

from snippetvault.core.clock import Clock, SystemClock
from snippetvault.core.hasher import canonical_json_bytes
from snippetvault.models.context import Actor

logger = logging.getLogger(__name__)

_TOKEN_DIGEST_SIZE = 16


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class CapabilityChecker(Protocol):
    def authorize(self, actor: Actor) -> bool:
        """Return ``True`` if *actor* may change stored content."""
        ...


@runtime_checkable
class IntegrityTokenVerifier(Protocol):
    def verify(self, token: str, scope: str, actor_id: str = "") -> bool:
        """Return ``True`` if *token* is valid for *scope* and *actor_id*."""
        ...


# ---------------------------------------------------------------------------
# Default implementations
# ---------------------------------------------------------------------------


class CapabilityPolicy:
    """Grants access to actors holding one fixed capability string."""

    def __init__(self, required_capability: str) -> None:
        self.required_capability = required_capability

    def authorize(self, actor: Actor) -> bool:
        return self.required_capability in actor.capabilities


class IntegrityTokens:
    """Mints and verifies scope-bound, time-windowed integrity tokens.

    Parameters
    ----------
    secret:
        Shared secret. When empty, a random per-process key is used and
        tokens only survive for the lifetime of this object.
    lifetime_seconds:
        Upper bound of a token's validity window.
    """

    def __init__(
        self,
        secret: str,
        *,
        lifetime_seconds: int = 86400,
        clock: Clock | None = None,
    ) -> None:
        if secret:
            self._key = nacl.hash.blake2b(
                secret.encode("utf-8"), digest_size=32, encoder=nacl.encoding.RawEncoder
            )
        else:
            logger.warning(
                "No integrity secret configured; using an ephemeral key. "
                "Set SNIPPETVAULT_INTEGRITY_SECRET to share tokens across processes."
            )
            self._key = nacl.utils.random(32)
        self._half_window = max(1.0, lifetime_seconds / 2)
        self._clock = clock or SystemClock()

    def _tick(self) -> int:
        return math.ceil(self._clock.now().timestamp() / self._half_window)

    def _mac(self, tick: int, scope: str, actor_id: str) -> str:
        message = canonical_json_bytes({"tick": tick, "scope": scope, "actor": actor_id})
        digest = nacl.hash.blake2b(
            message,
            digest_size=_TOKEN_DIGEST_SIZE,
            key=self._key,
            encoder=nacl.encoding.HexEncoder,
        )
        return digest.decode("ascii")

    def create(self, scope: str, actor_id: str = "") -> str:
        return self._mac(self._tick(), scope, actor_id)

    def verify(self, token: str, scope: str, actor_id: str = "") -> bool:
        if not token or not isinstance(token, str):
            return False
        tick = self._tick()
        for candidate in (tick, tick - 1):
            if hmac.compare_digest(self._mac(candidate, scope, actor_id), token):
                return True
        return False
