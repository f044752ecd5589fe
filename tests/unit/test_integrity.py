"""Tests for capability checks and integrity tokens."""

from __future__ import annotations

from snippetvault.core.integrity import (
    CapabilityChecker,
    CapabilityPolicy,
    IntegrityTokens,
    IntegrityTokenVerifier,
)
from snippetvault.models.context import Actor

SECRET = "unit-test-secret-unit-test-secret"


class TestCapabilityPolicy:
    def test_actor_with_capability_allowed(self, admin: Actor):
        assert CapabilityPolicy("manage_options").authorize(admin) is True

    def test_actor_without_capability_denied(self, visitor: Actor):
        assert CapabilityPolicy("manage_options").authorize(visitor) is False

    def test_satisfies_protocol(self):
        assert isinstance(CapabilityPolicy("x"), CapabilityChecker)


class TestIntegrityTokens:
    def test_round_trip(self, clock):
        tokens = IntegrityTokens(SECRET, clock=clock)
        token = tokens.create("location:head", "7")
        assert tokens.verify(token, "location:head", "7") is True

    def test_scope_bound(self, clock):
        tokens = IntegrityTokens(SECRET, clock=clock)
        token = tokens.create("location:head", "7")
        assert tokens.verify(token, "location:footer", "7") is False

    def test_actor_bound(self, clock):
        tokens = IntegrityTokens(SECRET, clock=clock)
        token = tokens.create("location:head", "7")
        assert tokens.verify(token, "location:head", "8") is False

    def test_valid_through_next_half_window(self, clock):
        tokens = IntegrityTokens(SECRET, lifetime_seconds=100, clock=clock)
        token = tokens.create("files", "7")
        clock.advance(50)
        assert tokens.verify(token, "files", "7") is True

    def test_expires_after_lifetime(self, clock):
        tokens = IntegrityTokens(SECRET, lifetime_seconds=100, clock=clock)
        token = tokens.create("files", "7")
        clock.advance(101)
        assert tokens.verify(token, "files", "7") is False

    def test_shared_secret_verifies_across_instances(self, clock):
        token = IntegrityTokens(SECRET, clock=clock).create("settings", "7")
        assert IntegrityTokens(SECRET, clock=clock).verify(token, "settings", "7") is True

    def test_different_secret_rejects(self, clock):
        token = IntegrityTokens(SECRET, clock=clock).create("settings", "7")
        assert IntegrityTokens(SECRET + "!", clock=clock).verify(token, "settings", "7") is False

    def test_empty_secret_uses_ephemeral_key(self, clock):
        first, second = IntegrityTokens("", clock=clock), IntegrityTokens("", clock=clock)
        token = first.create("files", "7")
        assert first.verify(token, "files", "7") is True
        assert second.verify(token, "files", "7") is False

    def test_garbage_rejected(self, clock):
        tokens = IntegrityTokens(SECRET, clock=clock)
        assert tokens.verify("", "files", "7") is False
        assert tokens.verify("deadbeef", "files", "7") is False
        assert tokens.verify(None, "files", "7") is False

    def test_satisfies_protocol(self, clock):
        assert isinstance(IntegrityTokens(SECRET, clock=clock), IntegrityTokenVerifier)
