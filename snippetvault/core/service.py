"""Service façade — the single entry point for every transport binding.

``VaultService`` wires the stores, the rule engine, the rate limiter, the
validation pipeline and the writer together by explicit construction. Form
handlers, RPC endpoints and the CLI call these methods and nothing else, so
validation, rate limiting and history behave the same everywhere.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from snippetvault.config import VaultConfig
from snippetvault.core.clock import Clock, SystemClock
from snippetvault.core.file_store import ManagedFileStore
from snippetvault.core.hasher import utf8_length
from snippetvault.core.injector import Injector
from snippetvault.core.integrity import (
    CapabilityChecker,
    CapabilityPolicy,
    IntegrityTokens,
    IntegrityTokenVerifier,
)
from snippetvault.core.location_store import LocationConfigStore
from snippetvault.core.pipeline import (
    FILES_TOKEN_SCOPE,
    RESTORE_TOKEN_SCOPE,
    SETTINGS_TOKEN_SCOPE,
    ValidationPipeline,
    location_token_scope,
)
from snippetvault.core.production_guard import enforce_production_constraints
from snippetvault.core.rate_limiter import RateLimiter, TransientStore
from snippetvault.core.request_scope import RequestScope
from snippetvault.core.rule_engine import RuleEngine
from snippetvault.core.settings_store import SettingsStore
from snippetvault.core.snapshot_store import SnapshotStore
from snippetvault.core.writer import ConfigWriter
from snippetvault.models.context import Actor, RequestContext
from snippetvault.models.location import InjectionPlan, LinkedItem, LocationConfig, ManagedFile
from snippetvault.models.outcomes import (
    ContentResult,
    FileResult,
    LinkedItemsResult,
    LocationResult,
    Rejection,
    RejectionReason,
    RollbackResult,
    SettingsResult,
)
from snippetvault.models.proposals import FileProposal, LocationProposal
from snippetvault.models.settings import VaultSettings, clamp_history_limit
from snippetvault.models.snapshot import HistoryRow, PayloadKind, SnapshotEntry, SnapshotQuery

logger = logging.getLogger(__name__)


class UnknownLocationError(LookupError):
    """Raised by read operations given a location that is not configured."""


class VaultService:
    """Façade over content, linked items, managed files, history and settings.

    Parameters
    ----------
    config:
        Runtime configuration. Uses defaults (and the environment) if omitted.
    clock:
        Time source for tokens, rate limits, timestamps and rule evaluation.
    capability_checker, integrity_verifier:
        Collaborators for gates 1 and 2. Default to ``CapabilityPolicy`` and
        ``IntegrityTokens`` built from *config*.
    """

    def __init__(
        self,
        config: VaultConfig | None = None,
        *,
        clock: Clock | None = None,
        capability_checker: CapabilityChecker | None = None,
        integrity_verifier: IntegrityTokenVerifier | None = None,
    ) -> None:
        self.config = config or VaultConfig()

        # Fails hard on an unsafe production config
        enforce_production_constraints(self.config)

        self._clock = clock or SystemClock()
        self._zone = ZoneInfo(self.config.time_zone)
        db_path = self.config.database_path

        # Persistent stores
        self._settings = SettingsStore(
            db_path, VaultSettings(history_limit=clamp_history_limit(self.config.history_limit))
        )
        self._locations = LocationConfigStore(db_path)
        self._files = ManagedFileStore(
            db_path, self.config.files_path, extension=self.config.managed_file_extension
        )
        self._snapshots = SnapshotStore(
            db_path,
            retention=lambda: self._settings.get().history_limit,
            scope=self.config.history_scope,
        )

        # Gates and write paths
        self._engine = RuleEngine()
        self._transients = TransientStore(db_path, self._clock)
        self._limiter = RateLimiter(self._transients, ttl_seconds=self.config.rate_limit_seconds)
        self._capability = capability_checker or CapabilityPolicy(self.config.required_capability)
        self._integrity = integrity_verifier or IntegrityTokens(
            self.config.integrity_secret,
            lifetime_seconds=self.config.integrity_lifetime_seconds,
            clock=self._clock,
        )
        self._writer = ConfigWriter(self._locations, self._files, self._snapshots, self._clock)
        self._pipeline = ValidationPipeline(
            locations=self.config.locations,
            location_store=self._locations,
            file_store=self._files,
            writer=self._writer,
            rule_engine=self._engine,
            rate_limiter=self._limiter,
            capability_checker=self._capability,
            integrity_verifier=self._integrity,
            clock=self._clock,
            max_content_bytes=self.config.max_content_bytes,
            max_file_bytes=self.config.max_file_bytes,
        )
        self._injector = Injector(self._locations, self._files, self._engine)

    @property
    def locations(self) -> tuple[str, ...]:
        return self._pipeline.locations

    # ------------------------------------------------------------------
    # Integrity tokens
    # ------------------------------------------------------------------

    def issue_token(self, token_scope: str, actor: Actor) -> str:
        """Mint a token for *token_scope*. Only available with ``IntegrityTokens``."""
        if not isinstance(self._integrity, IntegrityTokens):
            raise TypeError("The configured integrity verifier cannot mint tokens.")
        return self._integrity.create(token_scope, actor.id)

    def location_token(self, location: str, actor: Actor) -> str:
        return self.issue_token(location_token_scope(location), actor)

    def files_token(self, actor: Actor) -> str:
        return self.issue_token(FILES_TOKEN_SCOPE, actor)

    def restore_token(self, actor: Actor) -> str:
        return self.issue_token(RESTORE_TOKEN_SCOPE, actor)

    def settings_token(self, actor: Actor) -> str:
        return self.issue_token(SETTINGS_TOKEN_SCOPE, actor)

    # ------------------------------------------------------------------
    # Locations: content and linked items
    # ------------------------------------------------------------------

    def get_location(self, location: str) -> LocationConfig:
        self._require_location(location)
        return self._locations.get(location)

    def get_content(self, location: str) -> ContentResult:
        config = self.get_location(location)
        return ContentResult(
            accepted=True,
            location=location,
            content=config.content,
            rule_set=config.rule_set,
            byte_count=utf8_length(config.content),
        )

    def get_linked_items(self, location: str) -> list[LinkedItem]:
        return list(self.get_location(location).linked_items)

    def save_location(
        self,
        actor: Actor,
        location: str,
        proposal: LocationProposal,
        *,
        token: str,
        scope: RequestScope | None = None,
    ) -> LocationResult:
        """Validate and persist any combination of content, rules and items."""
        return self._pipeline.validate(actor, location, proposal, token, scope)

    def set_content(
        self,
        actor: Actor,
        location: str,
        content: Any,
        rule_set: Any = None,
        *,
        token: str,
        scope: RequestScope | None = None,
    ) -> ContentResult:
        """Set inline content. ``rule_set=None`` keeps the stored rule set."""
        result = self.save_location(
            actor, location, LocationProposal(content=content, rule_set=rule_set), token=token, scope=scope
        )
        return ContentResult(
            accepted=result.accepted,
            rejection=result.rejection,
            notices=result.notices,
            location=location,
            content=result.config.content,
            rule_set=result.config.rule_set,
            byte_count=result.byte_count,
            snapshot_id=result.content_snapshot_id,
        )

    def set_linked_items(
        self,
        actor: Actor,
        location: str,
        items: Any,
        *,
        token: str,
        scope: RequestScope | None = None,
    ) -> LinkedItemsResult:
        """Replace the linked-item list from JSON text or a list."""
        if items is None:
            items = []
        result = self.save_location(
            actor, location, LocationProposal(linked_items=items), token=token, scope=scope
        )
        return LinkedItemsResult(
            accepted=result.accepted,
            rejection=result.rejection,
            notices=result.notices,
            location=location,
            items=result.config.linked_items,
            snapshot_id=result.linked_items_snapshot_id,
        )

    # ------------------------------------------------------------------
    # History and restore
    # ------------------------------------------------------------------

    def history(
        self,
        kind: PayloadKind,
        location: str | None = None,
        *,
        subject: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[HistoryRow]:
        """Newest-first history of one resource kind, projected for display."""
        entries = self._snapshots.query(SnapshotQuery(
            location_key=location, subject_key=subject, kind=kind, limit=limit, offset=offset
        ))
        return [
            HistoryRow(
                id=entry.id,
                action=entry.action,
                timestamp=entry.timestamp,
                actor=entry.actor_name or entry.actor_id,
                size_or_count=entry.size,
                summary=entry.summary,
            )
            for entry in entries
        ]

    def get_snapshot(self, snapshot_id: int) -> SnapshotEntry | None:
        return self._snapshots.get_by_id(snapshot_id)

    def rollback(
        self, actor: Actor, kind: PayloadKind, snapshot_id: int, *, token: str
    ) -> RollbackResult:
        """Restore a snapshot through the trusted write path.

        Capability and integrity are checked; sanitation and the rate
        limiter are not.
        """
        kind = PayloadKind(kind)
        rejection = self._pipeline.authorize(actor, token, RESTORE_TOKEN_SCOPE)
        if rejection is not None:
            return RollbackResult(
                accepted=False, kind=kind, restored_from=snapshot_id, rejection=rejection
            )
        return self._writer.restore(snapshot_id, kind, actor)

    # ------------------------------------------------------------------
    # Managed files
    # ------------------------------------------------------------------

    def list_managed_files(self, location: str | None = None) -> list[ManagedFile]:
        files = self._files.list()
        return [f for f in files if location is None or f.location == location]

    def get_managed_file(self, file_id: str) -> FileResult:
        file = self._files.get(file_id)
        if file is None:
            return FileResult(
                accepted=False,
                rejection=Rejection(
                    reason=RejectionReason.FILE_NOT_FOUND,
                    message=f"No managed file with id {file_id!r}.",
                ),
            )
        content = self._files.read_content(file)
        return FileResult(accepted=True, file=file, content=content, byte_count=utf8_length(content))

    def set_managed_file(
        self,
        actor: Actor,
        proposal: FileProposal,
        *,
        token: str,
        scope: RequestScope | None = None,
    ) -> FileResult:
        return self._pipeline.validate_file(actor, proposal, token, scope)

    def delete_managed_file(
        self,
        actor: Actor,
        file_id: str,
        *,
        token: str,
        scope: RequestScope | None = None,
    ) -> FileResult:
        return self._pipeline.delete_file(actor, file_id, token, scope)

    def upload_managed_file(
        self,
        actor: Actor,
        data: bytes,
        filename: str,
        *,
        token: str,
        label: str = "",
        location: str = "head",
        rule_set: Any = None,
        scope: RequestScope | None = None,
    ) -> FileResult:
        return self._pipeline.upload_file(
            actor,
            data,
            filename,
            token,
            label=label,
            location=location,
            rule_set=rule_set,
            scope=scope,
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> VaultSettings:
        return self._settings.get()

    def update_settings(self, actor: Actor, *, token: str, **changes: Any) -> SettingsResult:
        """Persist settings. Lowering ``history_limit`` prunes immediately.

        Raises ``ValueError`` for unknown setting names.
        """
        current = self._settings.get()
        rejection = self._pipeline.authorize(actor, token, SETTINGS_TOKEN_SCOPE)
        if rejection is not None:
            return SettingsResult(accepted=False, rejection=rejection, settings=current)
        updated = self._settings.update(**changes)
        pruned = 0
        if updated.history_limit < current.history_limit:
            pruned = self._snapshots.prune()
        return SettingsResult(accepted=True, settings=updated, pruned=pruned)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def context_for(
        self,
        *,
        path: str = "/",
        is_front_page: bool = False,
        is_singular: bool = False,
        content_type: str | None = None,
        object_id: int | None = None,
        is_authenticated: bool = False,
        at: datetime | None = None,
    ) -> RequestContext:
        """Build a request context with ``now`` in the configured time zone."""
        moment = at or self._clock.now()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=self._zone)
        return RequestContext(
            now=moment.astimezone(self._zone),
            is_front_page=is_front_page,
            is_singular=is_singular,
            content_type=content_type,
            object_id=object_id,
            path=path,
            is_authenticated=is_authenticated,
        )

    def select(self, location: str, context: RequestContext) -> InjectionPlan:
        self._require_location(location)
        return self._injector.select(location, context)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def teardown(self, *, force: bool = False) -> bool:
        """Drop all persisted state and managed file bodies.

        Honors ``keep_data_on_teardown`` unless *force* is set. Returns
        whether anything was removed.
        """
        if self._settings.get().keep_data_on_teardown and not force:
            logger.info("Teardown skipped: keep_data_on_teardown is set.")
            return False
        self._snapshots.clear()
        self._locations.clear()
        self._files.clear()
        self._settings.clear()
        self._transients.clear()
        logger.warning("All snippetvault data removed.")
        return True

    def _require_location(self, location: str) -> None:
        if location not in self.locations:
            raise UnknownLocationError(
                f"Unknown location {location!r}. Expected one of: {', '.join(self.locations)}."
            )
