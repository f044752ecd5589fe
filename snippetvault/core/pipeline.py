"""Validation pipeline — the only way proposed input reaches current state.

Gates run strictly in order and the first failure short-circuits:

1. capability (silent: no state change, no history)
2. integrity token, bound to a scope and to the actor
3. rate limit per (actor, bucket)
4. content sanitation
5. structural validation of rule sets and linked items

On success the pipeline diffs against the stored state, hands the new state
and the snapshot entries to the ``ConfigWriter``, and stamps the rate
limiter. A rejection returns the unchanged previous state and a typed reason.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Sequence
from typing import Any
from urllib.parse import urlsplit

from snippetvault.core.clock import Clock, SystemClock
from snippetvault.core.file_store import ManagedFileStore, file_id_for, normalize_filename
from snippetvault.core.hasher import utf8_length
from snippetvault.core.integrity import CapabilityChecker, IntegrityTokenVerifier
from snippetvault.core.location_store import LocationConfigStore
from snippetvault.core.rate_limiter import RateLimiter
from snippetvault.core.request_scope import RequestScope
from snippetvault.core.rule_engine import RuleEngine
from snippetvault.core.sanitizer import sanitize_content
from snippetvault.core.writer import ConfigWriter
from snippetvault.models.context import Actor
from snippetvault.models.location import LinkedItem, LocationConfig, ManagedFile
from snippetvault.models.outcomes import (
    FileResult,
    LocationResult,
    Notice,
    NoticeCode,
    Rejection,
    RejectionReason,
)
from snippetvault.models.proposals import FileProposal, LocationProposal
from snippetvault.models.rules import RuleSet
from snippetvault.models.snapshot import (
    ContentPayload,
    FilePayload,
    LinkedItemsPayload,
    PayloadKind,
    SnapshotAction,
    SnapshotEntry,
)

logger = logging.getLogger(__name__)

FILES_BUCKET = "files"
FILES_TOKEN_SCOPE = "files"
RESTORE_TOKEN_SCOPE = "restore"
SETTINGS_TOKEN_SCOPE = "settings"


def location_token_scope(location: str) -> str:
    """Integrity-token scope for writes to *location*."""
    return f"location:{location}"



class ValidationPipeline:
    """Runs the gates and sequences the accepted write.

    Parameters
    ----------
    locations:
        The fixed set of location names writes may target.
    location_store, file_store:
        Current-state stores, read for diffing and for the previous state
        returned on rejection.
    writer:
        Performs the "write state, then append log" sequence.
    max_content_bytes, max_file_bytes:
        UTF-8 byte caps for inline content and managed file bodies.
    """

    def __init__(
        self,
        *,
        locations: Sequence[str],
        location_store: LocationConfigStore,
        file_store: ManagedFileStore,
        writer: ConfigWriter,
        rule_engine: RuleEngine,
        rate_limiter: RateLimiter,
        capability_checker: CapabilityChecker,
        integrity_verifier: IntegrityTokenVerifier,
        clock: Clock | None = None,
        max_content_bytes: int = 100_000,
        max_file_bytes: int = 2 * 1024 * 1024,
    ) -> None:
        self.locations = tuple(locations)
        self._location_store = location_store
        self._file_store = file_store
        self._writer = writer
        self._engine = rule_engine
        self._limiter = rate_limiter
        self._capability = capability_checker
        self._integrity = integrity_verifier
        self._clock = clock or SystemClock()
        self._max_content_bytes = max_content_bytes
        self._max_file_bytes = max_file_bytes

    # ------------------------------------------------------------------
    # Location writes
    # ------------------------------------------------------------------

    def validate(
        self,
        actor: Actor,
        location: str,
        proposal: LocationProposal,
        token: str,
        scope: RequestScope | None = None,
    ) -> LocationResult:
        """Validate and, if accepted, persist a proposed location change.

        A repeated call with the same *scope* and the same touched
        sub-resources returns the first result unchanged.
        """
        scope = scope or RequestScope()
        memo = scope.recall(proposal.resource, location)
        if memo is not None:
            logger.debug("Request %s already processed %s for %s", scope.correlation_id, proposal.resource, location)
            return memo
        result = self._validate_location(actor, location, proposal, token, scope)
        scope.remember(proposal.resource, location, result)
        return result

    def _validate_location(
        self,
        actor: Actor,
        location: str,
        proposal: LocationProposal,
        token: str,
        scope: RequestScope,
    ) -> LocationResult:
        known = location in self.locations
        previous = self._location_store.get(location) if known else LocationConfig()

        def reject(rejection: Rejection, notices: list[Notice] | None = None) -> LocationResult:
            return LocationResult(
                accepted=False,
                location=location,
                config=previous,
                byte_count=utf8_length(previous.content),
                rejection=rejection,
                notices=notices or [],
            )

        if not self._capability.authorize(actor):
            logger.debug("Actor %s lacks the capability to write %s", actor.id, location)
            return reject(_unauthorized())
        if not known:
            logger.info("Write to unknown location %r refused", location)
            return reject(Rejection(
                reason=RejectionReason.UNKNOWN_LOCATION,
                message=f"Unknown location {location!r}. Expected one of: {', '.join(self.locations)}.",
            ))
        rejection = self._check_token_and_rate(actor, token, location_token_scope(location), location, scope)
        if rejection is not None:
            return reject(rejection)

        notices: list[Notice] = []
        updates: dict[str, Any] = {}

        if proposal.content is not None:
            cleaned = sanitize_content(proposal.content, max_bytes=self._max_content_bytes)
            if not cleaned.ok:
                logger.info("Content for %s rejected: %s", location, cleaned.rejection.reason.value)
                return reject(cleaned.rejection)
            notices.extend(cleaned.notices)
            updates["content"] = cleaned.content

        if proposal.rule_set is not None:
            rule_set, rule_notices = self.sanitize_rule_set(proposal.rule_set, previous.rule_set)
            notices.extend(rule_notices)
            updates["rule_set"] = rule_set

        if proposal.linked_items is not None:
            items, item_notices, rejection = self.parse_linked_items(proposal.linked_items)
            if rejection is not None:
                return reject(rejection, notices)
            notices.extend(item_notices)
            updates["linked_items"] = items

        config = previous.model_copy(update=updates)
        entries = self._location_entries(actor, location, previous, config)
        receipt = self._writer.validated_write(location, config, entries)
        self._stamp(actor, location, scope)

        for entry in receipt.entries:
            logger.info("Saved %s for %s as snapshot #%d", entry.kind.value, location, entry.id)
        return LocationResult(
            accepted=True,
            location=location,
            config=config,
            byte_count=utf8_length(config.content),
            content_snapshot_id=receipt.snapshot_id(PayloadKind.CONTENT),
            linked_items_snapshot_id=receipt.snapshot_id(PayloadKind.LINKED_ITEMS),
            notices=notices + receipt.notices,
        )

    def _location_entries(
        self, actor: Actor, location: str, previous: LocationConfig, config: LocationConfig
    ) -> list[SnapshotEntry]:
        """Build one entry per sub-resource that actually changed."""
        entries: list[SnapshotEntry] = []
        if config.content != previous.content or config.rule_set != previous.rule_set:
            size = utf8_length(config.content)
            entries.append(self._entry(
                actor,
                SnapshotAction.SAVE,
                location,
                ContentPayload(content=config.content, rule_set=config.rule_set),
                summary=f"Content saved ({size:,} bytes, {len(config.rule_set.rules)} rule(s))",
                size=size,
            ))

        if config.linked_items != previous.linked_items:
            old_urls = [item.url for item in previous.linked_items]
            new_urls = [item.url for item in config.linked_items]
            added = [url for url in new_urls if url not in old_urls]
            removed = [url for url in old_urls if url not in new_urls]
            # A pure removal logs the list as it was, so restoring undoes it.
            items = previous.linked_items if removed and not added else config.linked_items
            if added or removed:
                summary = f"{len(added)} added, {len(removed)} removed"
            else:
                summary = "Linked item rules or order changed"
            entries.append(self._entry(
                actor,
                SnapshotAction.SAVE,
                location,
                LinkedItemsPayload(items=list(items)),
                summary=summary,
                size=len(items),
            ))
        return entries

    # ------------------------------------------------------------------
    # Structural validation
    # ------------------------------------------------------------------

    def sanitize_rule_set(
        self, raw: Any, fallback: RuleSet | None = None
    ) -> tuple[RuleSet, list[Notice]]:
        """Decode (if JSON text) and structurally validate a rule set.

        Text that does not decode leaves *fallback* in place (an unrestricted
        set when omitted) and adds a notice.
        """
        decoded, rejection = _decode_json(raw, "rule set")
        if rejection is not None:
            logger.info("Undecodable rule set ignored: %s", rejection.message)
            notice = Notice(code=NoticeCode.MALFORMED_RULE_IGNORED, message=rejection.message)
            return fallback if fallback is not None else RuleSet(), [notice]
        return self._engine.sanitize(decoded)

    def parse_linked_items(self, raw: Any) -> tuple[list[LinkedItem], list[Notice], Rejection | None]:
        """Parse a linked-item list from JSON text or a list.

        Accepts ``{url, rule_set}`` objects (``conditions`` is read as an
        alias of ``rule_set``) and plain URL strings. Entries that are not
        absolute http(s) URLs are dropped with a notice.
        """
        decoded, rejection = _decode_json(raw, "linked item list")
        if rejection is not None:
            return [], [], rejection
        if decoded is None:
            return [], [], None
        if not isinstance(decoded, list):
            return [], [], Rejection(
                reason=RejectionReason.MALFORMED_INPUT,
                message="Linked items must be a list.",
            )

        items: list[LinkedItem] = []
        notices: list[Notice] = []
        for position, entry in enumerate(decoded, start=1):
            if isinstance(entry, LinkedItem):
                entry = entry.model_dump(mode="json")
            if isinstance(entry, str):
                url, raw_rules = entry, None
            elif isinstance(entry, dict):
                url = entry.get("url")
                raw_rules = entry.get("rule_set", entry.get("conditions"))
            else:
                url, raw_rules = None, None

            url = url.strip() if isinstance(url, str) else ""
            if not _is_absolute_http_url(url):
                notices.append(Notice(
                    code=NoticeCode.INVALID_ITEM_DROPPED,
                    message=f"Item {position} was dropped: not an absolute http(s) URL.",
                ))
                continue

            rule_set, rule_notices = self.sanitize_rule_set(raw_rules)
            notices.extend(rule_notices)
            items.append(LinkedItem(url=url, rule_set=rule_set))
        return items, notices, None

    # ------------------------------------------------------------------
    # Managed files
    # ------------------------------------------------------------------

    def validate_file(
        self,
        actor: Actor,
        proposal: FileProposal,
        token: str,
        scope: RequestScope | None = None,
    ) -> FileResult:
        """Create or edit a managed file through the full gate sequence."""
        scope = scope or RequestScope()
        key = proposal.file_id or f"new:{proposal.filename or proposal.label}"
        memo = scope.recall("file", key)
        if memo is not None:
            return memo

        existing = self._file_store.get(proposal.file_id) if proposal.file_id else None
        rejection = self._check_file_access(actor, token, scope, bucket=FILES_BUCKET)
        if rejection is None:
            result = self._save_file(actor, proposal, existing, scope)
        else:
            result = self._file_rejection(existing, rejection)
        scope.remember("file", key, result)
        return result

    def upload_file(
        self,
        actor: Actor,
        data: bytes,
        filename: str,
        token: str,
        *,
        label: str = "",
        location: str = "head",
        rule_set: Any = None,
        scope: RequestScope | None = None,
    ) -> FileResult:
        """Create a managed file from uploaded bytes.

        The upload must carry the managed extension, fit the file cap and
        decode as UTF-8. The label defaults to the file's stem.
        """
        scope = scope or RequestScope()
        key = f"upload:{filename}"
        memo = scope.recall("file", key)
        if memo is not None:
            return memo

        extension = self._file_store.extension
        rejection = self._check_file_access(actor, token, scope, bucket=FILES_BUCKET)
        if rejection is None and not isinstance(data, (bytes, bytearray)):
            rejection = Rejection(
                reason=RejectionReason.INVALID_CONTENT_TYPE,
                message="Upload must be raw bytes.",
            )
        if rejection is None and not filename.lower().endswith(extension.lower()):
            rejection = Rejection(
                reason=RejectionReason.INVALID_CONTENT_TYPE,
                message=f"Only {extension} files can be uploaded.",
            )
        if rejection is None and len(data) > self._max_file_bytes:
            rejection = Rejection(
                reason=RejectionReason.CONTENT_TOO_LARGE,
                message=f"Upload is {len(data):,} bytes; the maximum is {self._max_file_bytes:,} bytes.",
            )

        if rejection is not None:
            result = self._file_rejection(None, rejection)
        else:
            stem = filename.rsplit("/", 1)[-1][: -len(extension)]
            proposal = FileProposal(
                label=label.strip() or stem,
                filename=filename.rsplit("/", 1)[-1],
                content=bytes(data),
                location=location,
                rule_set=rule_set,
            )
            result = self._save_file(actor, proposal, None, scope)
        scope.remember("file", key, result)
        return result

    def delete_file(
        self,
        actor: Actor,
        file_id: str,
        token: str,
        scope: RequestScope | None = None,
    ) -> FileResult:
        """Delete a managed file, logging its last content for restore.

        Deletion passes the capability and integrity gates only.
        """
        scope = scope or RequestScope()
        memo = scope.recall("file-delete", file_id)
        if memo is not None:
            return memo

        existing = self._file_store.get(file_id)
        rejection = self._check_file_access(actor, token, scope, bucket=None)
        if rejection is None and existing is None:
            rejection = Rejection(
                reason=RejectionReason.FILE_NOT_FOUND,
                message=f"No managed file with id {file_id!r}.",
            )
        if rejection is not None:
            result = self._file_rejection(existing, rejection)
        else:
            content = self._file_store.read_content(existing)
            entry = self._entry(
                actor,
                SnapshotAction.DELETE,
                existing.location,
                FilePayload(file=existing, content=content),
                subject_key=existing.file_id,
                summary=f"Deleted {existing.label} ({existing.filename})",
                size=utf8_length(content),
            )
            receipt = self._writer.validated_file_delete(existing.file_id, entry)
            logger.info("Deleted managed file %s", existing.file_id)
            result = FileResult(
                accepted=True,
                file=existing,
                content=content,
                byte_count=utf8_length(content),
                snapshot_id=receipt.snapshot_id(PayloadKind.FILE),
                notices=receipt.notices,
            )
        scope.remember("file-delete", file_id, result)
        return result

    def _save_file(
        self,
        actor: Actor,
        proposal: FileProposal,
        existing: ManagedFile | None,
        scope: RequestScope,
    ) -> FileResult:
        """Gates 4 and 5 for a file, then write. Access gates already passed."""

        def reject(reason: RejectionReason, message: str) -> FileResult:
            logger.info("Managed file write refused: %s", reason.value)
            return self._file_rejection(existing, Rejection(reason=reason, message=message))

        if proposal.file_id and existing is None:
            return reject(RejectionReason.FILE_NOT_FOUND, f"No managed file with id {proposal.file_id!r}.")
        if proposal.location not in self.locations:
            return reject(
                RejectionReason.UNKNOWN_LOCATION,
                f"Unknown location {proposal.location!r}. Expected one of: {', '.join(self.locations)}.",
            )
        label = proposal.label.strip() if isinstance(proposal.label, str) else ""
        if not label:
            return reject(RejectionReason.MALFORMED_INPUT, "A label is required.")

        cleaned = sanitize_content(proposal.content, max_bytes=self._max_file_bytes)
        if not cleaned.ok:
            return self._file_rejection(existing, cleaned.rejection)
        if not cleaned.content.strip():
            return reject(RejectionReason.MALFORMED_INPUT, "File content cannot be empty.")
        notices = list(cleaned.notices)

        if proposal.rule_set is None:
            rule_set = existing.rule_set if existing else RuleSet()
        else:
            rule_set, rule_notices = self.sanitize_rule_set(
                proposal.rule_set, existing.rule_set if existing else None
            )
            notices.extend(rule_notices)

        extension = self._file_store.extension
        filename = normalize_filename(proposal.filename, label, extension)
        if not filename:
            return reject(RejectionReason.MALFORMED_INPUT, "A usable filename could not be derived.")
        if existing is None or filename != existing.filename:
            filename = self._file_store.unique_filename(filename)
        file_id = existing.file_id if existing else self._unique_file_id(file_id_for(filename, extension))

        file = ManagedFile(
            file_id=file_id,
            label=label,
            filename=filename,
            location=proposal.location,
            rule_set=rule_set,
        )
        previous_content = self._file_store.read_content(existing) if existing else None
        entries: list[SnapshotEntry] = []
        if file != existing or cleaned.content != previous_content:
            size = utf8_length(cleaned.content)
            entries.append(self._entry(
                actor,
                SnapshotAction.SAVE,
                file.location,
                FilePayload(file=file, content=cleaned.content),
                subject_key=file.file_id,
                summary=f"{label} ({filename})",
                size=size,
            ))

        receipt = self._writer.validated_file_write(
            file, cleaned.content, entries, replacing=existing.file_id if existing else None
        )
        self._stamp(actor, FILES_BUCKET, scope)
        logger.info("Saved managed file %s (%s)", file.file_id, file.filename)
        return FileResult(
            accepted=True,
            file=file,
            content=cleaned.content,
            byte_count=utf8_length(cleaned.content),
            snapshot_id=receipt.snapshot_id(PayloadKind.FILE),
            notices=notices + receipt.notices,
        )

    def _unique_file_id(self, base: str) -> str:
        candidate, suffix = base, 2
        while self._file_store.get(candidate) is not None:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    def _file_rejection(self, existing: ManagedFile | None, rejection: Rejection) -> FileResult:
        content = self._file_store.read_content(existing) if existing else ""
        return FileResult(
            accepted=False,
            file=existing,
            content=content,
            byte_count=utf8_length(content),
            rejection=rejection,
        )

    # ------------------------------------------------------------------
    # Gates 1-3
    # ------------------------------------------------------------------

    def authorize(self, actor: Actor, token: str, token_scope: str) -> Rejection | None:
        """Capability and integrity gates only, for restores and settings."""
        if not self._capability.authorize(actor):
            logger.debug("Actor %s lacks the capability for %s", actor.id, token_scope)
            return _unauthorized()
        return self._check_token_and_rate(actor, token, token_scope, None, RequestScope())

    def _check_file_access(
        self, actor: Actor, token: str, scope: RequestScope, *, bucket: str | None
    ) -> Rejection | None:
        if not self._capability.authorize(actor):
            logger.debug("Actor %s lacks the capability to manage files", actor.id)
            return _unauthorized()
        return self._check_token_and_rate(actor, token, FILES_TOKEN_SCOPE, bucket, scope)

    def _check_token_and_rate(
        self,
        actor: Actor,
        token: str,
        token_scope: str,
        bucket: str | None,
        scope: RequestScope,
    ) -> Rejection | None:
        if not self._integrity.verify(token or "", token_scope, actor.id):
            logger.warning("Integrity check failed for %s on %s", actor.id, token_scope)
            return Rejection(
                reason=RejectionReason.INTEGRITY_CHECK_FAILED,
                message="The request could not be verified. Reload and try again.",
            )
        if bucket is None or scope.is_admitted(bucket):
            return None
        if self._limiter.is_limited(actor.id, bucket):
            retry_after = self._limiter.retry_after(actor.id, bucket)
            logger.info("Rate limited %s on %s for %.1fs", actor.id, bucket, retry_after)
            return Rejection(
                reason=RejectionReason.RATE_LIMITED,
                message=f"Please wait {math.ceil(retry_after)} second(s) before saving again.",
                retry_after=retry_after,
            )
        return None

    def _stamp(self, actor: Actor, bucket: str, scope: RequestScope) -> None:
        if scope.is_admitted(bucket):
            return
        self._limiter.record(actor.id, bucket)
        scope.admit(bucket)

    def _entry(
        self,
        actor: Actor,
        action: SnapshotAction,
        location: str,
        payload: ContentPayload | LinkedItemsPayload | FilePayload,
        *,
        subject_key: str | None = None,
        summary: str = "",
        size: int | None = None,
    ) -> SnapshotEntry:
        return SnapshotEntry(
            timestamp=self._clock.now(),
            actor_id=actor.id,
            actor_name=actor.label,
            action=action,
            location_key=location,
            subject_key=subject_key,
            payload=payload,
            summary=summary,
            size=size,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _unauthorized() -> Rejection:
    return Rejection(
        reason=RejectionReason.UNAUTHORIZED,
        message="You do not have permission to change this content.",
    )


def _decode_json(raw: Any, what: str) -> tuple[Any, Rejection | None]:
    """Decode JSON text; pass other values through. Blank text decodes to ``None``."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None, Rejection(
                reason=RejectionReason.MALFORMED_INPUT,
                message=f"The {what} is not valid UTF-8.",
            )
    if not isinstance(raw, str):
        return raw, None
    if not raw.strip():
        return None, None
    try:
        return json.loads(raw), None
    except json.JSONDecodeError as exc:
        return None, Rejection(
            reason=RejectionReason.MALFORMED_INPUT,
            message=f"The {what} is not valid JSON: {exc.msg}.",
        )


def _is_absolute_http_url(url: str) -> bool:
    if not url or any(ch.isspace() for ch in url):
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(parts.netloc)
