"""The two write paths into current state.

``validated_write`` and ``validated_file_write`` persist a proposal that has
already cleared every pipeline gate. ``trusted_write`` and ``restore`` put a
previously logged payload back without re-running the gates, because
re-validating history against today's rules could alter what is restored.

Both paths write current state first and append to the snapshot log second.
A failed append is reported as a notice; a failed state write propagates.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

from snippetvault.core.clock import Clock, SystemClock
from snippetvault.core.file_store import ManagedFileStore
from snippetvault.core.hasher import utf8_length
from snippetvault.core.location_store import LocationConfigStore
from snippetvault.core.snapshot_store import (
    SnapshotNotFoundError,
    SnapshotShapeError,
    SnapshotStore,
)
from snippetvault.core.storage import StorageError
from snippetvault.models.context import Actor
from snippetvault.models.location import LocationConfig, ManagedFile
from snippetvault.models.outcomes import (
    Notice,
    NoticeCode,
    Rejection,
    RejectionReason,
    RollbackResult,
)
from snippetvault.models.snapshot import (
    ContentPayload,
    FilePayload,
    LinkedItemsPayload,
    PayloadKind,
    SnapshotAction,
    SnapshotEntry,
)

logger = logging.getLogger(__name__)


class WriteReceipt(BaseModel):
    """What a write appended to the log, plus any logging notices."""

    model_config = ConfigDict(frozen=True)

    entries: list[SnapshotEntry] = []
    notices: list[Notice] = []

    def snapshot_id(self, kind: PayloadKind) -> int | None:
        for entry in self.entries:
            if entry.kind is kind:
                return entry.id
        return None


class ConfigWriter:
    """Sequences "write state, then append log" for every write path."""

    def __init__(
        self,
        locations: LocationConfigStore,
        files: ManagedFileStore,
        snapshots: SnapshotStore,
        clock: Clock | None = None,
    ) -> None:
        self._locations = locations
        self._files = files
        self._snapshots = snapshots
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Validated path
    # ------------------------------------------------------------------

    def validated_write(
        self, location: str, config: LocationConfig, entries: list[SnapshotEntry]
    ) -> WriteReceipt:
        self._locations.put(location, config)
        return self._append_all(entries)

    def validated_file_write(
        self,
        file: ManagedFile,
        content: str,
        entries: list[SnapshotEntry],
        *,
        replacing: str | None = None,
    ) -> WriteReceipt:
        self._files.write(file, content, replacing=replacing)
        return self._append_all(entries)

    def validated_file_delete(self, file_id: str, entry: SnapshotEntry) -> WriteReceipt:
        self._files.delete(file_id)
        return self._append_all([entry])

    # ------------------------------------------------------------------
    # Trusted path
    # ------------------------------------------------------------------

    def trusted_write(self, location: str, config: LocationConfig) -> None:
        """Write *config* as-is. The caller vouches it passed the gates once."""
        self._locations.put(location, config)

    def restore(self, snapshot_id: int, kind: PayloadKind, actor: Actor) -> RollbackResult:
        """Put a logged payload back and record a ``restore`` entry.

        Never touches the rate limiter and never re-runs sanitation.
        """
        try:
            entry = self._snapshots.require(snapshot_id, kind)
        except SnapshotNotFoundError as exc:
            logger.info("Restore of #%d refused: %s", snapshot_id, exc)
            return self._refused(kind, snapshot_id, RejectionReason.SNAPSHOT_NOT_FOUND, str(exc))
        except SnapshotShapeError as exc:
            logger.warning("Restore of #%d refused: %s", snapshot_id, exc)
            return self._refused(kind, snapshot_id, RejectionReason.SNAPSHOT_SHAPE_MISMATCH, str(exc))

        payload = entry.payload
        notices: list[Notice] = []
        if isinstance(payload, ContentPayload):
            current = self._locations.get(entry.location_key)
            self.trusted_write(
                entry.location_key,
                current.model_copy(update={"content": payload.content, "rule_set": payload.rule_set}),
            )
            size = utf8_length(payload.content)
        elif isinstance(payload, LinkedItemsPayload):
            current = self._locations.get(entry.location_key)
            self.trusted_write(
                entry.location_key,
                current.model_copy(update={"linked_items": list(payload.items)}),
            )
            size = len(payload.items)
        elif isinstance(payload, FilePayload):
            payload, notices = self._claim_filename(payload)
            existing = self._files.get(payload.file.file_id)
            self._files.write(
                payload.file,
                payload.content,
                replacing=existing.file_id if existing else None,
            )
            size = utf8_length(payload.content)
        else:
            raise TypeError(f"Unsupported snapshot payload: {type(payload).__name__}")

        restored = SnapshotEntry(
            timestamp=self._clock.now(),
            actor_id=actor.id,
            actor_name=actor.label,
            action=SnapshotAction.RESTORE,
            location_key=entry.location_key,
            subject_key=entry.subject_key,
            payload=payload,
            summary=f"Restored from snapshot #{snapshot_id}",
            size=size,
        )
        receipt = self._append_all([restored])
        logger.info("Restored %s snapshot #%d for %s", kind.value, snapshot_id, entry.location_key)
        return RollbackResult(
            accepted=True,
            kind=kind,
            restored_from=snapshot_id,
            snapshot_id=receipt.snapshot_id(kind),
            payload=payload,
            notices=notices + receipt.notices,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _claim_filename(self, payload: FilePayload) -> tuple[FilePayload, list[Notice]]:
        """Move a restored file off a filename another managed file now owns."""
        owner = self._files.owner_of(payload.file.filename)
        if owner is None or owner.file_id == payload.file.file_id:
            return payload, []
        filename = self._files.unique_filename(payload.file.filename)
        logger.warning(
            "Restoring %s: %s now belongs to %s, using %s",
            payload.file.file_id, payload.file.filename, owner.file_id, filename,
        )
        file = payload.file.model_copy(update={"filename": filename})
        notice = Notice(
            code=NoticeCode.RESTORED_UNDER_NEW_FILENAME,
            message=f"{payload.file.filename} is used by {owner.label}; restored as {filename}.",
        )
        return payload.model_copy(update={"file": file}), [notice]

    def _append_all(self, entries: list[SnapshotEntry]) -> WriteReceipt:
        appended: list[SnapshotEntry] = []
        notices: list[Notice] = []
        for entry in entries:
            try:
                appended.append(self._snapshots.append(entry))
            except StorageError as exc:
                logger.warning(
                    "State for %s was written but its %s snapshot was not logged: %s",
                    entry.location_key, entry.kind.value, exc,
                )
                notices.append(Notice(
                    code=NoticeCode.LOG_APPEND_FAILED,
                    message="The change was saved but could not be recorded in history.",
                ))
        return WriteReceipt(entries=appended, notices=notices)

    @staticmethod
    def _refused(
        kind: PayloadKind, snapshot_id: int, reason: RejectionReason, message: str
    ) -> RollbackResult:
        return RollbackResult(
            accepted=False,
            kind=kind,
            restored_from=snapshot_id,
            rejection=Rejection(reason=reason, message=message),
        )
