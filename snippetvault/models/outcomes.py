"""Typed results returned by the validation pipeline and the service façade.

Gate failures never raise. They come back as a ``Rejection`` on a result
model whose ``accepted`` flag is ``False``, carrying the unchanged previous
state. Non-fatal findings are attached as ``Notice`` entries.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from snippetvault.models.location import LinkedItem, LocationConfig, ManagedFile
from snippetvault.models.rules import RuleSet
from snippetvault.models.settings import VaultSettings
from snippetvault.models.snapshot import PayloadKind, SnapshotPayload


class RejectionReason(str, Enum):
    """Fatal outcomes of a write attempt."""

    UNAUTHORIZED = "unauthorized"
    INTEGRITY_CHECK_FAILED = "integrity_check_failed"
    RATE_LIMITED = "rate_limited"
    UNKNOWN_LOCATION = "unknown_location"
    MALFORMED_INPUT = "malformed_input"
    INVALID_CONTENT_TYPE = "invalid_content_type"
    CONTENT_TOO_LARGE = "content_too_large"
    DISALLOWED_SEQUENCE = "disallowed_sequence_detected"
    SNAPSHOT_NOT_FOUND = "snapshot_not_found"
    SNAPSHOT_SHAPE_MISMATCH = "snapshot_shape_mismatch"
    FILE_NOT_FOUND = "file_not_found"


class NoticeCode(str, Enum):
    """Non-fatal findings; the write still proceeds."""

    WRAPPER_TAGS_STRIPPED = "wrapper_tags_stripped"
    DANGEROUS_MARKUP = "dangerous_markup_detected"
    CONTROL_CHARACTERS_STRIPPED = "control_characters_stripped"
    MALFORMED_RULE_IGNORED = "malformed_rule_ignored"
    INVALID_ITEM_DROPPED = "invalid_item_dropped"
    LOG_APPEND_FAILED = "log_append_failed"
    RESTORED_UNDER_NEW_FILENAME = "restored_under_new_filename"


class Notice(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: NoticeCode
    message: str


class Rejection(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: RejectionReason
    message: str
    retry_after: float | None = None


class OutcomeBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    accepted: bool
    rejection: Rejection | None = None
    notices: list[Notice] = []

    @property
    def reason(self) -> RejectionReason | None:
        return self.rejection.reason if self.rejection else None


class ContentResult(OutcomeBase):
    """Result of a content write. On rejection, holds the previous content."""

    location: str
    content: str = ""
    rule_set: RuleSet = RuleSet()
    byte_count: int = 0
    snapshot_id: int | None = None


class LinkedItemsResult(OutcomeBase):
    """Result of a linked-items write. On rejection, holds the previous list."""

    location: str
    items: list[LinkedItem] = []
    snapshot_id: int | None = None

    @property
    def count(self) -> int:
        return len(self.items)


class FileResult(OutcomeBase):
    """Result of a managed-file write or delete."""

    file: ManagedFile | None = None
    content: str = ""
    byte_count: int = 0
    snapshot_id: int | None = None


class LocationResult(OutcomeBase):
    """Result of a whole-location write.

    On rejection, ``config`` is the unchanged previous configuration.
    """

    location: str
    config: LocationConfig = LocationConfig()
    byte_count: int = 0
    content_snapshot_id: int | None = None
    linked_items_snapshot_id: int | None = None


class RollbackResult(OutcomeBase):
    """Result of restoring a snapshot.

    ``restored_from`` is the requested entry; ``snapshot_id`` is the new
    ``restore`` entry, or ``None`` if it could not be logged.
    """

    kind: PayloadKind
    restored_from: int
    snapshot_id: int | None = None
    payload: SnapshotPayload | None = None


class SettingsResult(OutcomeBase):
    """Result of a settings update. On rejection, holds the current settings."""

    settings: VaultSettings = VaultSettings()
    pruned: int = 0
