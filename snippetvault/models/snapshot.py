"""Snapshot log models (append-only history of accepted changes).

Each ``SnapshotEntry`` carries enough state to reconstruct the resource it
describes. Entries are never updated; the only deletion is retention pruning,
which is FIFO by ``id``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from snippetvault.models.location import LinkedItem, ManagedFile
from snippetvault.models.rules import RuleSet


class SnapshotAction(str, Enum):
    """What kind of change produced the entry."""

    SAVE = "save"
    RESTORE = "restore"
    DELETE = "delete"


class PayloadKind(str, Enum):
    """Resource kinds that can be snapshotted and restored."""

    CONTENT = "content"
    LINKED_ITEMS = "linked_items"
    FILE = "file"


class ContentPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["content"] = "content"
    content: str
    rule_set: RuleSet = RuleSet()


class LinkedItemsPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["linked_items"] = "linked_items"
    items: list[LinkedItem] = []


class FilePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["file"] = "file"
    file: ManagedFile
    content: str


SnapshotPayload = Annotated[
    Union[ContentPayload, LinkedItemsPayload, FilePayload],
    Field(discriminator="kind"),
]


class SnapshotEntry(BaseModel):
    """A single entry in the snapshot log.

    ``id`` is assigned by the store on append and is the only ordering
    guarantee; timestamps may collide.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    actor_id: str = ""
    actor_name: str = ""
    action: SnapshotAction
    location_key: str
    subject_key: str | None = None
    payload: SnapshotPayload
    summary: str = ""
    size: int | None = None

    @property
    def kind(self) -> PayloadKind:
        return PayloadKind(self.payload.kind)


class SnapshotQuery(BaseModel):
    """Parameters for filtering the snapshot log."""

    model_config = ConfigDict(frozen=True)

    location_key: str | None = None
    subject_key: str | None = None
    kind: PayloadKind | None = None
    limit: int = 100
    offset: int = 0


class HistoryRow(BaseModel):
    """Caller-facing projection of a snapshot entry."""

    model_config = ConfigDict(frozen=True)

    id: int
    action: SnapshotAction
    timestamp: datetime
    actor: str
    size_or_count: int | None = None
    summary: str = ""
