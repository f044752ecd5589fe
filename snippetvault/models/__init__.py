"""snippetvault data models — all Pydantic v2, all frozen (immutable)."""

from snippetvault.models.context import Actor, RequestContext
from snippetvault.models.location import InjectionPlan, LinkedItem, LocationConfig, ManagedFile
from snippetvault.models.outcomes import (
    ContentResult,
    FileResult,
    LinkedItemsResult,
    LocationResult,
    Notice,
    NoticeCode,
    Rejection,
    RejectionReason,
    RollbackResult,
    SettingsResult,
)
from snippetvault.models.proposals import FileProposal, LocationProposal
from snippetvault.models.rules import Rule, RuleLogic, RuleSet, RuleType
from snippetvault.models.settings import VaultSettings
from snippetvault.models.snapshot import (
    ContentPayload,
    FilePayload,
    HistoryRow,
    LinkedItemsPayload,
    PayloadKind,
    SnapshotAction,
    SnapshotEntry,
    SnapshotPayload,
    SnapshotQuery,
)

__all__ = [
    # context
    "Actor",
    "RequestContext",
    # rules
    "Rule",
    "RuleLogic",
    "RuleSet",
    "RuleType",
    # location
    "InjectionPlan",
    "LinkedItem",
    "LocationConfig",
    "ManagedFile",
    # snapshots
    "ContentPayload",
    "FilePayload",
    "HistoryRow",
    "LinkedItemsPayload",
    "PayloadKind",
    "SnapshotAction",
    "SnapshotEntry",
    "SnapshotPayload",
    "SnapshotQuery",
    # outcomes
    "ContentResult",
    "FileResult",
    "LinkedItemsResult",
    "LocationResult",
    "Notice",
    "NoticeCode",
    "Rejection",
    "RejectionReason",
    "RollbackResult",
    "SettingsResult",
    # proposals
    "FileProposal",
    "LocationProposal",
    # settings
    "VaultSettings",
]
