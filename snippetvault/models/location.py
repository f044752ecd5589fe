"""Current-state models for locations, linked items and managed files."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from snippetvault.models.rules import RuleSet


class LinkedItem(BaseModel):
    """An external reference (absolute http(s) URL) with its own rule set."""

    model_config = ConfigDict(frozen=True)

    url: str
    rule_set: RuleSet = RuleSet()


class LocationConfig(BaseModel):
    """Everything stored against one named location.

    ``content`` is either empty or has passed full sanitation.
    ``linked_items`` keeps insertion order; emission follows it.
    """

    model_config = ConfigDict(frozen=True)

    content: str = ""
    rule_set: RuleSet = RuleSet()
    linked_items: list[LinkedItem] = []


class ManagedFile(BaseModel):
    """Metadata for a managed standalone file. The body lives on disk."""

    model_config = ConfigDict(frozen=True)

    file_id: str
    label: str
    filename: str
    location: str = "head"
    rule_set: RuleSet = RuleSet()


class InjectionPlan(BaseModel):
    """What applies at one location for one request, in emission order."""

    model_config = ConfigDict(frozen=True)

    location: str
    content: str | None = None
    urls: list[str] = []
    files: list[ManagedFile] = []

    @property
    def is_empty(self) -> bool:
        return self.content is None and not self.urls and not self.files
