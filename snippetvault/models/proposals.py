"""Raw write proposals as submitted by a transport binding.

Fields are deliberately loose (``Any``): the validation pipeline owns the
decision of what is acceptable. ``None`` means "leave unchanged".
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class LocationProposal(BaseModel):
    """A proposed change to one location's configuration."""

    model_config = ConfigDict(frozen=True)

    content: Any = None
    rule_set: Any = None
    linked_items: Any = None

    @property
    def resource(self) -> str:
        """Which sub-resources this proposal touches, e.g. ``content+linked_items``."""
        parts = []
        if self.content is not None or self.rule_set is not None:
            parts.append("content")
        if self.linked_items is not None:
            parts.append("linked_items")
        return "+".join(parts) or "none"


class FileProposal(BaseModel):
    """A proposed create or edit of a managed file.

    ``file_id`` names the file being edited; leave it empty to create one.
    """

    model_config = ConfigDict(frozen=True)

    file_id: str = ""
    label: str = ""
    filename: str = ""
    content: Any = None
    location: str = "head"
    rule_set: Any = None
