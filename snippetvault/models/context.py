"""Identity and request-context models consumed by the gates and the rule engine."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Actor(BaseModel):
    """The calling user."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str = ""
    capabilities: list[str] = []

    @property
    def label(self) -> str:
        return self.display_name or self.id


class RequestContext(BaseModel):
    """Read-only snapshot of request-time facts used to evaluate rules.

    ``now`` is an aware datetime already converted to the site's time zone.
    """

    model_config = ConfigDict(frozen=True)

    now: datetime
    is_front_page: bool = False
    is_singular: bool = False
    content_type: str | None = None
    object_id: int | None = None
    path: str = "/"
    is_authenticated: bool = False
