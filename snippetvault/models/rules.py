"""Rule-set models — the conditions that decide whether content applies."""

from __future__ import annotations

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict


class RuleType(str, Enum):
    """The closed set of recognized rule types."""

    FRONT_PAGE = "front_page"
    SINGULAR = "singular"
    POST_TYPE = "post_type"
    PAGE_ID = "page_id"
    URL_CONTAINS = "url_contains"
    LOGGED_IN = "logged_in"
    LOGGED_OUT = "logged_out"
    BY_DATE = "by_date"
    BY_DATETIME = "by_datetime"
    WEEK_NUMBER = "week_number"
    BY_MONTH = "by_month"


class RuleLogic(str, Enum):
    """How the rules of a set are combined."""

    AND = "and"
    OR = "or"


# Rule types whose values list is always empty.
FLAG_RULE_TYPES: frozenset[RuleType] = frozenset({
    RuleType.FRONT_PAGE,
    RuleType.SINGULAR,
    RuleType.LOGGED_IN,
    RuleType.LOGGED_OUT,
})

# Rule types carrying a start and an optional end.
RANGE_RULE_TYPES: frozenset[RuleType] = frozenset({
    RuleType.BY_DATE,
    RuleType.BY_DATETIME,
})

RULE_TYPE_LABELS: dict[RuleType, str] = {
    RuleType.FRONT_PAGE: "Front page only",
    RuleType.SINGULAR: "Any singular content view",
    RuleType.POST_TYPE: "Specific content types",
    RuleType.PAGE_ID: "Specific content IDs",
    RuleType.URL_CONTAINS: "URL contains",
    RuleType.LOGGED_IN: "Logged-in users only",
    RuleType.LOGGED_OUT: "Logged-out visitors only",
    RuleType.BY_DATE: "Date range",
    RuleType.BY_DATETIME: "Date & time range",
    RuleType.WEEK_NUMBER: "Specific week numbers",
    RuleType.BY_MONTH: "Specific months",
}


class Rule(BaseModel):
    """A single typed condition.

    The shape of ``values`` depends on ``type``: empty for flag types,
    one or two date strings for range types, a list for membership types.
    """

    model_config = ConfigDict(frozen=True)

    type: RuleType
    values: list[Union[int, str]] = []


class RuleSet(BaseModel):
    """A logic combinator over an ordered list of rules.

    An empty ``rules`` list means "no restriction": the set always applies.
    """

    model_config = ConfigDict(frozen=True)

    logic: RuleLogic = RuleLogic.AND
    rules: list[Rule] = []

    @property
    def is_unrestricted(self) -> bool:
        return not self.rules
