"""Rule evaluation engine.

Two entry points over the same ``RuleSet`` type:

- ``sanitize()`` (write time) checks every rule against the closed set of
  recognized types and filters or clamps values per type. It never raises;
  unrecognized input degrades to "rule omitted" and is reported as a notice.
- ``evaluate()`` (read time) decides whether a rule set applies to a request.
  AND stops at the first false rule, OR at the first true one.

Adding a rule type means one value sanitizer and one evaluator here; the
write path's tolerance for unknown input is unaffected.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from snippetvault.models.context import RequestContext
from snippetvault.models.outcomes import Notice, NoticeCode
from snippetvault.models.rules import (
    FLAG_RULE_TYPES,
    RANGE_RULE_TYPES,
    RULE_TYPE_LABELS,
    Rule,
    RuleLogic,
    RuleSet,
    RuleType,
)

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2})?$")
_KEY_STRIP_RE = re.compile(r"[^a-z0-9_\-]")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")

# Values that mean "no restriction" in the legacy single-condition format.
_LEGACY_ALL = "all"


# ---------------------------------------------------------------------------
# Value coercion helpers
# ---------------------------------------------------------------------------


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and re.fullmatch(r"\s*-?\d+\s*", value):
        return int(value)
    return None


def _ints_in_range(values: list[Any], low: int, high: int | None) -> list[int]:
    clean: list[int] = []
    for raw in values:
        number = _as_int(raw)
        if number is None or number < low or (high is not None and number > high):
            continue
        clean.append(number)
    return clean


def _content_type_keys(values: list[Any]) -> list[str]:
    clean: list[str] = []
    for raw in values:
        if not isinstance(raw, str):
            continue
        key = _KEY_STRIP_RE.sub("", raw.strip().lower())
        if key:
            clean.append(key)
    return clean


def _path_fragments(values: list[Any]) -> list[str]:
    clean: list[str] = []
    for raw in values:
        if isinstance(raw, bool) or not isinstance(raw, (str, int)):
            continue
        fragment = _CONTROL_RE.sub("", str(raw)).strip()
        if fragment:
            clean.append(fragment)
    return clean


def _valid_date(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _parse_local_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.replace(" ", "T"))


def _valid_datetime(value: str) -> bool:
    try:
        _parse_local_datetime(value)
    except ValueError:
        return False
    return True


def _range_bounds(values: list[Any], pattern: re.Pattern[str], check: Callable[[str], bool]) -> list[str]:
    clean = [
        v.strip() for v in values
        if isinstance(v, str) and pattern.match(v.strip()) and check(v.strip())
    ]
    return clean[:2]


_VALUE_SANITIZERS: dict[RuleType, Callable[[list[Any]], list[Any]]] = {
    RuleType.POST_TYPE: _content_type_keys,
    RuleType.PAGE_ID: lambda values: _ints_in_range(values, 1, None),
    RuleType.URL_CONTAINS: _path_fragments,
    RuleType.BY_DATE: lambda values: _range_bounds(values, _DATE_RE, _valid_date),
    RuleType.BY_DATETIME: lambda values: _range_bounds(values, _DATETIME_RE, _valid_datetime),
    RuleType.WEEK_NUMBER: lambda values: _ints_in_range(values, 1, 53),
    RuleType.BY_MONTH: lambda values: _ints_in_range(values, 1, 12),
}


# ---------------------------------------------------------------------------
# Per-type evaluators
# ---------------------------------------------------------------------------


def _naive_local(now: datetime) -> datetime:
    return now.replace(tzinfo=None, microsecond=0)


def _in_date_range(rule: Rule, ctx: RequestContext) -> bool:
    today = ctx.now.date()
    start = date.fromisoformat(str(rule.values[0]))
    if today < start:
        return False
    if len(rule.values) > 1:
        return today <= date.fromisoformat(str(rule.values[1]))
    return True


def _in_datetime_range(rule: Rule, ctx: RequestContext) -> bool:
    now = _naive_local(ctx.now)
    if now < _parse_local_datetime(str(rule.values[0])):
        return False
    if len(rule.values) > 1:
        end_raw = str(rule.values[1])
        end = _parse_local_datetime(end_raw)
        # Minute-precision bounds include the whole final minute.
        comparable = now.replace(second=0) if len(end_raw) <= 16 else now
        return comparable <= end
    return True


_EVALUATORS: dict[RuleType, Callable[[Rule, RequestContext], bool]] = {
    RuleType.FRONT_PAGE: lambda rule, ctx: ctx.is_front_page,
    RuleType.SINGULAR: lambda rule, ctx: ctx.is_singular,
    RuleType.POST_TYPE: lambda rule, ctx: (
        ctx.is_singular and ctx.content_type is not None and ctx.content_type in rule.values
    ),
    RuleType.PAGE_ID: lambda rule, ctx: ctx.object_id is not None and ctx.object_id in rule.values,
    RuleType.URL_CONTAINS: lambda rule, ctx: any(str(v) in ctx.path for v in rule.values),
    RuleType.LOGGED_IN: lambda rule, ctx: ctx.is_authenticated,
    RuleType.LOGGED_OUT: lambda rule, ctx: not ctx.is_authenticated,
    RuleType.BY_DATE: _in_date_range,
    RuleType.BY_DATETIME: _in_datetime_range,
    RuleType.WEEK_NUMBER: lambda rule, ctx: ctx.now.isocalendar()[1] in rule.values,
    RuleType.BY_MONTH: lambda rule, ctx: ctx.now.month in rule.values,
}


class RuleEngine:
    """Structural validator and applicability evaluator for rule sets."""

    # ------------------------------------------------------------------
    # Write time
    # ------------------------------------------------------------------

    def sanitize(self, raw: Any) -> tuple[RuleSet, list[Notice]]:
        """Normalize a submitted rule set.

        Accepts a ``RuleSet``, a ``{logic, rules}`` mapping, or the legacy
        single-condition ``{type, values}`` mapping. Anything else yields an
        unrestricted set plus a notice.
        """
        notices: list[Notice] = []
        if raw is None:
            return RuleSet(), notices
        if isinstance(raw, RuleSet):
            raw = raw.model_dump(mode="json")
        if not isinstance(raw, dict):
            notices.append(Notice(
                code=NoticeCode.MALFORMED_RULE_IGNORED,
                message="Rule set must be an object with 'logic' and 'rules'; treated as no restriction.",
            ))
            return RuleSet(), notices

        if "rules" not in raw and "type" in raw:
            raw = self._migrate_legacy(raw)

        logic_raw = raw.get("logic")
        logic = (
            RuleLogic.OR
            if isinstance(logic_raw, str) and logic_raw.strip().lower() == RuleLogic.OR.value
            else RuleLogic.AND
        )
        raw_rules = raw.get("rules")
        if not isinstance(raw_rules, list):
            raw_rules = []

        rules: list[Rule] = []
        for position, raw_rule in enumerate(raw_rules, start=1):
            rule = self.sanitize_rule(raw_rule)
            if rule is None:
                notices.append(Notice(
                    code=NoticeCode.MALFORMED_RULE_IGNORED,
                    message=f"Rule {position} was not recognized and has been omitted.",
                ))
                logger.info("Dropped unrecognized rule at position %d: %r", position, raw_rule)
                continue
            rules.append(rule)

        return RuleSet(logic=logic, rules=rules), notices

    def sanitize_rule(self, raw: Any) -> Rule | None:
        """Return a clean ``Rule`` or ``None`` when the rule must be omitted."""
        if isinstance(raw, Rule):
            raw = raw.model_dump(mode="json")
        if not isinstance(raw, dict):
            return None
        type_raw = raw.get("type")
        try:
            rule_type = RuleType(type_raw)
        except ValueError:
            return None

        values = raw.get("values")
        if not isinstance(values, list):
            values = []

        if rule_type in FLAG_RULE_TYPES:
            return Rule(type=rule_type, values=[])

        clean = _VALUE_SANITIZERS[rule_type](values)
        if rule_type in RANGE_RULE_TYPES and not clean:
            # A range without a start date can never be evaluated.
            return None
        return Rule(type=rule_type, values=clean)

    @staticmethod
    def _migrate_legacy(raw: dict[str, Any]) -> dict[str, Any]:
        if raw.get("type") in (None, "", _LEGACY_ALL):
            return {"logic": RuleLogic.AND.value, "rules": []}
        return {"logic": RuleLogic.AND.value, "rules": [raw]}

    # ------------------------------------------------------------------
    # Read time
    # ------------------------------------------------------------------

    def evaluate(self, rule_set: RuleSet, context: RequestContext) -> bool:
        """Decide whether *rule_set* applies to *context*."""
        if not rule_set.rules:
            return True
        if rule_set.logic is RuleLogic.OR:
            return any(self.evaluate_rule(rule, context) for rule in rule_set.rules)
        return all(self.evaluate_rule(rule, context) for rule in rule_set.rules)

    def evaluate_rule(self, rule: Rule, context: RequestContext) -> bool:
        """Evaluate one rule. Exhaustive over the closed type set."""
        return _EVALUATORS[rule.type](rule, context)


def describe_rule_set(rule_set: RuleSet) -> str:
    """Plain-text rendering of a rule set for history and CLI output."""
    if not rule_set.rules:
        return "All pages (no conditions)"
    lines = [f"Match: {rule_set.logic.value.upper()} of:"]
    for index, rule in enumerate(rule_set.rules, start=1):
        label = RULE_TYPE_LABELS.get(rule.type, rule.type.value)
        suffix = f" -> {', '.join(str(v) for v in rule.values)}" if rule.values else ""
        lines.append(f"  Rule {index}: {label}{suffix}")
    return "\n".join(lines)
