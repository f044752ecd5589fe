"""Tests for all Pydantic data models — validation, immutability, defaults."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from snippetvault.models import (
    Actor,
    ContentPayload,
    FilePayload,
    InjectionPlan,
    LinkedItem,
    LinkedItemsPayload,
    LocationConfig,
    LocationProposal,
    ManagedFile,
    PayloadKind,
    Rejection,
    RejectionReason,
    Rule,
    RuleLogic,
    RuleSet,
    RuleType,
    SnapshotAction,
    SnapshotEntry,
)
from snippetvault.models.outcomes import ContentResult
from snippetvault.models.settings import clamp_history_limit


class TestRuleModels:
    def test_rule_type_values(self):
        assert RuleType.FRONT_PAGE == "front_page"
        assert RuleType.BY_DATETIME == "by_datetime"
        assert len(RuleType) == 11

    def test_default_rule_set_is_unrestricted(self):
        rule_set = RuleSet()
        assert rule_set.logic is RuleLogic.AND
        assert rule_set.is_unrestricted

    def test_rule_set_is_frozen(self):
        rule_set = RuleSet(rules=[Rule(type=RuleType.SINGULAR)])
        with pytest.raises(ValidationError):
            rule_set.logic = RuleLogic.OR

    def test_unknown_type_rejected_by_model(self):
        with pytest.raises(ValidationError):
            Rule(type="moon_phase")


class TestLocationModels:
    def test_defaults(self):
        config = LocationConfig()
        assert config.content == ""
        assert config.linked_items == []
        assert config.rule_set.is_unrestricted

    def test_linked_item_equality_includes_rules(self):
        plain = LinkedItem(url="https://a.example/x.js")
        ruled = LinkedItem(url="https://a.example/x.js", rule_set=RuleSet(rules=[Rule(type=RuleType.LOGGED_IN)]))
        assert plain != ruled

    def test_managed_file_default_location(self):
        assert ManagedFile(file_id="a", label="A", filename="a.js").location == "head"

    def test_injection_plan_is_empty(self):
        assert InjectionPlan(location="head").is_empty
        assert not InjectionPlan(location="head", urls=["https://a.example/x.js"]).is_empty


class TestSnapshotModels:
    def _entry(self, payload) -> SnapshotEntry:
        return SnapshotEntry(action=SnapshotAction.SAVE, location_key="head", payload=payload)

    @pytest.mark.parametrize("payload, kind", [
        (ContentPayload(content="x"), PayloadKind.CONTENT),
        (LinkedItemsPayload(items=[LinkedItem(url="https://a.example/x.js")]), PayloadKind.LINKED_ITEMS),
        (FilePayload(file=ManagedFile(file_id="a", label="A", filename="a.js"), content="a"), PayloadKind.FILE),
    ])
    def test_payload_is_tagged(self, payload, kind):
        entry = self._entry(payload)
        assert entry.kind is kind
        restored = SnapshotEntry.model_validate_json(entry.model_dump_json())
        assert type(restored.payload) is type(payload)

    def test_unknown_payload_tag_rejected(self):
        with pytest.raises(ValidationError):
            SnapshotEntry.model_validate({
                "action": "save",
                "location_key": "head",
                "payload": {"kind": "stylesheet", "content": "x"},
            })

    def test_timestamp_is_aware(self):
        assert self._entry(ContentPayload(content="")).timestamp.tzinfo is not None


class TestProposalsAndOutcomes:
    @pytest.mark.parametrize("proposal, resource", [
        (LocationProposal(content="x"), "content"),
        (LocationProposal(rule_set={"rules": []}), "content"),
        (LocationProposal(linked_items=[]), "linked_items"),
        (LocationProposal(content="", linked_items=[]), "content+linked_items"),
        (LocationProposal(), "none"),
    ])
    def test_resource(self, proposal, resource):
        assert proposal.resource == resource

    def test_reason_shortcut(self):
        rejected = ContentResult(
            accepted=False,
            location="head",
            rejection=Rejection(reason=RejectionReason.RATE_LIMITED, message="wait", retry_after=4.0),
        )
        assert rejected.reason is RejectionReason.RATE_LIMITED
        assert ContentResult(accepted=True, location="head").reason is None

    def test_actor_label_falls_back_to_id(self):
        assert Actor(id="7").label == "7"
        assert Actor(id="7", display_name="Ada").label == "Ada"


@pytest.mark.parametrize("raw, expected", [(1, 3), (3, 3), (50, 50), (1000, 1000), (5000, 1000)])
def test_clamp_history_limit(raw, expected):
    assert clamp_history_limit(raw) == expected
