"""Tests for read-side selection and emission order."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from snippetvault.core.injector import Injector
from snippetvault.models.location import LinkedItem, LocationConfig, ManagedFile
from snippetvault.models.rules import Rule, RuleLogic, RuleSet, RuleType

FRONT_ONLY = RuleSet(rules=[Rule(type=RuleType.FRONT_PAGE)])
MEMBERS_ONLY = RuleSet(rules=[Rule(type=RuleType.LOGGED_IN)])


@pytest.fixture
def injector(location_store, file_store, engine) -> Injector:
    return Injector(location_store, file_store, engine)


class TestSelect:
    def test_empty_location(self, injector: Injector, make_context):
        plan = injector.select("head", make_context())
        assert plan.is_empty

    def test_emission_order(self, injector, location_store, file_store, make_context):
        location_store.put("head", LocationConfig(
            content="inline();",
            linked_items=[
                LinkedItem(url="https://b.example/b.js"),
                LinkedItem(url="https://a.example/a.js"),
            ],
        ))
        file_store.write(ManagedFile(file_id="second", label="Second", filename="second.js"), "2")
        file_store.write(ManagedFile(file_id="first", label="First", filename="first.js"), "1")

        plan = injector.select("head", make_context())
        assert plan.urls == ["https://b.example/b.js", "https://a.example/a.js"]
        assert [f.file_id for f in plan.files] == ["second", "first"]
        assert plan.content == "inline();"

    def test_each_item_filtered_by_its_own_rules(self, injector, location_store, make_context):
        location_store.put("head", LocationConfig(
            content="home();",
            rule_set=FRONT_ONLY,
            linked_items=[
                LinkedItem(url="https://a.example/members.js", rule_set=MEMBERS_ONLY),
                LinkedItem(url="https://a.example/all.js"),
            ],
        ))
        plan = injector.select("head", make_context(path="/blog/"))
        assert plan.urls == ["https://a.example/all.js"]
        assert plan.content is None

        plan = injector.select("head", make_context(is_front_page=True, is_authenticated=True))
        assert plan.urls == ["https://a.example/members.js", "https://a.example/all.js"]
        assert plan.content == "home();"

    def test_blank_content_not_emitted(self, injector, location_store, make_context):
        location_store.put("head", LocationConfig(content="  \n  "))
        assert injector.select("head", make_context()).content is None

    def test_files_scoped_to_location(self, injector, file_store, make_context):
        file_store.write(ManagedFile(file_id="top", label="Top", filename="top.js"), "t")
        file_store.write(
            ManagedFile(file_id="bottom", label="Bottom", filename="bottom.js", location="footer"), "b"
        )
        assert [f.file_id for f in injector.select("footer", make_context()).files] == ["bottom"]

    def test_file_rules(self, injector, file_store, make_context):
        june = RuleSet(rules=[Rule(type=RuleType.BY_MONTH, values=[6])])
        file_store.write(ManagedFile(file_id="summer", label="Summer", filename="summer.js", rule_set=june), "s")
        assert injector.select("head", make_context()).files
        winter = datetime(2025, 12, 1, tzinfo=timezone.utc)
        assert injector.select("head", make_context(now=winter)).files == []

    def test_or_logic(self, injector, location_store, make_context):
        either = RuleSet(logic=RuleLogic.OR, rules=[
            Rule(type=RuleType.FRONT_PAGE),
            Rule(type=RuleType.URL_CONTAINS, values=["/shop"]),
        ])
        location_store.put("footer", LocationConfig(content="x", rule_set=either))
        assert injector.select("footer", make_context(path="/shop/cart")).content == "x"
        assert injector.select("footer", make_context(path="/about")).content is None


class TestServiceSelect:
    def test_select_uses_stored_state(self, service, admin, make_context):
        service.set_content(admin, "footer", "f();", token=service.location_token("footer", admin))
        plan = service.select("footer", service.context_for())
        assert plan.content == "f();"
        assert service.select("head", make_context()).is_empty
