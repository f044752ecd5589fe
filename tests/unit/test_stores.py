"""Tests for the current-state stores: locations, managed files, settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from snippetvault.core.file_store import (
    ManagedFileStore,
    file_id_for,
    normalize_filename,
    slugify,
)
from snippetvault.core.location_store import LocationConfigStore
from snippetvault.core.settings_store import SettingsStore
from snippetvault.models.location import LinkedItem, LocationConfig, ManagedFile
from snippetvault.models.rules import Rule, RuleSet, RuleType
from snippetvault.models.settings import VaultSettings


class TestLocationConfigStore:
    def test_first_read_returns_empty_defaults(self, location_store: LocationConfigStore):
        assert location_store.get("head") == LocationConfig()

    def test_put_then_get(self, location_store: LocationConfigStore):
        config = LocationConfig(
            content="a();",
            rule_set=RuleSet(rules=[Rule(type=RuleType.LOGGED_IN)]),
            linked_items=[LinkedItem(url="https://a.example/x.js")],
        )
        location_store.put("footer", config)
        assert location_store.get("footer") == config

    def test_last_write_wins(self, location_store: LocationConfigStore):
        location_store.put("head", LocationConfig(content="one"))
        location_store.put("head", LocationConfig(content="two"))
        assert location_store.get("head").content == "two"

    def test_persists_across_instances(self, db_path: Path):
        LocationConfigStore(db_path).put("head", LocationConfig(content="kept"))
        assert LocationConfigStore(db_path).get("head").content == "kept"


class TestFilenameHelpers:
    def test_slugify(self):
        assert slugify("My Tracker: v2!") == "my-tracker-v2"

    def test_label_fallback_and_extension(self):
        assert normalize_filename("", "My Tracker", ".js") == "my-tracker.js"
        assert normalize_filename("app", "x", ".js") == "app.js"

    def test_path_components_and_dots_removed(self):
        assert normalize_filename("../evil name.JS", "x", ".js") == "evil-name.js"

    def test_dash_runs_collapsed(self):
        assert normalize_filename("a  --  b.js", "x", ".js") == "a-b.js"

    def test_nothing_usable(self):
        assert normalize_filename("", "!!!", ".js") == ""
        assert normalize_filename("...", "x", ".js") == ""

    def test_file_id_from_filename(self):
        assert file_id_for("My-App_2.js", ".js") == "my-app_2"


class TestManagedFileStore:
    def _file(self, file_id: str = "app", filename: str = "app.js", **kw) -> ManagedFile:
        return ManagedFile(file_id=file_id, label=kw.pop("label", "App"), filename=filename, **kw)

    def test_write_and_read(self, file_store: ManagedFileStore):
        file_store.write(self._file(), "run();")
        assert file_store.get("app") == self._file()
        assert file_store.read_content(self._file()) == "run();"

    def test_list_keeps_creation_order(self, file_store: ManagedFileStore):
        for name in ("zeta", "alpha", "mid"):
            file_store.write(self._file(name, f"{name}.js"), "x();")
        assert [f.file_id for f in file_store.list()] == ["zeta", "alpha", "mid"]

    def test_edit_keeps_position(self, file_store: ManagedFileStore):
        file_store.write(self._file("a", "a.js"), "1")
        file_store.write(self._file("b", "b.js"), "2")
        file_store.write(self._file("a", "a.js", label="Renamed"), "3", replacing="a")
        assert [f.label for f in file_store.list()] == ["Renamed", "App"]

    def test_unique_filename(self, file_store: ManagedFileStore):
        file_store.write(self._file(), "x")
        assert file_store.unique_filename("app.js") == "app-1.js"
        assert file_store.unique_filename("new.js") == "new.js"

    def test_owner_of(self, file_store: ManagedFileStore):
        file_store.write(self._file("a", "a.js"), "1")
        file_store.write(self._file("b", "b.js"), "2")
        assert file_store.owner_of("b.js").file_id == "b"
        assert file_store.owner_of("c.js") is None

    def test_rename_removes_old_body(self, file_store: ManagedFileStore):
        file_store.write(self._file(), "x")
        file_store.write(self._file(filename="renamed.js"), "x", replacing="app")
        assert not file_store.path_for("app.js").exists()
        assert file_store.path_for("renamed.js").exists()

    def test_delete_returns_last_content(self, file_store: ManagedFileStore):
        file_store.write(self._file(), "bye();")
        meta, content = file_store.delete("app")
        assert meta.file_id == "app"
        assert content == "bye();"
        assert file_store.get("app") is None
        assert not file_store.path_for("app.js").exists()

    def test_delete_missing(self, file_store: ManagedFileStore):
        assert file_store.delete("ghost") is None

    def test_read_missing_body_is_empty(self, file_store: ManagedFileStore):
        assert file_store.read_content(self._file(filename="nowhere.js")) == ""


class TestSettingsStore:
    def test_defaults(self, db_path: Path):
        assert SettingsStore(db_path).get() == VaultSettings()

    def test_configured_defaults(self, db_path: Path):
        store = SettingsStore(db_path, VaultSettings(history_limit=50))
        assert store.get().history_limit == 50

    def test_update_persists(self, db_path: Path):
        SettingsStore(db_path).update(history_limit=25, keep_data_on_teardown=True)
        settings = SettingsStore(db_path).get()
        assert settings.history_limit == 25
        assert settings.keep_data_on_teardown is True

    @pytest.mark.parametrize("requested, stored", [(1, 3), (3, 3), (5000, 1000)])
    def test_history_limit_clamped(self, db_path: Path, requested: int, stored: int):
        assert SettingsStore(db_path).update(history_limit=requested).history_limit == stored

    def test_unknown_setting_rejected(self, db_path: Path):
        with pytest.raises(ValueError, match="colour"):
            SettingsStore(db_path).update(colour="blue")
