"""Adversarial tests — hostile content, URLs, rules and names.

Everything here goes through the public service so the full gate sequence
runs. Nothing should raise; hostile input comes back as a rejection or is
normalized with a notice.
"""

from __future__ import annotations

import pytest

from snippetvault.core.service import VaultService
from snippetvault.models.context import Actor
from snippetvault.models.outcomes import NoticeCode, RejectionReason
from snippetvault.models.proposals import FileProposal
from snippetvault.models.snapshot import PayloadKind


def _set(service: VaultService, actor: Actor, content, rules=None):
    return service.set_content(actor, "head", content, rules, token=service.location_token("head", actor))


class TestTemplateEscapes:
    @pytest.mark.parametrize("payload", [
        "<?php system($_GET['c']); ?>",
        "<?PHP echo 1;",
        "<?= $secret ?>",
        "var a = 1; <? evil(); ?>",
        "ok();\n<?php\n",
        "x\x00<?php",
    ])
    def test_rejected_and_not_stored(self, service, admin, payload):
        result = _set(service, admin, payload)
        assert result.reason is RejectionReason.DISALLOWED_SEQUENCE
        assert service.get_content("head").content == ""
        assert service.history(PayloadKind.CONTENT) == []

    def test_escape_in_managed_file_rejected(self, service, admin):
        result = service.set_managed_file(
            admin, FileProposal(label="Evil", content="<?php phpinfo();"), token=service.files_token(admin)
        )
        assert result.reason is RejectionReason.DISALLOWED_SEQUENCE
        assert service.list_managed_files() == []

    def test_escape_in_upload_rejected(self, service, admin):
        result = service.upload_managed_file(
            admin, b"<?= 1 ?>", "evil.js", token=service.files_token(admin)
        )
        assert result.reason is RejectionReason.DISALLOWED_SEQUENCE


class TestContentShape:
    @pytest.mark.parametrize("payload", [42, ["a"], {"content": "x"}, 3.5])
    def test_non_text_rejected(self, service, admin, payload):
        result = _set(service, admin, payload)
        assert result.reason is RejectionReason.INVALID_CONTENT_TYPE

    def test_multibyte_cap(self, service, admin):
        # 33,334 three-byte characters exceed 100,000 bytes.
        result = _set(service, admin, "€" * 33_334)
        assert result.reason is RejectionReason.CONTENT_TOO_LARGE

    def test_nested_wrapper_tags(self, service, admin):
        result = _set(service, admin, "<script>a();</script><SCRIPT type='module'>b();</SCRIPT>")
        assert result.accepted
        assert result.content == "a();b();"
        assert NoticeCode.WRAPPER_TAGS_STRIPPED in [n.code for n in result.notices]

    def test_control_characters_stripped(self, service, admin):
        result = _set(service, admin, "a\x07b\x1bc();")
        assert result.content == "abc();"


class TestHostileUrls:
    @pytest.mark.parametrize("url", [
        "javascript:alert(document.cookie)",
        "JAVASCRIPT:alert(1)",
        "data:text/javascript;base64,YWxlcnQoMSk=",
        "vbscript:msgbox(1)",
        "file:///etc/passwd",
        "//evil.example/x.js",
        "https:evil.example",
        " https://exa mple.com/x.js",
        "http://\nevil.example/x.js",
    ])
    def test_dropped(self, service, admin, url):
        result = service.set_linked_items(admin, "head", [url], token=service.location_token("head", admin))
        assert result.accepted
        assert result.count == 0
        assert [n.code for n in result.notices] == [NoticeCode.INVALID_ITEM_DROPPED]

    def test_deeply_nested_garbage(self, service, admin):
        raw = [[["https://a.example/x.js"]], {"url": {"nested": True}}, None]
        result = service.set_linked_items(admin, "head", raw, token=service.location_token("head", admin))
        assert result.accepted
        assert result.count == 0
        assert len(result.notices) == 3


class TestHostileRules:
    def test_sql_like_values_filtered(self, service, admin):
        rules = {"rules": [
            {"type": "page_id", "values": ["1; DROP TABLE snapshots", 5, True, -3]},
            {"type": "post_type", "values": ["post' OR '1'='1"]},
        ]}
        result = _set(service, admin, "x", rules)
        assert result.accepted
        assert result.rule_set.rules[0].values == [5]
        assert result.rule_set.rules[1].values == ["postor11"]
        assert service.history(PayloadKind.CONTENT)

    def test_rule_set_of_wrong_type(self, service, admin):
        result = _set(service, admin, "x", ["front_page"])
        assert result.accepted
        assert result.rule_set.is_unrestricted
        assert [n.code for n in result.notices] == [NoticeCode.MALFORMED_RULE_IGNORED]

    def test_impossible_date_dropped(self, service, admin):
        result = _set(service, admin, "x", {"rules": [{"type": "by_date", "values": ["2025-02-30"]}]})
        assert result.accepted
        assert result.rule_set.is_unrestricted


class TestHostileNames:
    @pytest.mark.parametrize("location", ["head'; --", "../head", "HEAD", ""])
    def test_unknown_locations(self, service, admin, location):
        result = service.set_content(admin, location, "x", token=service.location_token("head", admin))
        assert result.reason is RejectionReason.UNKNOWN_LOCATION

    @pytest.mark.parametrize("filename, expected", [
        ("../../outside.js", "outside.js"),
        ("..\\..\\win.js", "win.js"),
        ("name'; DROP TABLE managed_files; --.js", "name-DROP-TABLE-managed_files.js"),
        (".hidden.js", "hidden.js"),
    ])
    def test_filenames_confined(self, service, admin, tmp_dir, filename, expected):
        result = service.set_managed_file(
            admin, FileProposal(label="Label", filename=filename, content="x();"), token=service.files_token(admin)
        )
        assert result.accepted
        assert result.file.filename == expected
        assert (tmp_dir / "files" / expected).exists()

    def test_unusable_filename(self, service, admin):
        result = service.set_managed_file(
            admin, FileProposal(label="!!!", filename="", content="x();"), token=service.files_token(admin)
        )
        assert result.reason is RejectionReason.MALFORMED_INPUT
