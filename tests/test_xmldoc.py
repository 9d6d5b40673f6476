from __future__ import annotations

from pathlib import Path

import pytest

from pyappconf.errors import MissingStoreError, PersistenceError
from pyappconf.xmldoc import DEFAULT_SECTION, SECTION_HANDLER, ConfigDocument, NamespaceContext


def test_new_document_has_configuration_root():
    doc = ConfigDocument.new()
    assert doc.root.tag == "configuration"
    assert doc.ns == NamespaceContext()


def test_default_section_is_not_declared():
    doc = ConfigDocument.new()
    doc.upsert(DEFAULT_SECTION, "Name", "svc")
    assert [child.tag for child in doc.root] == ["appSettings"]
    assert doc.get_value(DEFAULT_SECTION, "Name") == "svc"


def test_named_section_is_declared_first():
    doc = ConfigDocument.new()
    doc.upsert(DEFAULT_SECTION, "A", "1")
    doc.upsert("mySection", "B", "2")
    assert [child.tag for child in doc.root] == ["configSections", "appSettings", "mySection"]
    decl = doc.root[0][0]
    assert decl.tag == "section"
    assert decl.attrib == {"name": "mySection", "requirePermission": "false", "type": SECTION_HANDLER}

    doc.ensure_section("mySection")
    doc.ensure_section("other")
    assert [d.get("name") for d in doc.root[0]] == ["mySection", "other"]


def test_upsert_overwrites_in_place():
    doc = ConfigDocument.new()
    doc.upsert(DEFAULT_SECTION, "Name", "one")
    doc.upsert(DEFAULT_SECTION, "Name", "two")
    assert doc.section_values(DEFAULT_SECTION) == {"Name": "two"}
    assert len(doc.root.find("appSettings")) == 1


def test_lookup_case_rules():
    doc = ConfigDocument.new()
    doc.upsert(DEFAULT_SECTION, "name", "lower")
    assert doc.get_value(DEFAULT_SECTION, "Name") is None
    assert doc.get_value(DEFAULT_SECTION, "NAME", ignore_case=True) == "lower"
    doc.upsert(DEFAULT_SECTION, "Name", "upper", ignore_case=True)
    assert doc.section_values(DEFAULT_SECTION) == {"name": "upper"}


def test_section_values_missing_section():
    assert ConfigDocument.new().section_values("nope") is None


def test_prune_indexed_respects_protected_keys():
    doc = ConfigDocument.new()
    for key in ("Item1", "Item2", "Item3", "Item10", "Items1", "Item2x"):
        doc.upsert(DEFAULT_SECTION, key, "v")
    removed = doc.prune_indexed(DEFAULT_SECTION, "Item", 1, protected=frozenset({"Item10"}))
    assert removed == 2
    assert set(doc.section_values(DEFAULT_SECTION)) == {"Item1", "Item10", "Items1", "Item2x"}


def test_save_and_load_roundtrip(tmp_path: Path):
    path = tmp_path / "sub" / "app.config"
    doc = ConfigDocument.new()
    doc.upsert("custom", "Key", "a & <b>")
    doc.save(path)
    text = path.read_text(encoding="utf-8")
    assert text.startswith("<?xml")
    assert 'value="a &amp; &lt;b&gt;"' in text
    assert ConfigDocument.load(path).get_value("custom", "Key") == "a & <b>"


def test_comments_and_unrelated_content_survive(tmp_path: Path):
    path = tmp_path / "app.config"
    path.write_text(
        "<configuration>"
        "<!-- keep me -->"
        "<system.web><compilation debug='true'/></system.web>"
        "<appSettings><add key='A' value='1'/></appSettings>"
        "</configuration>",
        encoding="utf-8",
    )
    doc = ConfigDocument.load(path)
    doc.upsert(DEFAULT_SECTION, "B", "2")
    doc.save(path)
    text = path.read_text(encoding="utf-8")
    assert "<!-- keep me -->" in text
    assert '<compilation debug="true" />' in text
    assert ConfigDocument.load(path).section_values(DEFAULT_SECTION) == {"A": "1", "B": "2"}


def test_default_namespace_is_used_and_kept(tmp_path: Path):
    path = tmp_path / "ns.config"
    path.write_text(
        '<configuration xmlns="urn:test">'
        '<appSettings><add key="A" value="1"/></appSettings>'
        "</configuration>",
        encoding="utf-8",
    )
    doc = ConfigDocument.load(path)
    assert doc.ns == NamespaceContext("urn:test", "")
    assert doc.get_value(DEFAULT_SECTION, "A") == "1"
    doc.upsert("extra", "B", "2")
    doc.save(path)
    text = path.read_text(encoding="utf-8")
    assert '<configuration xmlns="urn:test">' in text
    assert "ns0:" not in text
    reloaded = ConfigDocument.load(path)
    assert reloaded.get_value("extra", "B") == "2"
    assert reloaded.root.find("{urn:test}configSections") is not None


def test_prefixed_namespace_is_kept(tmp_path: Path):
    path = tmp_path / "prefixed.config"
    path.write_text(
        '<cfg:configuration xmlns:cfg="urn:prefixed">'
        '<cfg:appSettings><cfg:add key="A" value="1"/></cfg:appSettings>'
        "</cfg:configuration>",
        encoding="utf-8",
    )
    doc = ConfigDocument.load(path)
    assert doc.ns == NamespaceContext("urn:prefixed", "cfg")
    doc.upsert(DEFAULT_SECTION, "B", "2")
    doc.save(path)
    text = path.read_text(encoding="utf-8")
    assert 'xmlns:cfg="urn:prefixed"' in text
    assert '<cfg:add key="B" value="2" />' in text
    assert ConfigDocument.load(path).section_values(DEFAULT_SECTION) == {"A": "1", "B": "2"}


@pytest.mark.parametrize("content", [None, "", "<configuration>", "not xml at all"])
def test_load_missing_or_malformed(tmp_path: Path, content):
    path = tmp_path / "bad.config"
    if content is not None:
        path.write_text(content, encoding="utf-8")
    with pytest.raises(MissingStoreError):
        ConfigDocument.load(path)
    assert ConfigDocument.load_or_new(path).root.tag == "configuration"


def test_save_failure_raises_persistence_error(tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    with pytest.raises(PersistenceError):
        ConfigDocument.new().save(blocker / "app.config")


def test_remove_entry():
    doc = ConfigDocument.new()
    doc.upsert(DEFAULT_SECTION, "Tags", "")
    assert doc.remove(DEFAULT_SECTION, "TAGS") is False
    assert doc.remove(DEFAULT_SECTION, "TAGS", ignore_case=True) is True
    assert doc.section_values(DEFAULT_SECTION) == {}
    assert doc.remove("missing", "Tags") is False
