"""Tests for the installation state store."""

import json
import tempfile
from operator import attrgetter
from pathlib import Path

import pytest

from foundry.catalog import CatalogFile
from foundry.errors import StateParseError
from foundry.naming import content_hash
from foundry.state import STATE_VERSION, InstallationRecord, State, StateStore, record_for


def _record(path: str, category: str = "dev", file_type: str = "commands") -> InstallationRecord:
    return InstallationRecord(
        category=category,
        type=file_type,
        file="a.md",
        installed_path=path,
        hash=content_hash(path.encode()),
        installed_at="2026-01-01T00:00:00+00:00",
    )


def test_load_missing_returns_empty_state():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = StateStore(Path(tmpdir) / "state.json")
        state = store.load()
        assert state.version == STATE_VERSION
        assert state.installations == []
        assert not store.exists()


def test_save_load_round_trip():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = StateStore(Path(tmpdir) / "nested" / "state.json")
        state = State()
        state.add(_record("/r/commands/ccf-dev-a.md"))
        state.add(_record("/r/skills/ccf-dev-s/SKILL.md", file_type="skills"))
        store.save(state)

        loaded = store.load()
        assert loaded.version == state.version
        key = attrgetter("installed_path")
        assert sorted(loaded.installations, key=key) == sorted(state.installations, key=key)

        store.save(loaded)
        assert store.load().installations == loaded.installations


def test_document_shape():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "state.json"
        state = State()
        state.add(_record("/r/commands/ccf-dev-a.md"))
        StateStore(path).save(state)

        data = json.loads(path.read_text())
        assert data["version"] == STATE_VERSION
        assert set(data["installations"][0]) == {
            "category",
            "type",
            "file",
            "installed_path",
            "hash",
            "installed_at",
        }
        assert not list(Path(tmpdir).glob("*.tmp"))


def test_corrupt_document_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "state.json"
        path.write_text("{not json")
        with pytest.raises(StateParseError) as exc:
            StateStore(path).load()
        assert exc.value.path == path


def test_undecodable_bytes_raise_parse_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "state.json"
        path.write_bytes(b'{"version": "1.0.0", "installations": [\xff\xfe]}')
        with pytest.raises(StateParseError):
            StateStore(path).load()


def test_wrong_shape_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "state.json"
        path.write_text("[1, 2]")
        with pytest.raises(StateParseError):
            StateStore(path).load()

        path.write_text(json.dumps({"version": "1.0.0", "installations": [{"category": "x"}]}))
        with pytest.raises(StateParseError):
            StateStore(path).load()


def test_unknown_fields_ignored():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "state.json"
        entry = {
            "category": "dev",
            "type": "commands",
            "file": "a.md",
            "installed_path": "/r/commands/ccf-dev-a.md",
            "hash": "abc",
            "installed_at": "2026-01-01T00:00:00Z",
            "extra": True,
        }
        path.write_text(json.dumps({"version": "1.0.0", "installations": [entry], "other": 1}))
        state = StateStore(path).load()
        assert state.find_by_path("/r/commands/ccf-dev-a.md").hash == "abc"


def test_add_replaces_same_path():
    state = State()
    state.add(_record("/r/commands/ccf-dev-a.md"))
    replacement = _record("/r/commands/ccf-dev-a.md")
    replacement.hash = "new"
    state.add(replacement)
    assert len(state.installations) == 1
    assert state.find_by_path("/r/commands/ccf-dev-a.md").hash == "new"


def test_remove_and_find():
    state = State()
    state.add(_record("/r/commands/ccf-dev-a.md"))
    assert state.remove("/r/commands/ccf-dev-a.md")
    assert not state.remove("/r/commands/ccf-dev-a.md")
    assert state.find_by_path("/r/commands/ccf-dev-a.md") is None


def test_list_filters():
    state = State()
    state.add(_record("/u/.claude/commands/ccf-dev-a.md"))
    state.add(_record("/u/.claude/skills/ccf-dev-s/SKILL.md", file_type="skills"))
    state.add(_record("/p/.claude/commands/ccf-ops-a.md", category="ops"))

    assert len(state.list()) == 3
    assert len(state.list(category="dev")) == 2
    assert len(state.list(category="dev", file_type="skills")) == 1
    assert [r.category for r in state.list(root="/p/.claude")] == ["ops"]


def test_record_for_hashes_content():
    f = CatalogFile("dev", "commands", "a.md", b"hello")
    record = record_for(f, Path("/r/commands/ccf-dev-a.md"))
    assert record.hash == content_hash(b"hello")
    assert record.installed_path == "/r/commands/ccf-dev-a.md"
    assert record.installed_at
    assert not record.has_content_changed(b"hello")
    assert record.has_content_changed(b"hello!")
