"""Tests for applying plans and removals."""

import tempfile
from pathlib import Path

import pytest

from foundry.catalog import CatalogFile, MemoryCatalog
from foundry.errors import FileOperationError, IntegrityWarning
from foundry.installer import apply, install, remove, uninstall
from foundry.naming import content_hash, file_hash
from foundry.plan import build_plan
from foundry.state import InstallationRecord, State, StateStore


def _sample_catalog(a: bytes = b"X", b: bytes = b"Y") -> MemoryCatalog:
    return MemoryCatalog(
        [
            CatalogFile("sample", "commands", "a.md", a),
            CatalogFile("sample", "skills", "b.md", b),
        ]
    )


def _setup(tmpdir: str) -> tuple[Path, StateStore]:
    base = Path(tmpdir)
    return base / "home" / ".claude", StateStore(base / "home" / ".claude-code-foundry.json")


def _mtimes(*paths: Path) -> list[int]:
    return [p.stat().st_mtime_ns for p in paths]


def test_sample_scenario_install_twice():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store = _setup(tmpdir)

        plan, result = install(_sample_catalog(), store, root, category="sample")
        assert (plan.install_count, plan.update_count, plan.skip_count) == (2, 0, 0)
        assert len(result.installed) == 2

        a = root / "commands" / "ccf-sample-a.md"
        b = root / "skills" / "ccf-sample-b" / "SKILL.md"
        assert a.read_bytes() == b"X"
        assert b.read_bytes() == b"Y"
        assert len(store.load().installations) == 2

        before = _mtimes(a, b, store.path)
        plan, result = install(_sample_catalog(), store, root, category="sample")
        assert (plan.install_count, plan.update_count, plan.skip_count) == (0, 0, 2)
        assert result.written == 0
        assert _mtimes(a, b, store.path) == before


def test_recorded_hash_matches_bytes_on_disk():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store = _setup(tmpdir)
        install(_sample_catalog(), store, root)
        for record in store.load().installations:
            assert record.hash == file_hash(record.installed_path)


def test_update_rewrites_changed_content():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store = _setup(tmpdir)
        install(_sample_catalog(), store, root)

        plan, result = install(_sample_catalog(a=b"X2"), store, root)
        assert (plan.install_count, plan.update_count, plan.skip_count) == (0, 1, 1)
        assert [p.name for p in result.updated] == ["ccf-sample-a.md"]

        a = root / "commands" / "ccf-sample-a.md"
        assert a.read_bytes() == b"X2"
        state = store.load()
        assert state.find_by_path(a).hash == content_hash(b"X2")
        assert len(state.installations) == 2


def test_locally_modified_file_is_kept_unless_forced():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store = _setup(tmpdir)
        install(_sample_catalog(), store, root)
        a = root / "commands" / "ccf-sample-a.md"
        a.write_bytes(b"my edits")

        with pytest.warns(IntegrityWarning):
            _, result = install(_sample_catalog(a=b"X2"), store, root)
        assert result.conflicts == [a]
        assert a.read_bytes() == b"my edits"
        assert store.load().find_by_path(a).hash == content_hash(b"X")

        _, result = install(_sample_catalog(a=b"X2"), store, root, force=True)
        assert result.updated == [a]
        assert a.read_bytes() == b"X2"
        assert store.load().find_by_path(a).hash == content_hash(b"X2")


def test_untracked_file_with_same_content_is_adopted():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store = _setup(tmpdir)
        a = root / "commands" / "ccf-sample-a.md"
        a.parent.mkdir(parents=True)
        a.write_bytes(b"X")

        _, result = install(_sample_catalog(), store, root, category="sample", file_type="commands")
        assert result.installed == [a]
        assert store.load().find_by_path(a) is not None


def test_write_failure_keeps_earlier_entries():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store = _setup(tmpdir)
        root.mkdir(parents=True)
        (root / "skills").write_text("not a directory")

        state = store.load()
        plan = build_plan(_sample_catalog(), state, root)
        with pytest.raises(FileOperationError) as exc:
            apply(plan, state, store)

        assert exc.value.file_type == "skills"
        assert exc.value.category == "sample"
        assert (root / "commands" / "ccf-sample-a.md").read_bytes() == b"X"
        saved = store.load()
        assert [r.type for r in saved.installations] == ["commands"]


def test_remove_deletes_files_and_skill_directories():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store = _setup(tmpdir)
        install(_sample_catalog(), store, root)

        result = uninstall(store, category="sample")
        assert len(result.removed) == 2
        assert not (root / "commands" / "ccf-sample-a.md").exists()
        assert not (root / "skills" / "ccf-sample-b").exists()
        assert (root / "skills").is_dir()
        assert store.load().installations == []


def test_remove_twice_is_a_no_op():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store = _setup(tmpdir)
        install(_sample_catalog(), store, root)
        uninstall(store, category="sample")

        before = _mtimes(store.path)
        result = uninstall(store, category="sample")
        assert result.count == 0
        assert _mtimes(store.path) == before


def test_remove_with_no_state_document_creates_nothing():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, store = _setup(tmpdir)
        result = uninstall(store, category="sample")
        assert result.count == 0
        assert not store.path.exists()


def test_remove_deregisters_already_missing_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store = _setup(tmpdir)
        install(_sample_catalog(), store, root)
        (root / "commands" / "ccf-sample-a.md").unlink()

        state = store.load()
        result = remove(state.list(category="sample", file_type="commands"), state, store)
        assert [p.name for p in result.already_gone] == ["ccf-sample-a.md"]
        assert [r.type for r in store.load().installations] == ["skills"]


def test_remove_limited_to_root():
    with tempfile.TemporaryDirectory() as tmpdir:
        base = Path(tmpdir)
        store = StateStore(base / "state.json")
        user_root = base / "home" / ".claude"
        project_root = base / "project" / ".claude"
        install(_sample_catalog(), store, user_root)
        install(_sample_catalog(), store, project_root)
        assert len(store.load().installations) == 4

        uninstall(store, category="sample", root=project_root)
        remaining = store.load().installations
        assert len(remaining) == 2
        assert all(Path(r.installed_path).is_relative_to(user_root) for r in remaining)
        assert (user_root / "commands" / "ccf-sample-a.md").exists()


def test_skill_record_outside_a_managed_directory_removes_only_its_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        base = Path(tmpdir)
        store = StateStore(base / "state.json")
        important = base / "important"
        important.mkdir()
        (important / "SKILL.md").write_text("tracked by mistake")
        (important / "keep.txt").write_text("keep me")

        state = State()
        state.add(
            InstallationRecord(
                category="sample",
                type="skills",
                file="b.md",
                installed_path=str(important / "SKILL.md"),
                hash=content_hash(b"tracked by mistake"),
            )
        )
        result = remove(state.list(), state, store)

        assert result.removed == [important / "SKILL.md"]
        assert (important / "keep.txt").read_text() == "keep me"
        assert store.load().installations == []


def test_unreadable_target_is_reported_with_context():
    with tempfile.TemporaryDirectory() as tmpdir:
        root, store = _setup(tmpdir)
        (root / "commands" / "ccf-sample-a.md").mkdir(parents=True)

        state = store.load()
        plan = build_plan(_sample_catalog(), state, root, category="sample", file_type="commands")
        with pytest.raises(FileOperationError) as exc:
            apply(plan, state, store)

        assert exc.value.path == root / "commands" / "ccf-sample-a.md"
        assert (exc.value.category, exc.value.file_type) == ("sample", "commands")
        assert not store.path.exists()
