"""Installer — apply plans and removals to the file system.

Each applied change writes its file and updates the in-memory state before
moving on, so file and record agree at every step. The state document is
saved once per batch. A failure stops the batch; what was already done is
saved and kept, and the doctor reconciles anything left behind.

Files edited outside cc-foundry are never overwritten silently: a target whose
on-disk content matches neither the tracked hash nor the new content is kept
and reported as a conflict unless ``force`` is set.
"""

from __future__ import annotations

import logging
import shutil
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from foundry.catalog import Catalog
from foundry.errors import FileOperationError, IntegrityWarning
from foundry.naming import content_hash, file_hash, is_managed_name, removal_target
from foundry.plan import Change, ChangeAction, Plan, build_plan, select_removals
from foundry.state import InstallationRecord, State, StateStore, record_for

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Outcome of applying a plan."""

    installed: list[Path] = field(default_factory=list)
    updated: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    conflicts: list[Path] = field(default_factory=list)  # Modified locally, kept

    @property
    def written(self) -> int:
        return len(self.installed) + len(self.updated)


@dataclass
class RemovalResult:
    """Outcome of removing installed records."""

    removed: list[Path] = field(default_factory=list)
    already_gone: list[Path] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.removed) + len(self.already_gone)


def is_locally_modified(path: Path, tracked: InstallationRecord | None, new_content: bytes) -> bool:
    """Check whether an existing target was edited outside cc-foundry.

    A file counts as modified when its hash matches neither the tracked
    record nor the content about to be written.
    """
    if not path.exists():
        return False
    on_disk = file_hash(path)
    if tracked is not None and on_disk == tracked.hash:
        return False
    return on_disk != content_hash(new_content)


def apply(
    plan: Plan | Iterable[Change],
    state: State,
    store: StateStore,
    force: bool = False,
) -> ApplyResult:
    """Write every install/update change and record it in ``state``.

    Skip changes are not touched. The state is saved once at the end, or
    once before re-raising if a write fails part-way.

    Raises:
        FileOperationError: A directory or file could not be written.
    """
    changes = plan.changes if isinstance(plan, Plan) else list(plan)
    result = ApplyResult()

    try:
        for change in changes:
            if change.action is ChangeAction.SKIP:
                result.skipped.append(change.path)
                continue

            tracked = state.find_by_path(change.path)
            if not force and _check_modified(change, tracked):
                warnings.warn(
                    f"{change.path} was modified locally; keeping it (use --force to overwrite)",
                    IntegrityWarning,
                    stacklevel=2,
                )
                result.conflicts.append(change.path)
                continue

            _write(change)
            state.add(record_for(change.file, change.path))

            if change.action is ChangeAction.INSTALL:
                result.installed.append(change.path)
            else:
                result.updated.append(change.path)
            logger.info("%s %s", change.action.value, change.path)
    finally:
        if result.written:
            store.save(state)

    return result


def _check_modified(change: Change, tracked: InstallationRecord | None) -> bool:
    file = change.file
    try:
        return is_locally_modified(change.path, tracked, file.content)
    except OSError as e:
        raise FileOperationError(
            "failed to read file", change.path, category=file.category, file_type=file.type
        ) from e


def _write(change: Change) -> None:
    file = change.file
    try:
        change.path.parent.mkdir(parents=True, exist_ok=True)
        change.path.write_bytes(file.content)
    except OSError as e:
        raise FileOperationError(
            "failed to write file", change.path, category=file.category, file_type=file.type
        ) from e


def remove(
    records: Iterable[InstallationRecord],
    state: State,
    store: StateStore,
) -> RemovalResult:
    """Delete installed files and deregister their records.

    Files that are already gone still have their record removed. An empty
    batch touches neither the file system nor the state document.

    Raises:
        FileOperationError: A file or directory exists but could not be deleted.
    """
    result = RemovalResult()
    records = list(records)

    try:
        for record in records:
            target = removal_target(record.installed_path, record.type)
            if _delete(target, record):
                result.removed.append(Path(record.installed_path))
                logger.info("removed %s", target)
            else:
                result.already_gone.append(Path(record.installed_path))
                logger.debug("already gone: %s", target)
            state.remove(record.installed_path)
    finally:
        if result.count:
            store.save(state)

    return result


def _delete(target: Path, record: InstallationRecord) -> bool:
    """Delete a file or skill directory. Returns False if nothing was there."""
    try:
        if target.is_dir() and is_managed_name(target.name, record.type, True):
            shutil.rmtree(target)
        else:
            target.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise FileOperationError(
            "failed to remove", target, category=record.category, file_type=record.type
        ) from e
    return True


def install(
    catalog: Catalog,
    store: StateStore,
    root: str | Path,
    category: str | None = None,
    file_type: str | None = None,
    force: bool = False,
) -> tuple[Plan, ApplyResult]:
    """Load state, plan the selection under ``root`` and apply it."""
    state = store.load()
    plan = build_plan(catalog, state, root, category=category, file_type=file_type)
    return plan, apply(plan, state, store, force=force)


def uninstall(
    store: StateStore,
    category: str | None = None,
    file_type: str | None = None,
    root: str | Path | None = None,
) -> RemovalResult:
    """Load state and remove every record matching the request."""
    state = store.load()
    records = select_removals(state, category=category, file_type=file_type, root=root)
    if not records:
        logger.info("nothing installed matches the removal request")
    return remove(records, state, store)
