"""Plan builder — reconcile the catalog with the installation state.

A plan classifies every selected catalog file as ``install`` (not tracked),
``update`` (tracked, content changed) or ``skip`` (tracked, unchanged).
Building a plan reads neither the disk nor the clock, so it can be computed
for a preview and thrown away.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from foundry.catalog import Catalog, CatalogFile
from foundry.errors import NotFoundError
from foundry.naming import display_name, target_path, type_label
from foundry.state import InstallationRecord, State


class ChangeAction(Enum):
    INSTALL = "install"
    UPDATE = "update"
    SKIP = "skip"


@dataclass
class Change:
    """A single file change in a plan."""

    action: ChangeAction
    type: str  # Singular label: "command", "agent", "skill"
    name: str  # Display name, e.g. "ccf-dev-review/SKILL.md"
    path: Path  # Absolute target path
    file: CatalogFile


@dataclass
class Plan:
    """Ordered changes for one install request, plus aggregate counts."""

    root: Path
    category: str | None = None
    file_type: str | None = None
    changes: list[Change] = field(default_factory=list)

    def _count(self, action: ChangeAction) -> int:
        return sum(1 for c in self.changes if c.action is action)

    @property
    def install_count(self) -> int:
        return self._count(ChangeAction.INSTALL)

    @property
    def update_count(self) -> int:
        return self._count(ChangeAction.UPDATE)

    @property
    def skip_count(self) -> int:
        return self._count(ChangeAction.SKIP)

    @property
    def has_work(self) -> bool:
        return any(c.action is not ChangeAction.SKIP for c in self.changes)

    def summary(self) -> str:
        return (
            f"{self.install_count} to install, {self.update_count} to update, "
            f"{self.skip_count} unchanged"
        )


def select_files(
    catalog: Catalog,
    category: str | None = None,
    file_type: str | None = None,
) -> list[CatalogFile]:
    """Resolve an install target to catalog files.

    ``category=None`` selects the whole catalog; ``file_type`` narrows a
    category. Raises NotFoundError for an unknown or empty selection.
    """
    if category is None:
        if file_type is not None:
            raise ValueError("a file type can only be selected within a category")
        files = catalog.list_all_files()
        if not files:
            raise NotFoundError("no categories found")
        return files

    files = catalog.list_files(category, file_type)
    if not files:
        if file_type:
            raise NotFoundError(
                f"no {file_type} found in category '{category}'",
                category=category,
                file_type=file_type,
            )
        raise NotFoundError(f"no files found in category '{category}'", category=category)
    return files


def classify(file: CatalogFile, existing: InstallationRecord | None) -> ChangeAction:
    if existing is None:
        return ChangeAction.INSTALL
    if existing.has_content_changed(file.content):
        return ChangeAction.UPDATE
    return ChangeAction.SKIP


def build_plan(
    catalog: Catalog,
    state: State,
    root: str | Path,
    category: str | None = None,
    file_type: str | None = None,
) -> Plan:
    """Compute the changes needed to install a catalog selection under ``root``.

    Records whose source file is outside the selection are left alone; stale
    or missing installs are reported by the doctor, not here.
    """
    root = Path(root)
    plan = Plan(root=root, category=category, file_type=file_type)

    for file in select_files(catalog, category, file_type):
        path = target_path(root, file.type, file.category, file.filename)
        plan.changes.append(
            Change(
                action=classify(file, state.find_by_path(path)),
                type=type_label(file.type),
                name=display_name(file.category, file.filename, file.type),
                path=path,
                file=file,
            )
        )

    return plan


def select_removals(
    state: State,
    category: str | None = None,
    file_type: str | None = None,
    root: str | Path | None = None,
) -> list[InstallationRecord]:
    """Return the records a removal request covers."""
    if category is None and file_type is not None:
        raise ValueError("a file type can only be selected within a category")
    return state.list(category=category, file_type=file_type, root=root)
