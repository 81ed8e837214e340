"""Inventory — what is present under an install root, and what we track."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from foundry.naming import FILE_TYPES, MARKDOWN_SUFFIX, is_directory_type
from foundry.state import State


@dataclass
class LocationSummary:
    root: Path
    exists: bool = False
    counts: dict[str, int] = field(default_factory=dict)  # type -> item count


def count_items(type_dir: Path, file_type: str) -> int:
    """Count items in a type directory.

    Skills are counted as subdirectories; commands and agents as ``.md``
    files. All entries count, not only ``ccf-`` ones.
    """
    if not type_dir.is_dir():
        return 0
    if is_directory_type(file_type):
        return sum(1 for p in type_dir.iterdir() if p.is_dir())
    return sum(1 for p in type_dir.iterdir() if p.is_file() and p.name.endswith(MARKDOWN_SUFFIX))


def summarize_location(root: str | Path) -> LocationSummary:
    root = Path(root)
    summary = LocationSummary(root=root, exists=root.is_dir())
    if summary.exists:
        for file_type in FILE_TYPES:
            summary.counts[file_type] = count_items(root / file_type, file_type)
    return summary


def installed_by_category(state: State, root: str | Path | None = None) -> dict[str, dict[str, int]]:
    """Group tracked installations by category, then type."""
    grouped: dict[str, dict[str, int]] = {}
    for record in state.list(root=root):
        by_type = grouped.setdefault(record.category, {})
        by_type[record.type] = by_type.get(record.type, 0) + 1
    return grouped
