"""Doctor — detect divergence between the installation state and the disk.

Three independent checks feed one report:

1. External config health: ``~/.claude.json`` exists, is valid JSON and is
   not oversized. Advisory only, never repaired here.
2. File integrity: every tracked file still exists and still hashes to the
   recorded value. Missing files can be deregistered; modified files are
   reported but never repaired, so local edits are not discarded.
3. Orphans: ``ccf-`` entries under either install root that no record
   tracks. These can be deleted.

Repairs are plain values (DeregisterRecord, DeleteFile, DeleteDirectory)
executed by ``repair``; each runs independently of the others.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Union

from foundry.naming import FILE_TYPES, SKILL_FILENAME, file_hash, is_managed_name
from foundry.state import State, StateStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_SIZE_LIMIT_MB = 50.0


class Severity:
    ERROR = "error"
    WARNING = "warning"


class IssueCategory:
    CONFIG = "config"
    ORPHANED = "orphaned"
    # Integrity issues use the record's own catalog category.


# --- Repair actions ---


@dataclass(frozen=True)
class DeregisterRecord:
    """Drop the state record for a file that no longer exists."""

    installed_path: str


@dataclass(frozen=True)
class DeleteFile:
    path: str


@dataclass(frozen=True)
class DeleteDirectory:
    """Recursively delete an orphaned skill directory."""

    path: str


RepairAction = Union[DeregisterRecord, DeleteFile, DeleteDirectory]


# --- Report ---


@dataclass
class Issue:
    """A detected problem, optionally paired with a repair."""

    severity: str
    category: str
    description: str
    repair: RepairAction | None = None

    @property
    def fixable(self) -> bool:
        return self.repair is not None


@dataclass
class HealthReport:
    """Aggregated diagnostics for one doctor run."""

    issues: list[Issue] = field(default_factory=list)
    files_checked: int = 0
    missing_files: int = 0
    modified_files: int = 0
    orphaned_files: int = 0

    @property
    def errors(self) -> int:
        return sum(1 for i in self.issues if i.severity == Severity.ERROR)

    @property
    def warnings(self) -> int:
        return sum(1 for i in self.issues if i.severity == Severity.WARNING)

    @property
    def healthy(self) -> bool:
        return not self.issues

    @property
    def fixable_issues(self) -> list[Issue]:
        return [i for i in self.issues if i.fixable]

    def add(self, severity: str, category: str, description: str, repair: RepairAction | None = None) -> Issue:
        issue = Issue(severity=severity, category=category, description=description, repair=repair)
        self.issues.append(issue)
        return issue

    def summary(self) -> str:
        if self.healthy:
            return f"No issues found ({self.files_checked} files checked)"
        return (
            f"{self.files_checked} files checked: {self.errors} error(s), "
            f"{self.warnings} warning(s) [missing={self.missing_files}, "
            f"modified={self.modified_files}, orphaned={self.orphaned_files}]"
        )


@dataclass
class RepairResult:
    fixed: int = 0
    failed: int = 0
    failures: list[tuple[Issue, str]] = field(default_factory=list)


# --- Checks ---


def check_external_config(
    report: HealthReport,
    config_path: str | Path,
    size_limit_mb: float = DEFAULT_CONFIG_SIZE_LIMIT_MB,
) -> None:
    """Check that the external config document is present, parseable and small."""
    path = Path(config_path)

    if not path.exists():
        report.add(
            Severity.WARNING,
            IssueCategory.CONFIG,
            f"{path} does not exist (Claude Code may not be installed)",
        )
        return

    try:
        data = path.read_bytes()
    except OSError as e:
        report.add(Severity.ERROR, IssueCategory.CONFIG, f"Cannot read {path}: {e}")
        return

    try:
        json.loads(data)
    except ValueError as e:
        report.add(Severity.ERROR, IssueCategory.CONFIG, f"{path} is not valid JSON: {e}")
        return

    size_mb = len(data) / (1024 * 1024)
    if size_mb > size_limit_mb:
        report.add(
            Severity.WARNING,
            IssueCategory.CONFIG,
            f"{path} is large ({size_mb:.1f}MB) - may cause performance issues",
        )


def check_file_integrity(report: HealthReport, state: State) -> None:
    """Verify every tracked file exists and matches its recorded hash."""
    for record in state.installations:
        report.files_checked += 1
        path = Path(record.installed_path)

        if not path.exists():
            report.missing_files += 1
            report.add(
                Severity.ERROR,
                record.category,
                f"Missing file: {path}",
                repair=DeregisterRecord(record.installed_path),
            )
            continue

        try:
            current = file_hash(path)
        except OSError as e:
            report.add(Severity.ERROR, record.category, f"Cannot read file {path}: {e}")
            continue

        if current != record.hash:
            report.modified_files += 1
            report.add(
                Severity.WARNING,
                record.category,
                f"Modified file detected: {path} (hash mismatch)",
            )


def detect_orphans(report: HealthReport, state: State, roots: Iterable[str | Path]) -> None:
    """Find ``ccf-`` entries under the install roots that no record tracks."""
    managed = state.managed_paths()
    seen: set[Path] = set()

    for root in roots:
        root = Path(root)
        if root in seen or not root.is_dir():
            continue
        seen.add(root)

        for file_type in FILE_TYPES:
            type_dir = root / file_type
            if not type_dir.is_dir():
                continue

            try:
                entries = sorted(type_dir.iterdir())
            except OSError as e:
                logger.warning("cannot scan %s: %s", type_dir, e)
                continue

            for entry in entries:
                is_dir = entry.is_dir()
                if not is_managed_name(entry.name, file_type, is_dir):
                    continue

                if is_dir:
                    # A skill directory is tracked through its SKILL.md.
                    if str(entry / SKILL_FILENAME) in managed:
                        continue
                    action: RepairAction = DeleteDirectory(str(entry))
                else:
                    if str(entry) in managed:
                        continue
                    action = DeleteFile(str(entry))

                report.orphaned_files += 1
                report.add(
                    Severity.WARNING,
                    IssueCategory.ORPHANED,
                    f"Orphaned foundry file: {entry} (not tracked in state)",
                    repair=action,
                )


def run_diagnostics(
    state: State,
    roots: Iterable[str | Path],
    external_config: str | Path,
    size_limit_mb: float = DEFAULT_CONFIG_SIZE_LIMIT_MB,
) -> HealthReport:
    """Run all checks and return the aggregated report."""
    report = HealthReport()

    check_external_config(report, external_config, size_limit_mb)
    check_file_integrity(report, state)
    detect_orphans(report, state, roots)

    logger.info("doctor: %s", report.summary())
    return report


# --- Repair ---


def execute_repair(action: RepairAction, state: State) -> None:
    """Execute one repair action. Raises OSError if a delete fails."""
    if isinstance(action, DeregisterRecord):
        state.remove(action.installed_path)
    elif isinstance(action, DeleteDirectory):
        shutil.rmtree(action.path)
    elif isinstance(action, DeleteFile):
        Path(action.path).unlink()
    else:
        raise TypeError(f"unknown repair action: {action!r}")


def repair(report: HealthReport, store: StateStore) -> RepairResult:
    """Apply every fixable issue's repair; one failure does not stop the rest.

    The state is loaded once and saved once if any record was dropped.
    """
    result = RepairResult()
    state = store.load()
    deregistered = False

    for issue in report.fixable_issues:
        try:
            execute_repair(issue.repair, state)
        except OSError as e:
            logger.warning("failed to fix %s: %s", issue.description, e)
            result.failed += 1
            result.failures.append((issue, str(e)))
            continue

        if isinstance(issue.repair, DeregisterRecord):
            deregistered = True
        logger.info("fixed: %s", issue.description)
        result.fixed += 1

    if deregistered:
        store.save(state)

    return result
