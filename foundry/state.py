"""State store — the persisted record of what cc-foundry has installed.

A single JSON document (``~/.claude-code-foundry.json`` by default) holds one
record per installed path:

    {"version": "1.0.0",
     "installations": [{"category", "type", "file", "installed_path",
                        "hash", "installed_at"}]}

Records use absolute paths, so user- and project-level installs share the
document. There is no locking: two processes saving at once can lose each
other's updates.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from foundry.catalog import CatalogFile
from foundry.errors import FileOperationError, StateParseError
from foundry.naming import content_hash

logger = logging.getLogger(__name__)

STATE_FILE = ".claude-code-foundry.json"
STATE_VERSION = "1.0.0"


def default_state_path(home: str | Path | None = None) -> Path:
    return Path(home if home is not None else Path.home()) / STATE_FILE


@dataclass
class InstallationRecord:
    """A single installed file."""

    category: str
    type: str
    file: str  # Source filename in the catalog
    installed_path: str
    hash: str  # Hex SHA-256 of the bytes written
    installed_at: str = ""  # ISO 8601, UTC

    def has_content_changed(self, new_content: bytes) -> bool:
        return content_hash(new_content) != self.hash


def record_for(file: CatalogFile, installed_path: str | Path) -> InstallationRecord:
    """Build a fresh record for content just written to ``installed_path``."""
    return InstallationRecord(
        category=file.category,
        type=file.type,
        file=file.filename,
        installed_path=str(installed_path),
        hash=content_hash(file.content),
        installed_at=datetime.now(timezone.utc).isoformat(),
    )


@dataclass
class State:
    """All installation records, in insertion order."""

    version: str = STATE_VERSION
    installations: list[InstallationRecord] = field(default_factory=list)

    def find_by_path(self, installed_path: str | Path) -> InstallationRecord | None:
        key = str(installed_path)
        for record in self.installations:
            if record.installed_path == key:
                return record
        return None

    def add(self, record: InstallationRecord) -> None:
        """Add a record, replacing any existing record for the same path."""
        self.remove(record.installed_path)
        self.installations.append(record)

    def remove(self, installed_path: str | Path) -> bool:
        """Remove the record for a path. Returns True if one was removed."""
        key = str(installed_path)
        before = len(self.installations)
        self.installations = [r for r in self.installations if r.installed_path != key]
        return len(self.installations) != before

    def list(
        self,
        category: str | None = None,
        file_type: str | None = None,
        root: str | Path | None = None,
    ) -> list[InstallationRecord]:
        """List records, optionally filtered by category, type and install root."""
        root_path = Path(root) if root is not None else None
        results = []
        for record in self.installations:
            if category and record.category != category:
                continue
            if file_type and record.type != file_type:
                continue
            if root_path is not None and not Path(record.installed_path).is_relative_to(root_path):
                continue
            results.append(record)
        return results

    def managed_paths(self) -> set[str]:
        return {r.installed_path for r in self.installations}


class StateStore:
    """Loads and saves the state document at a fixed path."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else default_state_path()

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> State:
        """Load the state document.

        A missing document is an empty state at the current version. A
        document that exists but cannot be decoded raises StateParseError;
        it is never silently replaced.
        """
        if not self.path.exists():
            logger.debug("No state file at %s, starting empty", self.path)
            return State()

        try:
            raw = self.path.read_bytes()
        except OSError as e:
            raise FileOperationError("failed to read state file", self.path) from e

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StateParseError(self.path, str(e)) from e

        state = _dict_to_state(self.path, data)
        logger.debug("Loaded %d installation(s) from %s", len(state.installations), self.path)
        return state

    def save(self, state: State) -> None:
        """Write the full document, replacing any prior content.

        Writes go to a temp file in the same directory which is then renamed
        over the target, so an interrupted save leaves the old document.
        """
        content = json.dumps(_state_to_dict(state), indent=2, ensure_ascii=False) + "\n"
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=".ccf_state_", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None:
                Path(tmp_path).unlink(missing_ok=True)
            raise FileOperationError("failed to write state file", self.path) from e

        logger.debug("Saved %d installation(s) to %s", len(state.installations), self.path)


def _state_to_dict(state: State) -> dict:
    return {
        "version": state.version,
        "installations": [
            {
                "category": r.category,
                "type": r.type,
                "file": r.file,
                "installed_path": r.installed_path,
                "hash": r.hash,
                "installed_at": r.installed_at,
            }
            for r in state.installations
        ],
    }


def _dict_to_state(path: Path, data: object) -> State:
    if not isinstance(data, dict):
        raise StateParseError(path, "top-level value is not an object")

    installations = data.get("installations") or []
    if not isinstance(installations, list):
        raise StateParseError(path, "'installations' is not a list")

    state = State(version=str(data.get("version") or STATE_VERSION))
    for i, entry in enumerate(installations):
        try:
            record = InstallationRecord(
                category=entry["category"],
                type=entry["type"],
                file=entry["file"],
                installed_path=entry["installed_path"],
                hash=entry["hash"],
                installed_at=entry.get("installed_at", ""),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise StateParseError(path, f"invalid installation entry #{i}: {e!r}") from e
        state.add(record)
    return state
