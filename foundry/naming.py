"""Naming and placement rules for installed catalog files.

Every installed item carries the ``ccf-`` prefix and embeds its category, so
two categories can never collide on disk:

    commands/ccf-<category>-<name>.md
    agents/ccf-<category>-<name>.md
    skills/ccf-<category>-<name>/SKILL.md
"""

from __future__ import annotations

import hashlib
from enum import Enum
from pathlib import Path

PREFIX = "ccf-"
MARKDOWN_SUFFIX = ".md"
SKILL_FILENAME = "SKILL.md"

COMMANDS = "commands"
AGENTS = "agents"
SKILLS = "skills"

# Order matters: catalog listings and reports follow it.
FILE_TYPES = (COMMANDS, AGENTS, SKILLS)
FLAT_TYPES = frozenset({COMMANDS, AGENTS})
DIRECTORY_TYPES = frozenset({SKILLS})

CLAUDE_DIR = ".claude"


class InstallLocation(Enum):
    """The two supported install roots."""

    USER = "user"  # ~/.claude, shared by all projects
    PROJECT = "project"  # ./.claude, can be committed with the project

    @property
    def description(self) -> str:
        if self is InstallLocation.USER:
            return "user (~/.claude/)"
        return "project (.claude/)"


def location_root(base_dir: str | Path) -> Path:
    """Return the ``.claude`` directory under a home or project directory."""
    return Path(base_dir) / CLAUDE_DIR


def is_directory_type(file_type: str) -> bool:
    return file_type in DIRECTORY_TYPES


def installed_name(category: str, filename: str) -> str:
    """Return the prefixed ``.md`` filename for a catalog file."""
    base = filename[: -len(MARKDOWN_SUFFIX)] if filename.endswith(MARKDOWN_SUFFIX) else filename
    return f"{PREFIX}{category}-{base}{MARKDOWN_SUFFIX}"


def item_name(category: str, filename: str, file_type: str) -> str:
    """Return the name of the entry created directly inside the type directory.

    Skills install as a directory, so the ``.md`` suffix is dropped.
    """
    name = installed_name(category, filename)
    if is_directory_type(file_type):
        return name[: -len(MARKDOWN_SUFFIX)]
    return name


def display_name(category: str, filename: str, file_type: str) -> str:
    name = item_name(category, filename, file_type)
    if is_directory_type(file_type):
        return f"{name}/{SKILL_FILENAME}"
    return name


def target_path(root: str | Path, file_type: str, category: str, filename: str) -> Path:
    """Resolve where a catalog file is installed under ``root``."""
    type_dir = Path(root) / file_type
    name = item_name(category, filename, file_type)
    if is_directory_type(file_type):
        return type_dir / name / SKILL_FILENAME
    return type_dir / name


def removal_target(installed_path: str | Path, file_type: str) -> Path:
    """Return what must be deleted to remove an installed item.

    For skills that is the whole ``ccf-...`` directory, not just ``SKILL.md``.
    A skill record whose path does not have that shape removes only the
    path itself.
    """
    path = Path(installed_path)
    if (
        is_directory_type(file_type)
        and path.name == SKILL_FILENAME
        and is_managed_name(path.parent.name, file_type, True)
    ):
        return path.parent
    return path


def is_managed_name(name: str, file_type: str, is_dir: bool) -> bool:
    """Check whether a directory entry follows the installed naming convention."""
    if not name.startswith(PREFIX):
        return False
    if is_directory_type(file_type):
        return is_dir
    return not is_dir and name.endswith(MARKDOWN_SUFFIX)


def type_label(file_type: str) -> str:
    """Singular label for display: ``commands`` -> ``command``."""
    return file_type[:-1] if file_type.endswith("s") else file_type


def content_hash(content: bytes) -> str:
    """Hex SHA-256 of the exact bytes written to disk."""
    return hashlib.sha256(content).hexdigest()


def file_hash(path: str | Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def display_path(path: str | Path, home: str | Path | None = None) -> str:
    """Collapse the home directory to ``~`` for display."""
    p = Path(path)
    home_path = Path(home) if home is not None else Path.home()
    try:
        relative = p.relative_to(home_path)
    except ValueError:
        return str(p)
    return str(Path("~") / relative)
