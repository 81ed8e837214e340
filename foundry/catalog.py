"""Catalog — the read-only bundle of installable commands, agents and skills.

The bundle is laid out as ``<root>/<category>/<type>/<name>.md``. Content is
handed to the installer as opaque bytes; the optional YAML header block at the
top of each file is only parsed for display (``cc-foundry list``).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import yaml

from foundry.errors import NotFoundError
from foundry.naming import FILE_TYPES, MARKDOWN_SUFFIX

BUNDLED_CATALOG_DIR = Path(__file__).parent / "categories"

_FRONTMATTER_DELIMITER = "---"


@dataclass(frozen=True)
class CatalogFile:
    """A single file within a catalog category."""

    category: str
    type: str  # "commands", "agents" or "skills"
    filename: str
    content: bytes

    @property
    def name(self) -> str:
        if self.filename.endswith(MARKDOWN_SUFFIX):
            return self.filename[: -len(MARKDOWN_SUFFIX)]
        return self.filename

    def frontmatter(self) -> dict:
        """Parse the leading ``---`` YAML block, if any.

        Returns an empty dict when the file has no header or the header is
        not a mapping. Malformed YAML is treated the same way; it only
        affects what ``list`` shows.
        """
        text = self.content.decode("utf-8", errors="replace")
        lines = text.splitlines()
        if not lines or lines[0].strip() != _FRONTMATTER_DELIMITER:
            return {}
        for i, line in enumerate(lines[1:], start=1):
            if line.strip() == _FRONTMATTER_DELIMITER:
                try:
                    data = yaml.safe_load("\n".join(lines[1:i]))
                except yaml.YAMLError:
                    return {}
                return data if isinstance(data, dict) else {}
        return {}

    @property
    def description(self) -> str:
        return str(self.frontmatter().get("description", "") or "")


class Catalog:
    """Query interface shared by every catalog implementation.

    Subclasses provide ``_categories`` and ``_files``; lookups, filtering,
    ordering and NotFound handling live here.
    """

    def _categories(self) -> Iterable[str]:
        raise NotImplementedError

    def _files(self, category: str, file_type: str) -> Iterable[CatalogFile]:
        raise NotImplementedError

    def list_categories(self) -> list[str]:
        """Return all available categories, sorted."""
        return sorted(set(self._categories()))

    def list_files(self, category: str, file_type: str | None = None) -> list[CatalogFile]:
        """Return the files of a category, optionally restricted to one type.

        Files are ordered by type (commands, agents, skills) then filename.
        """
        if category not in self.list_categories():
            raise NotFoundError(f"category '{category}' not found", category=category)

        if file_type is not None and file_type not in FILE_TYPES:
            raise NotFoundError(
                f"unknown type '{file_type}' (expected one of {', '.join(FILE_TYPES)})",
                category=category,
                file_type=file_type,
            )

        types = [file_type] if file_type else list(FILE_TYPES)
        files: list[CatalogFile] = []
        for t in types:
            files.extend(sorted(self._files(category, t), key=lambda f: f.filename))
        return files

    def list_all_files(self) -> list[CatalogFile]:
        """Return every file across all categories."""
        files: list[CatalogFile] = []
        for category in self.list_categories():
            files.extend(self.list_files(category))
        return files

    def get_file(self, category: str, file_type: str, filename: str) -> CatalogFile:
        for f in self.list_files(category, file_type):
            if f.filename == filename:
                return f
        raise NotFoundError(
            f"file '{filename}' not found in {category}/{file_type}",
            category=category,
            file_type=file_type,
        )


class DirectoryCatalog(Catalog):
    """Catalog backed by a directory tree (the bundle shipped with the package)."""

    def __init__(self, root: str | Path = BUNDLED_CATALOG_DIR):
        self.root = Path(root)

    def _categories(self) -> Iterable[str]:
        if not self.root.is_dir():
            return []
        return [p.name for p in self.root.iterdir() if p.is_dir()]

    def _files(self, category: str, file_type: str) -> Iterable[CatalogFile]:
        type_dir = self.root / category / file_type
        if not type_dir.is_dir():
            return []
        return [
            CatalogFile(
                category=category,
                type=file_type,
                filename=path.name,
                content=path.read_bytes(),
            )
            for path in type_dir.iterdir()
            if path.is_file() and path.name.endswith(MARKDOWN_SUFFIX)
        ]


class MemoryCatalog(Catalog):
    """Catalog held in memory, for tests and embedding."""

    def __init__(self, files: Iterable[CatalogFile] = ()):
        self._entries = list(files)

    def _categories(self) -> Iterable[str]:
        return [f.category for f in self._entries]

    def _files(self, category: str, file_type: str) -> Iterable[CatalogFile]:
        return [f for f in self._entries if f.category == category and f.type == file_type]
