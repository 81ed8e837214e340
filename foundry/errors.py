"""Error taxonomy shared by the catalog, state store, installer and doctor."""

from __future__ import annotations

from pathlib import Path


class FoundryError(Exception):
    """Base class for every error the CLI reports as a clean failure."""


class NotFoundError(FoundryError, LookupError):
    """A requested category, type or file is absent from the catalog."""

    def __init__(self, message: str, category: str = "", file_type: str = ""):
        self.category = category
        self.file_type = file_type
        super().__init__(message)


class StateParseError(FoundryError, ValueError):
    """The state document exists but cannot be decoded."""

    def __init__(self, path: str | Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"failed to parse state file {self.path}: {reason}")


class FileOperationError(FoundryError, OSError):
    """A read, write or delete failed part-way through a batch.

    Entries applied before the failure are kept; nothing is rolled back.
    """

    def __init__(
        self,
        message: str,
        path: str | Path,
        category: str = "",
        file_type: str = "",
    ):
        self.path = Path(path)
        self.category = category
        self.file_type = file_type
        context = ", ".join(
            f"{k}={v}" for k, v in (("category", category), ("type", file_type)) if v
        )
        detail = f"{message}: {self.path}"
        if context:
            detail += f" ({context})"
        super().__init__(detail)


class ConfigError(FoundryError):
    """The configuration file is unreadable or contains unknown keys."""


class IntegrityWarning(UserWarning):
    """An installed file no longer matches the hash recorded at install time."""
