"""Project settings persisted in a ``.clasp.json`` file.

The settings file marks the directory as a script project and records the
remote script id, where the script files live locally, and the optional
Cloud Platform project used for logs.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from scriptsync.exceptions import (
    MissingScriptIdError,
    ProjectExistsError,
    ProjectNotFoundError,
    ScriptSyncError,
)

SETTINGS_FILE_NAME = ".clasp.json"
IGNORE_FILE_NAME = ".claspignore"
DEFAULT_FILE_EXTENSION = "gs"


@dataclass(frozen=True)
class ProjectSettings:
    """Settings for one local project directory."""

    script_id: str
    root_dir: str = "."
    project_id: str | None = None
    file_extension: str = DEFAULT_FILE_EXTENSION

    def to_dict(self) -> dict[str, str]:
        data = {"scriptId": self.script_id, "rootDir": self.root_dir}
        if self.project_id:
            data["projectId"] = self.project_id
        if self.file_extension != DEFAULT_FILE_EXTENSION:
            data["fileExtension"] = self.file_extension
        return data

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> ProjectSettings:
        return cls(
            script_id=data.get("scriptId", ""),
            root_dir=data.get("rootDir") or ".",
            project_id=data.get("projectId") or None,
            file_extension=(
                data.get("fileExtension") or DEFAULT_FILE_EXTENSION
            ).lstrip("."),
        )


class SettingsStore:
    """Reads and writes the settings file of one directory.

    Example:
        >>> store = SettingsStore.find(Path.cwd())
        >>> settings = store.load()
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).absolute()

    @property
    def path(self) -> Path:
        return self.directory / SETTINGS_FILE_NAME

    @classmethod
    def find(cls, start: str | Path) -> SettingsStore:
        """Locate the nearest settings file at or above ``start``.

        Returns a store for ``start`` itself when no settings file exists
        anywhere above it, so a later ``save`` creates it there.
        """
        start = Path(start).absolute()
        for directory in (start, *start.parents):
            if (directory / SETTINGS_FILE_NAME).is_file():
                return cls(directory)
        return cls(start)

    def exists(self) -> bool:
        return self.path.is_file()

    def ensure_absent(self) -> None:
        """Raise if this directory or any parent already holds a project."""
        found = SettingsStore.find(self.directory)
        if found.exists():
            raise ProjectExistsError(str(found.path))

    def load(self) -> ProjectSettings:
        """Load settings, raising if the project or its scriptId is missing."""
        if not self.exists():
            raise ProjectNotFoundError(str(self.directory))
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            raise ScriptSyncError(f"Invalid settings file {self.path}: {e}") from e
        settings = ProjectSettings.from_dict(data)
        if not settings.script_id:
            raise MissingScriptIdError(str(self.path))
        return settings

    def save(self, settings: ProjectSettings) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(settings.to_dict(), indent=2) + "\n")
        logger.debug("Saved project settings to {}", self.path)

    def resolve_root(self, settings: ProjectSettings) -> Path:
        """Return the absolute local root for ``settings``."""
        root = Path(settings.root_dir)
        if not root.is_absolute():
            root = self.directory / root
        return root
