"""Directory scanning: which local files get pushed and which are ignored."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from loguru import logger

from scriptsync.codec import (
    MANIFEST_BASENAME,
    LocalFile,
    is_allowed_extension,
    is_pushable,
)
from scriptsync.exceptions import ScanError
from scriptsync.ignore import IgnoreMatcher
from scriptsync.settings import IGNORE_FILE_NAME, SETTINGS_FILE_NAME

# Project bookkeeping files, never pushed and never reported
RESERVED_NAMES = frozenset({SETTINGS_FILE_NAME, IGNORE_FILE_NAME})


@dataclass
class FileClassification:
    """Scan result, both lists in scan order."""

    files_to_push: list[str] = field(default_factory=list)
    untracked_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "filesToPush": list(self.files_to_push),
            "untrackedFiles": list(self.untracked_files),
        }


def scan(root_dir: str | Path, matcher: IgnoreMatcher) -> FileClassification:
    """Classify every file under ``root_dir``.

    - ignored by ``matcher``: untracked
    - pushable (script, html, the manifest): to push
    - other ``.json`` files: untracked, the remote holds only the manifest
    - anything else: left out of both lists

    Raises:
        ScanError: If the root is missing or unreadable, or it holds more
            than one manifest.
    """
    root = Path(root_dir)
    if not root.exists():
        raise ScanError(f"Project root does not exist: {root}")
    if not root.is_dir():
        raise ScanError(f"Project root is not a directory: {root}")

    result = FileClassification()
    manifests: list[str] = []
    for rel in _walk(root, "", matcher):
        if PurePosixPath(rel).name in RESERVED_NAMES:
            continue
        if matcher.is_ignored(rel):
            result.untracked_files.append(rel)
        elif is_pushable(rel):
            result.files_to_push.append(rel)
            if PurePosixPath(rel).name == MANIFEST_BASENAME:
                manifests.append(rel)
        elif is_allowed_extension(rel):
            result.untracked_files.append(rel)

    if len(manifests) > 1:
        raise ScanError(
            f"Found {len(manifests)} {MANIFEST_BASENAME} files "
            f"({', '.join(manifests)}); a project has exactly one manifest"
        )
    logger.debug(
        "Scanned {}: {} to push, {} untracked",
        root,
        len(result.files_to_push),
        len(result.untracked_files),
    )
    return result


def _walk(root: Path, prefix: str, matcher: IgnoreMatcher) -> list[str]:
    """Depth-first, name-sorted list of file paths relative to ``root``.

    Symlinked directories are not descended into.
    """
    directory = root / prefix if prefix else root
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise ScanError(f"Cannot read directory {directory}: {e}") from e

    files: list[str] = []
    for entry in entries:
        rel = f"{prefix}/{entry.name}" if prefix else entry.name
        if entry.is_dir(follow_symlinks=False):
            if matcher.can_prune(rel):
                logger.debug("Skipping ignored directory {}", rel)
                continue
            files.extend(_walk(root, rel, matcher))
        elif entry.is_file():
            files.append(rel)
    return files


def load_files(root_dir: str | Path, relative_paths: list[str]) -> list[LocalFile]:
    """Read the given files, preserving order."""
    root = Path(root_dir)
    loaded: list[LocalFile] = []
    for rel in relative_paths:
        try:
            content = (root / rel).read_bytes()
        except OSError as e:
            raise ScanError(f"Cannot read {rel}: {e}") from e
        loaded.append(LocalFile(relative_path=rel, content=content))
    return loaded
