"""Push, pull and status for a local project directory.

The remote replaces a project's whole file set in one ``updateContent``
call, so a push is all-or-nothing: scan, encode everything, then send
everything. A pull overwrites local files of the same name and never
deletes local files.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from loguru import logger

from scriptsync.codec import (
    MANIFEST_BASENAME,
    MANIFEST_NAME,
    ContentCodec,
    FileType,
    LocalFile,
)
from scriptsync.exceptions import (
    CodecError,
    ManifestMissingError,
    ScanError,
    ScriptSyncError,
)
from scriptsync.ignore import IgnoreMatcher
from scriptsync.scanner import FileClassification, load_files, scan
from scriptsync.settings import ProjectSettings
from scriptsync.transport import ScriptFile, Transport, TransportError


@dataclass
class PushResult:
    """Result of a push operation."""

    success: bool
    message: str
    script_id: str
    files: list[str] = field(default_factory=list)

    @property
    def files_pushed(self) -> int:
        return len(self.files)


async def fetch_project(
    transport: Transport,
    script_id: str,
    root_dir: str | Path,
    version_number: int | None = None,
    *,
    codec: ContentCodec | None = None,
) -> list[LocalFile]:
    """Download a project (HEAD, or a version) into ``root_dir``.

    Every remote file is decoded before anything is written, so an
    unsupported file aborts the pull with the local tree untouched. Writes
    themselves are not transactional across files.

    Returns:
        The written files, in remote order.

    Raises:
        ManifestMissingError: If the remote has no appsscript manifest.
        UnsupportedFileTypeError: If a remote file has an unknown type.
    """
    codec = codec or ContentCodec()
    root = Path(root_dir)
    remote_files = await transport.get_content(script_id, version_number)
    manifests = [
        f for f in remote_files if f.name == MANIFEST_NAME and f.type == FileType.JSON
    ]
    if len(manifests) != 1:
        raise ManifestMissingError(script_id)

    root.mkdir(parents=True, exist_ok=True)
    local_files = [codec.decode(f, root) for f in remote_files]
    for local in local_files:
        codec.write(local, root)
        logger.debug("Wrote {}", local.relative_path)
    logger.info(
        "Pulled {} files from {}{}",
        len(local_files),
        script_id,
        f" @{version_number}" if version_number is not None else "",
    )
    return local_files


def _ensure_unique_names(
    local_files: list[LocalFile], script_files: list[ScriptFile]
) -> None:
    """Raise if two local files would land on the same remote file name."""
    seen: dict[str, str] = {}
    for local, remote in zip(local_files, script_files, strict=True):
        if remote.name in seen:
            raise CodecError(
                f"{seen[remote.name]} and {local.relative_path} both map to "
                f"remote file '{remote.name}'. Rename or ignore one of them."
            )
        seen[remote.name] = local.relative_path


class SyncEngine:
    """Synchronizes one local project directory with its remote project.

    Example:
        >>> engine = SyncEngine(transport, settings, Path("./src"))
        >>> await engine.push_files()
    """

    def __init__(
        self,
        transport: Transport,
        settings: ProjectSettings,
        root_dir: str | Path,
        matcher: IgnoreMatcher | None = None,
    ) -> None:
        self._transport = transport
        self.settings = settings
        self.root_dir = Path(root_dir)
        self.matcher = matcher or IgnoreMatcher.default()
        self.codec = ContentCodec(settings.file_extension)

    # --- Status ---

    def status(self) -> FileClassification:
        """Classify local files. Read-only."""
        return scan(self.root_dir, self.matcher)

    # --- Push ---

    async def push_files(self) -> PushResult:
        """Replace the remote file set with the local one.

        Scan and codec errors are raised. A rejected update is reported in
        the result with the remote message, and nothing is pushed.
        """
        script_id = self.settings.script_id
        classification = self.status()
        if not classification.files_to_push:
            return PushResult(
                success=True,
                message="No files to push.",
                script_id=script_id,
            )

        local_files = load_files(self.root_dir, classification.files_to_push)
        script_files: list[ScriptFile] = [self.codec.encode(f) for f in local_files]
        _ensure_unique_names(local_files, script_files)

        has_manifest = any(
            f.name == MANIFEST_NAME and f.type == FileType.JSON for f in script_files
        )
        if not has_manifest:
            return PushResult(
                success=False,
                message=self._missing_manifest_message(classification),
                script_id=script_id,
            )

        try:
            await self._transport.update_content(script_id, script_files)
        except TransportError as e:
            logger.warning("Push to {} rejected: {}", script_id, e)
            return PushResult(success=False, message=str(e), script_id=script_id)

        pushed = list(classification.files_to_push)
        logger.info("Pushed {} files to {}", len(pushed), script_id)
        return PushResult(
            success=True,
            message=f"Pushed {len(pushed)} files.",
            script_id=script_id,
            files=pushed,
        )

    def _missing_manifest_message(self, classification: FileClassification) -> str:
        misplaced = [
            rel
            for rel in classification.files_to_push
            if PurePosixPath(rel).name == MANIFEST_BASENAME
        ]
        if misplaced:
            return (
                f"Found {misplaced[0]}, but {MANIFEST_BASENAME} must be at the "
                f"project root ({self.root_dir})."
            )
        return (
            f"Missing {MANIFEST_BASENAME} manifest. "
            "Every Apps Script project requires this file."
        )

    # --- Pull ---

    async def fetch_project(self, version_number: int | None = None) -> list[LocalFile]:
        """Pull the remote project into this engine's root directory."""
        return await fetch_project(
            self._transport,
            self.settings.script_id,
            self.root_dir,
            version_number,
            codec=self.codec,
        )


class PushWatcher:
    """Push on every local change, one push at a time.

    Changes seen while a push is in flight collapse into a single follow-up
    push, so remote writes to the project never overlap.

    Args:
        engine: Engine to push with.
        interval: Seconds between filesystem polls.
        on_result: Called with each push result.
    """

    def __init__(
        self,
        engine: SyncEngine,
        interval: float = 1.0,
        on_result: Callable[[PushResult], None] | None = None,
    ) -> None:
        self._engine = engine
        self._interval = interval
        self._on_result = on_result
        self._pending = asyncio.Event()
        self._stopping = False
        self.push_count = 0

    def trigger(self) -> None:
        """Request a push; repeated requests before it starts are merged."""
        self._pending.set()

    def stop(self) -> None:
        self._stopping = True
        self._pending.set()

    async def run(self, max_pushes: int | None = None) -> None:
        """Push once, then keep pushing on change until stopped."""
        self.trigger()
        poller = asyncio.create_task(self._poll())
        try:
            while not self._stopping:
                await self._pending.wait()
                self._pending.clear()
                if self._stopping:
                    break
                await self._push_once()
                if max_pushes is not None and self.push_count >= max_pushes:
                    break
        finally:
            poller.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poller

    def snapshot(self) -> dict[str, tuple[int, int]]:
        """Map each scanned file to its (mtime_ns, size)."""
        classification = self._engine.status()
        state: dict[str, tuple[int, int]] = {}
        for rel in (*classification.files_to_push, *classification.untracked_files):
            try:
                stat = (self._engine.root_dir / rel).stat()
            except OSError:
                continue
            state[rel] = (stat.st_mtime_ns, stat.st_size)
        return state

    async def _poll(self) -> None:
        previous: dict[str, tuple[int, int]] | None = None
        while True:
            try:
                current = self.snapshot()
            except ScanError as e:
                logger.warning("Watch scan failed: {}", e)
            else:
                if previous is not None and current != previous:
                    changed = sorted(
                        set(current.items()).symmetric_difference(previous.items())
                    )
                    logger.info("Change detected: {}", changed[0][0])
                    self.trigger()
                previous = current
            await asyncio.sleep(self._interval)

    async def _push_once(self) -> None:
        try:
            result = await self._engine.push_files()
        except ScriptSyncError as e:
            logger.error("Push failed: {}", e)
            result = PushResult(
                success=False,
                message=str(e),
                script_id=self._engine.settings.script_id,
            )
        self.push_count += 1
        if self._on_result is not None:
            self._on_result(result)
