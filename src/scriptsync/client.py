"""ScriptsClient - Main API for scriptsync.

Ties the settings store, the sync engine and the deployment manager
together behind one object per command invocation. The CLI only talks to
this class.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from loguru import logger

from scriptsync.codec import MANIFEST_BASENAME, LocalFile
from scriptsync.deployments import DeploymentManager
from scriptsync.exceptions import (
    CredentialsError,
    MissingProjectIdError,
    PreconditionError,
)
from scriptsync.ignore import IgnoreMatcher
from scriptsync.scanner import FileClassification, scan
from scriptsync.settings import IGNORE_FILE_NAME, ProjectSettings, SettingsStore
from scriptsync.sync import PushResult, PushWatcher, SyncEngine, fetch_project
from scriptsync.transport import (
    Deployment,
    DriveFile,
    ExecutionResult,
    LogEntry,
    Transport,
)

SCRIPT_URL = "https://script.google.com/d/{script_id}/edit"
WEBAPP_URL = "https://script.google.com/macros/s/{deployment_id}/exec"
LOGS_URL = (
    "https://console.cloud.google.com/logs/viewer"
    "?project={project_id}&resource=app_script_function"
)
MIN_SCRIPT_ID_LENGTH = 30


def parse_script_id(id_or_url: str) -> str:
    """Extract script ID from a URL or return as-is.

    Supports URLs like:
      https://script.google.com/d/SCRIPT_ID/edit
      https://script.google.com/home/projects/SCRIPT_ID/edit
    """
    patterns = [
        r"script\.google\.com/d/([a-zA-Z0-9_-]+)",
        r"script\.google\.com/home/projects/([a-zA-Z0-9_-]+)",
        r"script\.google\.com/macros/d/([a-zA-Z0-9_-]+)",
    ]
    for pattern in patterns:
        match = re.search(pattern, id_or_url)
        if match:
            return match.group(1)
    return id_or_url


def script_url(script_id: str) -> str:
    """Editor URL for a script, rejecting ids that cannot be real."""
    if len(script_id) < MIN_SCRIPT_ID_LENGTH:
        raise PreconditionError(
            f"Could not open script. Did you provide the correct scriptId "
            f"({script_id})?"
        )
    return SCRIPT_URL.format(script_id=script_id)


def webapp_url(deployment: Deployment) -> str:
    return WEBAPP_URL.format(deployment_id=deployment.deployment_id)


class ScriptsClient:
    """Client for one local script project directory.

    Example:
        >>> transport = GoogleTransport(access_token="ya29...")
        >>> client = ScriptsClient(transport, SettingsStore.find(Path.cwd()))
        >>> await client.push()
    """

    def __init__(self, transport: Transport | None, store: SettingsStore) -> None:
        self._transport = transport
        self.store = store

    @property
    def transport(self) -> Transport:
        if self._transport is None:
            raise CredentialsError(
                "No access token configured. Set SCRIPTSYNC_ACCESS_TOKEN."
            )
        return self._transport

    # --- Wiring ---

    def load_settings(self) -> ProjectSettings:
        return self.store.load()

    def matcher(self) -> IgnoreMatcher:
        return IgnoreMatcher.from_file(self.store.directory / IGNORE_FILE_NAME)

    def engine(self, settings: ProjectSettings | None = None) -> SyncEngine:
        settings = settings or self.load_settings()
        return SyncEngine(
            self.transport,
            settings,
            self.store.resolve_root(settings),
            self.matcher(),
        )

    def deployments(
        self, settings: ProjectSettings | None = None
    ) -> DeploymentManager:
        return DeploymentManager(self.transport, settings or self.load_settings())

    # --- Create / clone ---

    async def create(
        self,
        title: str,
        *,
        parent_id: str | None = None,
        root_dir: str | None = None,
    ) -> tuple[ProjectSettings, list[LocalFile]]:
        """Create a remote project and bind this directory to it.

        The manifest is pulled right away unless one already exists
        locally, otherwise the first push would have nothing to push with.
        """
        self.store.ensure_absent()
        metadata = await self.transport.create_project(title, parent_id)
        settings = ProjectSettings(
            script_id=metadata.script_id, root_dir=root_dir or "."
        )
        self.store.save(settings)
        logger.info("Created project {} ({})", title, settings.script_id)

        root = self.store.resolve_root(settings)
        if (root / MANIFEST_BASENAME).exists():
            return settings, []
        files = await self.engine(settings).fetch_project()
        return settings, files

    async def clone(
        self,
        script_id: str,
        version_number: int | None = None,
        *,
        root_dir: str | None = None,
    ) -> list[LocalFile]:
        """Bind this directory to an existing project and pull it."""
        self.store.ensure_absent()
        settings = ProjectSettings(
            script_id=parse_script_id(script_id), root_dir=root_dir or "."
        )
        files = await fetch_project(
            self.transport,
            settings.script_id,
            self.store.resolve_root(settings),
            version_number,
        )
        self.store.save(settings)
        return files

    # --- Sync ---

    async def pull(self, version_number: int | None = None) -> list[LocalFile]:
        return await self.engine().fetch_project(version_number)

    async def push(self) -> PushResult:
        return await self.engine().push_files()

    def status(self) -> FileClassification:
        settings = self.load_settings()
        return scan(self.store.resolve_root(settings), self.matcher())

    def watcher(
        self,
        interval: float = 1.0,
        on_result: Callable[[PushResult], None] | None = None,
    ) -> PushWatcher:
        return PushWatcher(self.engine(), interval=interval, on_result=on_result)

    # --- Drive ---

    async def list_projects(self, limit: int = 50) -> list[DriveFile]:
        """The user's script projects, most recently modified first."""
        return await self.transport.list_script_files(limit)

    # --- Execution ---

    async def run(
        self, function: str, parameters: list[Any] | None = None
    ) -> ExecutionResult:
        settings = self.load_settings()
        return await self.transport.run_function(
            settings.script_id, function, parameters, dev_mode=False
        )

    # --- Logs ---

    def set_project_id(self, project_id: str) -> ProjectSettings:
        """Persist the Cloud Platform project used for logs."""
        settings = self.load_settings()
        updated = replace(settings, project_id=project_id.strip())
        self.store.save(updated)
        return updated

    async def logs(self, limit: int = 50) -> list[LogEntry]:
        settings = self.load_settings()
        if not settings.project_id:
            raise MissingProjectIdError()
        return await self.transport.list_log_entries(settings.project_id, limit)

    def logs_url(self) -> str:
        settings = self.load_settings()
        if not settings.project_id:
            raise MissingProjectIdError()
        return LOGS_URL.format(project_id=settings.project_id)

    # --- Open ---

    def script_url(self, script_id: str | None = None) -> str:
        return script_url(script_id or self.load_settings().script_id)

    async def webapp_url(self) -> str:
        deployment = await self.deployments().latest_deployment()
        return webapp_url(deployment)
