"""In-memory fake of the remote script services.

Behaves like the Apps Script API for the parts scriptsync uses: whole-file
content replacement, append-only versions that snapshot HEAD, deployments
bound to versions, and a read-only HEAD deployment.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from scriptsync.transport import (
    APIError,
    Deployment,
    DriveFile,
    ExecutionResult,
    LogEntry,
    NotFoundError,
    ProjectMetadata,
    ScriptFile,
    Transport,
    Version,
)

HEAD_DEPLOYMENT_ID = "head-deployment"

MANIFEST_SOURCE = '{\n  "timeZone": "America/New_York",\n  "runtimeVersion": "V8"\n}\n'


@dataclass
class FakeProject:
    """State of one remote project."""

    title: str
    files: tuple[ScriptFile, ...] = ()
    versions: list[tuple[Version, tuple[ScriptFile, ...]]] = field(
        default_factory=list
    )
    deployments: dict[str, Deployment] = field(default_factory=dict)


class FakeTransport(Transport):
    """Fake transport with controllable failures.

    Args:
        update_delay: Seconds each update_content call takes (for watch tests).
    """

    def __init__(self, update_delay: float = 0.0) -> None:
        self.projects: dict[str, FakeProject] = {}
        self.drive_files: list[DriveFile] = []
        self.log_entries: dict[str, list[LogEntry]] = {}
        self.update_calls: list[tuple[str, list[ScriptFile]]] = []
        self.update_error: Exception | None = None
        self.update_delay = update_delay
        self.active_updates = 0
        self.max_concurrent_updates = 0
        self.closed = False
        self._next_id = 1

    # --- Helpers for tests ---

    def add_project(
        self,
        script_id: str,
        files: list[ScriptFile] | None = None,
        title: str = "Test Project",
    ) -> FakeProject:
        if files is None:
            files = [ScriptFile("appsscript", "JSON", MANIFEST_SOURCE)]
        project = FakeProject(title=title, files=tuple(files))
        project.deployments[HEAD_DEPLOYMENT_ID] = Deployment(
            deployment_id=HEAD_DEPLOYMENT_ID,
            version_number=None,
            update_time="2024-01-01T00:00:00Z",
        )
        self.projects[script_id] = project
        return project

    def _project(self, script_id: str) -> FakeProject:
        if script_id not in self.projects:
            raise NotFoundError(f"Not found (404): project {script_id}")
        return self.projects[script_id]

    def _timestamp(self) -> str:
        self._next_id += 1
        return f"2024-01-01T00:00:{self._next_id:02d}Z"

    # --- Transport ---

    async def create_project(
        self, title: str, parent_id: str | None = None
    ) -> ProjectMetadata:
        script_id = f"created_script_{self._next_id}"
        self._next_id += 1
        self.add_project(script_id, title=title)
        return ProjectMetadata(
            script_id=script_id, title=title, parent_id=parent_id or ""
        )

    async def get_content(
        self, script_id: str, version_number: int | None = None
    ) -> tuple[ScriptFile, ...]:
        project = self._project(script_id)
        if version_number is None:
            return project.files
        for version, files in project.versions:
            if version.version_number == version_number:
                return files
        raise NotFoundError(f"Not found (404): version {version_number}")

    async def update_content(
        self, script_id: str, files: list[ScriptFile]
    ) -> tuple[ScriptFile, ...]:
        self.active_updates += 1
        self.max_concurrent_updates = max(
            self.max_concurrent_updates, self.active_updates
        )
        try:
            if self.update_delay:
                await asyncio.sleep(self.update_delay)
            if self.update_error is not None:
                raise self.update_error
            project = self._project(script_id)
            self.update_calls.append((script_id, list(files)))
            project.files = tuple(files)
            return project.files
        finally:
            self.active_updates -= 1

    async def create_version(
        self, script_id: str, description: str | None = None
    ) -> Version:
        project = self._project(script_id)
        version = Version(
            version_number=len(project.versions) + 1,
            description=description or "",
            create_time=self._timestamp(),
        )
        project.versions.append((version, project.files))
        return version

    async def list_versions(self, script_id: str) -> list[Version]:
        return [v for v, _ in self._project(script_id).versions]

    async def create_deployment(
        self,
        script_id: str,
        version_number: int,
        description: str | None = None,
    ) -> Deployment:
        project = self._project(script_id)
        if version_number > len(project.versions):
            raise NotFoundError(f"Not found (404): version {version_number}")
        deployment = Deployment(
            deployment_id=f"deployment_{self._next_id}",
            version_number=version_number,
            description=description or "",
            update_time=self._timestamp(),
        )
        project.deployments[deployment.deployment_id] = deployment
        return deployment

    async def update_deployment(
        self,
        script_id: str,
        deployment_id: str,
        version_number: int,
        description: str | None = None,
    ) -> Deployment:
        project = self._project(script_id)
        if deployment_id not in project.deployments:
            raise NotFoundError(f"Not found (404): deployment {deployment_id}")
        if deployment_id == HEAD_DEPLOYMENT_ID:
            raise APIError(
                "API error (400): Read-only deployments may not be modified.",
                status_code=400,
            )
        deployment = Deployment(
            deployment_id=deployment_id,
            version_number=version_number,
            description=description or "",
            update_time=self._timestamp(),
        )
        project.deployments[deployment_id] = deployment
        return deployment

    async def delete_deployment(self, script_id: str, deployment_id: str) -> None:
        project = self._project(script_id)
        if deployment_id not in project.deployments:
            raise NotFoundError(f"Not found (404): deployment {deployment_id}")
        if deployment_id == HEAD_DEPLOYMENT_ID:
            raise APIError(
                "API error (400): Read-only deployments may not be modified.",
                status_code=400,
            )
        del project.deployments[deployment_id]

    async def list_deployments(self, script_id: str) -> list[Deployment]:
        return list(self._project(script_id).deployments.values())

    async def run_function(
        self,
        script_id: str,
        function: str,
        parameters: list[Any] | None = None,
        dev_mode: bool = False,
    ) -> ExecutionResult:
        self._project(script_id)
        return ExecutionResult(done=True, return_value={"function": function})

    async def list_script_files(self, limit: int = 50) -> list[DriveFile]:
        return self.drive_files[:limit]

    async def list_log_entries(
        self, project_id: str, limit: int = 50
    ) -> list[LogEntry]:
        return self.log_entries.get(project_id, [])[:limit]

    async def close(self) -> None:
        self.closed = True
