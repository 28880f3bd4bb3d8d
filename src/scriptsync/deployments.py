"""Versions and deployments of a script project.

A version is an immutable snapshot of the remote HEAD files; a deployment
points at a version. The lifecycle is::

    createVersion -> Version(n) -> deploy -> Deployment(@n)
    Deployment -> redeploy -> Deployment(@m)   (same deploymentId)
    Deployment -> undeploy -> (gone)

Versions are never deleted.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from scriptsync.exceptions import (
    DeploymentNotFoundError,
    ReadOnlyDeletionError,
    VersionNotFoundError,
)
from scriptsync.settings import ProjectSettings
from scriptsync.transport import (
    APIError,
    Deployment,
    NotFoundError,
    Transport,
    Version,
)


@dataclass(frozen=True)
class DeployResult:
    """Result of a deploy: the deployment and, if one was minted, the version."""

    deployment: Deployment
    created_version: Version | None = None

    @property
    def version_number(self) -> int | None:
        return self.deployment.version_number


def parse_version_number(version: int | str) -> int:
    """Parse a user-supplied version number (``"3"`` or ``3``)."""
    try:
        number = int(version)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid version number: {version!r}") from None
    if number < 1:
        raise ValueError(f"Invalid version number: {version!r}")
    return number


class DeploymentManager:
    """Creates versions and manages deployments for one project.

    Every operation is a single remote mutation. ``deploy`` without a
    version snapshots the *remote* HEAD; push first to deploy local edits.
    """

    def __init__(self, transport: Transport, settings: ProjectSettings) -> None:
        self._transport = transport
        self._script_id = settings.script_id

    # --- Versions ---

    async def create_version(self, description: str = "") -> Version:
        version = await self._transport.create_version(self._script_id, description)
        logger.info("Created version {} of {}", version.version_number, self._script_id)
        return version

    async def list_versions(self) -> list[Version]:
        """Versions newest first."""
        versions = await self._transport.list_versions(self._script_id)
        return list(reversed(versions))

    # --- Deployments ---

    async def list_deployments(self) -> list[Deployment]:
        return await self._transport.list_deployments(self._script_id)

    async def deploy(
        self, version: int | str | None = None, description: str = ""
    ) -> DeployResult:
        """Deploy an existing version, or a freshly created one.

        Raises:
            VersionNotFoundError: If ``version`` does not exist remotely.
        """
        created: Version | None = None
        if version is None:
            created = await self.create_version(description)
            version_number = created.version_number
        else:
            version_number = parse_version_number(version)
            existing = await self._transport.list_versions(self._script_id)
            if version_number not in {v.version_number for v in existing}:
                raise VersionNotFoundError(version_number)

        try:
            deployment = await self._transport.create_deployment(
                self._script_id, version_number, description
            )
        except NotFoundError as e:
            raise VersionNotFoundError(version_number) from e
        logger.info(
            "Created deployment {} @{}", deployment.deployment_id, version_number
        )
        return DeployResult(deployment=deployment, created_version=created)

    async def redeploy(
        self, deployment_id: str, version: int | str, description: str = ""
    ) -> Deployment:
        """Repoint a deployment at ``version``; its id does not change."""
        version_number = parse_version_number(version)
        try:
            deployment = await self._transport.update_deployment(
                self._script_id, deployment_id, version_number, description
            )
        except NotFoundError as e:
            raise DeploymentNotFoundError(
                f"Deployment {deployment_id} or version {version_number} not found."
            ) from e
        logger.info("Redeployed {} @{}", deployment_id, version_number)
        return deployment

    async def undeploy(self, deployment_id: str) -> None:
        """Delete a deployment.

        Raises:
            ReadOnlyDeletionError: If the remote refuses, e.g. for the HEAD
                deployment.
            DeploymentNotFoundError: If there is no such deployment.
        """
        try:
            await self._transport.delete_deployment(self._script_id, deployment_id)
        except NotFoundError as e:
            raise DeploymentNotFoundError(
                f"Deployment {deployment_id} not found."
            ) from e
        except APIError as e:
            raise ReadOnlyDeletionError(deployment_id, str(e)) from e
        logger.info("Deleted deployment {}", deployment_id)

    async def latest_deployment(self) -> Deployment:
        """The most recently updated deployment."""
        deployments = await self.list_deployments()
        if not deployments:
            raise DeploymentNotFoundError(
                f"Project {self._script_id} has no deployments."
            )
        return max(deployments, key=lambda d: d.update_time)
