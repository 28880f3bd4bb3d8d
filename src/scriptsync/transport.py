"""Transport layer for the Google services a script project touches.

Defines the Transport protocol and the production implementation:
- Transport: abstract interface over the Script, Drive and Logging services
- GoogleTransport: Apps Script API v1, Drive API v3 and Cloud Logging v2
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import certifi
import httpx
from loguru import logger

from scriptsync.exceptions import ServiceUnavailableError

SCRIPT_API_BASE = "https://script.googleapis.com/v1"
DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
LOGGING_API_BASE = "https://logging.googleapis.com/v2"
DEFAULT_TIMEOUT = 60

SCRIPT_MIME_TYPE = "application/vnd.google-apps.script"
MANIFEST_FILE_NAME = "appsscript"
VERSIONS_PAGE_SIZE = 500


class TransportError(Exception):
    """Base exception for transport errors."""


class AuthenticationError(TransportError):
    """Raised when authentication fails (401/403)."""


class NotFoundError(TransportError):
    """Raised when a remote resource is not found (404)."""


class APIError(TransportError):
    """Raised when the API returns an error."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


# --- Data classes ---


@dataclass(frozen=True)
class ScriptFile:
    """A single file within an Apps Script project."""

    name: str
    type: str  # SERVER_JS, HTML, or JSON
    source: str
    create_time: str = ""
    update_time: str = ""


@dataclass(frozen=True)
class ProjectMetadata:
    """Metadata about an Apps Script project."""

    script_id: str
    title: str
    parent_id: str = ""  # Non-empty for bound scripts
    create_time: str = ""
    update_time: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Version:
    """An immutable snapshot of a project's files."""

    version_number: int
    description: str = ""
    create_time: str = ""


@dataclass(frozen=True)
class Deployment:
    """A deployment of a project, bound to a version or to HEAD."""

    deployment_id: str
    version_number: int | None  # None for the HEAD deployment
    description: str = ""
    update_time: str = ""
    entry_points: tuple[dict[str, Any], ...] = ()

    @property
    def is_head(self) -> bool:
        return self.version_number is None

    @property
    def version_label(self) -> str:
        if self.version_number is None:
            return "@HEAD"
        return f"@{self.version_number}"


@dataclass(frozen=True)
class ExecutionResult:
    """Result of a script execution via scripts.run."""

    done: bool
    return_value: Any = None
    error: dict[str, Any] | None = None


@dataclass(frozen=True)
class DriveFile:
    """A script project as listed by Google Drive."""

    file_id: str
    name: str


@dataclass(frozen=True)
class LogEntry:
    """A single Cloud Logging entry for a script function."""

    severity: str
    timestamp: str
    function_name: str
    payload: str
    raw: dict[str, Any] = field(default_factory=dict)


# --- Transport ABC ---


class Transport(ABC):
    """Abstract base class for remote script services.

    Every method is a single remote request (or a sequence of page
    requests for listings). Nothing is retried.
    """

    @abstractmethod
    async def create_project(
        self, title: str, parent_id: str | None = None
    ) -> ProjectMetadata:
        """Create a new Apps Script project.

        Args:
            title: Project title.
            parent_id: If set, creates a container-bound script attached
                to the Google Drive file with this ID.
        """
        ...

    @abstractmethod
    async def get_content(
        self, script_id: str, version_number: int | None = None
    ) -> tuple[ScriptFile, ...]:
        """Fetch all files in a project, at HEAD or at a version."""
        ...

    @abstractmethod
    async def update_content(
        self, script_id: str, files: list[ScriptFile]
    ) -> tuple[ScriptFile, ...]:
        """Replace all files in a project (atomic operation)."""
        ...

    @abstractmethod
    async def create_version(
        self, script_id: str, description: str | None = None
    ) -> Version:
        """Create an immutable version snapshot of HEAD."""
        ...

    @abstractmethod
    async def list_versions(self, script_id: str) -> list[Version]:
        """List all versions of a project, oldest first."""
        ...

    @abstractmethod
    async def create_deployment(
        self,
        script_id: str,
        version_number: int,
        description: str | None = None,
    ) -> Deployment:
        """Create a new deployment pinned to a version."""
        ...

    @abstractmethod
    async def update_deployment(
        self,
        script_id: str,
        deployment_id: str,
        version_number: int,
        description: str | None = None,
    ) -> Deployment:
        """Repoint an existing deployment at a version."""
        ...

    @abstractmethod
    async def delete_deployment(self, script_id: str, deployment_id: str) -> None:
        """Delete a deployment."""
        ...

    @abstractmethod
    async def list_deployments(self, script_id: str) -> list[Deployment]:
        """List all deployments of a project."""
        ...

    @abstractmethod
    async def run_function(
        self,
        script_id: str,
        function: str,
        parameters: list[Any] | None = None,
        dev_mode: bool = False,
    ) -> ExecutionResult:
        """Execute a function in the script project."""
        ...

    @abstractmethod
    async def list_script_files(self, limit: int = 50) -> list[DriveFile]:
        """List the user's script projects from Drive, most recent first."""
        ...

    @abstractmethod
    async def list_log_entries(
        self, project_id: str, limit: int = 50
    ) -> list[LogEntry]:
        """List Cloud Logging entries for a GCP project, newest first."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        ...


# --- Production transport ---


class GoogleTransport(Transport):
    """Production transport over the Google REST APIs."""

    def __init__(
        self,
        access_token: str,
        timeout: int = DEFAULT_TIMEOUT,
        *,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            access_token: OAuth2 access token.
            timeout: Request timeout in seconds.
            http_transport: Optional httpx transport (used by tests).
        """
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=ssl_context,
            transport=http_transport,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )

    # -- Projects --

    async def create_project(
        self, title: str, parent_id: str | None = None
    ) -> ProjectMetadata:
        url = f"{SCRIPT_API_BASE}/projects"
        body: dict[str, str] = {"title": title}
        if parent_id:
            body["parentId"] = parent_id
        data = await self._post(url, body)
        return _parse_project_metadata(data)

    async def get_content(
        self, script_id: str, version_number: int | None = None
    ) -> tuple[ScriptFile, ...]:
        url = f"{SCRIPT_API_BASE}/projects/{script_id}/content"
        params: dict[str, Any] = {}
        if version_number is not None:
            params["versionNumber"] = version_number
        data = await self._get(url, params)
        return _parse_files(data)

    async def update_content(
        self, script_id: str, files: list[ScriptFile]
    ) -> tuple[ScriptFile, ...]:
        url = f"{SCRIPT_API_BASE}/projects/{script_id}/content"
        body: dict[str, Any] = {
            "scriptId": script_id,
            "files": [
                {"name": f.name, "type": f.type, "source": f.source} for f in files
            ],
        }
        data = await self._put(url, body)
        return _parse_files(data)

    # -- Versions --

    async def create_version(
        self, script_id: str, description: str | None = None
    ) -> Version:
        url = f"{SCRIPT_API_BASE}/projects/{script_id}/versions"
        body: dict[str, Any] = {}
        if description:
            body["description"] = description
        data = await self._post(url, body)
        return _parse_version(data)

    async def list_versions(self, script_id: str) -> list[Version]:
        url = f"{SCRIPT_API_BASE}/projects/{script_id}/versions"
        versions: list[Version] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"pageSize": VERSIONS_PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token
            data = await self._get(url, params)
            versions.extend(_parse_version(v) for v in data.get("versions", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return versions

    # -- Deployments --

    async def create_deployment(
        self,
        script_id: str,
        version_number: int,
        description: str | None = None,
    ) -> Deployment:
        url = f"{SCRIPT_API_BASE}/projects/{script_id}/deployments"
        body = _deployment_config(version_number, description)
        data = await self._post(url, body)
        return _parse_deployment(data)

    async def update_deployment(
        self,
        script_id: str,
        deployment_id: str,
        version_number: int,
        description: str | None = None,
    ) -> Deployment:
        url = f"{SCRIPT_API_BASE}/projects/{script_id}/deployments/{deployment_id}"
        body = {"deploymentConfig": _deployment_config(version_number, description)}
        data = await self._put(url, body)
        return _parse_deployment(data)

    async def delete_deployment(self, script_id: str, deployment_id: str) -> None:
        url = f"{SCRIPT_API_BASE}/projects/{script_id}/deployments/{deployment_id}"
        await self._delete(url)

    async def list_deployments(self, script_id: str) -> list[Deployment]:
        url = f"{SCRIPT_API_BASE}/projects/{script_id}/deployments"
        deployments: list[Deployment] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {}
            if page_token:
                params["pageToken"] = page_token
            data = await self._get(url, params)
            deployments.extend(
                _parse_deployment(d) for d in data.get("deployments", [])
            )
            page_token = data.get("nextPageToken")
            if not page_token:
                return deployments

    # -- Execution --

    async def run_function(
        self,
        script_id: str,
        function: str,
        parameters: list[Any] | None = None,
        dev_mode: bool = False,
    ) -> ExecutionResult:
        url = f"{SCRIPT_API_BASE}/scripts/{script_id}:run"
        body: dict[str, Any] = {"function": function, "devMode": dev_mode}
        if parameters:
            body["parameters"] = parameters
        data = await self._post(url, body)
        return ExecutionResult(
            done=data.get("done", False),
            return_value=data.get("response", {}).get("result"),
            error=data.get("error"),
        )

    # -- Drive --

    async def list_script_files(self, limit: int = 50) -> list[DriveFile]:
        url = f"{DRIVE_API_BASE}/files"
        files: list[DriveFile] = []
        page_token: str | None = None
        while len(files) < limit:
            params: dict[str, Any] = {
                "pageSize": min(limit - len(files), 100),
                "fields": "nextPageToken, files(id, name)",
                "orderBy": "modifiedByMeTime desc",
                "q": f'mimeType="{SCRIPT_MIME_TYPE}"',
            }
            if page_token:
                params["pageToken"] = page_token
            data = await self._get(url, params)
            if "files" not in data:
                raise ServiceUnavailableError("Unable to use the Drive API.")
            files.extend(
                DriveFile(file_id=f.get("id", ""), name=f.get("name", ""))
                for f in data["files"]
            )
            page_token = data.get("nextPageToken")
            if not page_token:
                break
        return files[:limit]

    # -- Logging --

    async def list_log_entries(
        self, project_id: str, limit: int = 50
    ) -> list[LogEntry]:
        url = f"{LOGGING_API_BASE}/entries:list"
        body: dict[str, Any] = {
            "resourceNames": [f"projects/{project_id}"],
            "orderBy": "timestamp desc",
            "pageSize": limit,
        }
        data = await self._post(url, body)
        return [_parse_log_entry(e) for e in data.get("entries", [])]

    async def close(self) -> None:
        await self._client.aclose()

    # -- HTTP helpers --

    async def _get(
        self, url: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        return await self._request("GET", url, params=params)

    async def _post(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", url, json=body)

    async def _put(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", url, json=body)

    async def _delete(self, url: str) -> dict[str, Any]:
        return await self._request("DELETE", url)

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        logger.debug("{} {}", method, url)
        try:
            resp = await self._client.request(method, url, **kwargs)
            resp.raise_for_status()
            if not resp.content:
                return {}
            result: dict[str, Any] = resp.json()
            return result
        except httpx.HTTPStatusError as e:
            self._handle_http_error(e)
            raise
        except httpx.RequestError as e:
            raise TransportError(f"Network error: {e}") from e

    def _handle_http_error(self, e: httpx.HTTPStatusError) -> None:
        status = e.response.status_code
        message = _error_message(e.response)
        if status == 401:
            raise AuthenticationError("Invalid or expired access token") from e
        if status == 403:
            raise AuthenticationError(
                f"Access denied (403): {message}. "
                "The Apps Script API requires user OAuth tokens "
                "(service accounts are not supported). Check your scopes."
            ) from e
        if status == 404:
            raise NotFoundError(f"Not found (404): {message}") from e
        raise APIError(f"API error ({status}): {message}", status_code=status) from e


# --- Helpers ---


def _error_message(response: httpx.Response) -> str:
    """Pull the human message out of a Google error body, if there is one."""
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.text


def _deployment_config(
    version_number: int, description: str | None
) -> dict[str, Any]:
    config: dict[str, Any] = {
        "versionNumber": version_number,
        "manifestFileName": MANIFEST_FILE_NAME,
    }
    if description:
        config["description"] = description
    return config


def _parse_project_metadata(data: dict[str, Any]) -> ProjectMetadata:
    return ProjectMetadata(
        script_id=data.get("scriptId", ""),
        title=data.get("title", ""),
        parent_id=data.get("parentId", ""),
        create_time=data.get("createTime", ""),
        update_time=data.get("updateTime", ""),
        raw=data,
    )


def _parse_files(data: dict[str, Any]) -> tuple[ScriptFile, ...]:
    return tuple(
        ScriptFile(
            name=f.get("name", ""),
            type=f.get("type", ""),
            source=f.get("source", ""),
            create_time=f.get("createTime", ""),
            update_time=f.get("updateTime", ""),
        )
        for f in data.get("files", [])
    )


def _parse_version(data: dict[str, Any]) -> Version:
    return Version(
        version_number=int(data.get("versionNumber", 0)),
        description=data.get("description", ""),
        create_time=data.get("createTime", ""),
    )


def _parse_deployment(data: dict[str, Any]) -> Deployment:
    dc = data.get("deploymentConfig", {})
    version_number = dc.get("versionNumber")
    return Deployment(
        deployment_id=data.get("deploymentId", ""),
        version_number=int(version_number) if version_number else None,
        description=dc.get("description", ""),
        update_time=data.get("updateTime", ""),
        entry_points=tuple(data.get("entryPoints", [])),
    )


def _parse_log_entry(data: dict[str, Any]) -> LogEntry:
    labels = data.get("resource", {}).get("labels", {})
    payload: str = data.get("textPayload", "")
    if not payload:
        message = data.get("jsonPayload", {}).get("message")
        if message is not None:
            payload = str(message)
    function_name = labels.get("function_name", "")
    proto = data.get("protoPayload")
    if not payload and isinstance(proto, dict):
        if proto.get("@type") == "type.googleapis.com/google.cloud.audit.AuditLog":
            payload = "Cloud Logging setup"
            function_name = proto.get("methodName", function_name)
        else:
            payload = str(proto)
    return LogEntry(
        severity=data.get("severity", "DEFAULT"),
        timestamp=data.get("timestamp", ""),
        function_name=function_name,
        payload=payload,
        raw=data,
    )
