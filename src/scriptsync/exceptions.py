"""Custom exceptions for scriptsync.

Transport failures (HTTP status and network errors) live in
``scriptsync.transport``; everything here describes a local precondition
or a remote rejection translated into project terms.
"""

from __future__ import annotations


class ScriptSyncError(Exception):
    """Base exception for scriptsync errors."""


# --- Preconditions ---


class PreconditionError(ScriptSyncError):
    """Raised before any remote call when a command cannot run here."""


class ProjectNotFoundError(PreconditionError):
    """Raised when no project settings file exists for the directory."""

    def __init__(self, directory: str) -> None:
        self.directory = directory
        super().__init__(
            f"No project settings found in '{directory}' or its parents. "
            "Run 'scriptsync create' or 'scriptsync clone' first."
        )


class MissingScriptIdError(PreconditionError):
    """Raised when the settings file has no scriptId."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"scriptId missing from {path}")


class ProjectExistsError(PreconditionError):
    """Raised when a project already exists in this directory or a parent."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            f"Project file ({path}) already exists. "
            "Nested projects are not supported."
        )


class MissingProjectIdError(PreconditionError):
    """Raised when logs are requested without a cloud project id."""

    def __init__(self) -> None:
        super().__init__(
            "No Cloud Platform projectId configured. "
            "Run 'scriptsync logs --setup' first."
        )


class CredentialsError(PreconditionError):
    """Raised when no access token is configured."""


# --- Scanning ---


class ScanError(ScriptSyncError):
    """Raised when the local project tree cannot be classified."""


class IgnorePatternError(ScanError):
    """Raised when an ignore pattern cannot be compiled."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid ignore pattern '{pattern}': {reason}")


# --- Codec ---


class CodecError(ScriptSyncError):
    """Raised when a file cannot be converted to or from its remote form."""


class UnsupportedFileTypeError(CodecError):
    """Raised for extensions or remote type tags with no mapping."""

    def __init__(self, name: str, kind: str) -> None:
        self.name = name
        self.kind = kind
        super().__init__(f"Unsupported file type '{kind}' for '{name}'")


class ManifestMissingError(ScriptSyncError):
    """Raised when remote content has no appsscript manifest."""

    def __init__(self, script_id: str) -> None:
        self.script_id = script_id
        super().__init__(
            f"Project {script_id} has no appsscript.json manifest. "
            "Every Apps Script project requires this file."
        )


# --- Remote rejections ---


class VersionNotFoundError(ScriptSyncError):
    """Raised when a deployment references a version that does not exist."""

    def __init__(self, version_number: int) -> None:
        self.version_number = version_number
        super().__init__(f"Version {version_number} does not exist.")


class DeploymentNotFoundError(ScriptSyncError):
    """Raised when a deployment cannot be found."""


class ReadOnlyDeletionError(ScriptSyncError):
    """Raised when the remote refuses to delete a deployment."""

    def __init__(self, deployment_id: str, detail: str = "") -> None:
        self.deployment_id = deployment_id
        self.detail = detail
        message = f"Unable to delete read-only deployment {deployment_id}."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


class ServiceUnavailableError(ScriptSyncError):
    """Raised when a remote service returns a response without its payload."""
