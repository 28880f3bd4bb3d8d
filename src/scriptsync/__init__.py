"""scriptsync - Develop Google Apps Script projects from a local folder.

Push, pull and check the status of script files, and manage versions and
deployments. Reads and writes ``.clasp.json`` / ``.claspignore``.
"""

__version__ = "0.1.0"

from scriptsync.client import ScriptsClient
from scriptsync.deployments import DeploymentManager, DeployResult
from scriptsync.exceptions import (
    CodecError,
    PreconditionError,
    ReadOnlyDeletionError,
    ScanError,
    ScriptSyncError,
    UnsupportedFileTypeError,
    VersionNotFoundError,
)
from scriptsync.ignore import IgnoreMatcher
from scriptsync.scanner import FileClassification, scan
from scriptsync.settings import ProjectSettings, SettingsStore
from scriptsync.sync import PushResult, PushWatcher, SyncEngine, fetch_project
from scriptsync.transport import (
    APIError,
    AuthenticationError,
    Deployment,
    GoogleTransport,
    NotFoundError,
    Transport,
    TransportError,
    Version,
)

__all__ = [
    "APIError",
    "AuthenticationError",
    "CodecError",
    "DeployResult",
    "Deployment",
    "DeploymentManager",
    "FileClassification",
    "GoogleTransport",
    "IgnoreMatcher",
    "NotFoundError",
    "PreconditionError",
    "ProjectSettings",
    "PushResult",
    "PushWatcher",
    "ReadOnlyDeletionError",
    "ScanError",
    "ScriptSyncError",
    "ScriptsClient",
    "SettingsStore",
    "SyncEngine",
    "Transport",
    "TransportError",
    "UnsupportedFileTypeError",
    "Version",
    "VersionNotFoundError",
    "__version__",
    "fetch_project",
    "scan",
]
