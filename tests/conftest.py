"""Shared test fixtures for scriptsync."""

from __future__ import annotations

from pathlib import Path

import pytest

from scriptsync.client import ScriptsClient
from scriptsync.settings import ProjectSettings, SettingsStore
from scriptsync.transport import ScriptFile
from tests.fakes import MANIFEST_SOURCE, FakeTransport

SCRIPT_ID = "test_project"

PROJECT_FILES = [
    ScriptFile(
        "Code",
        "SERVER_JS",
        "function onOpen() {\n  SpreadsheetApp.getUi().createMenu('Reports');\n}\n",
    ),
    ScriptFile(
        "lib/Utils",
        "SERVER_JS",
        "function formatDate(d) {\n  return d.toISOString();\n}\n",
    ),
    ScriptFile("Sidebar", "HTML", "<h1>Report Generator</h1>\n"),
    ScriptFile("appsscript", "JSON", MANIFEST_SOURCE),
]


@pytest.fixture
def transport() -> FakeTransport:
    fake = FakeTransport()
    fake.add_project(SCRIPT_ID, PROJECT_FILES, title="My Test Script")
    return fake


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A directory bound to the test project, with no script files yet."""
    directory = tmp_path / "project"
    SettingsStore(directory).save(ProjectSettings(script_id=SCRIPT_ID))
    return directory


@pytest.fixture
def store(project_dir: Path) -> SettingsStore:
    return SettingsStore(project_dir)


@pytest.fixture
def client(transport: FakeTransport, store: SettingsStore) -> ScriptsClient:
    return ScriptsClient(transport, store)


def write_files(root: Path, files: dict[str, str]) -> None:
    """Create files (and parent directories) under ``root``."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
