"""Conversion between local files and Apps Script project files.

Remote projects have no directories: a file is a name (which may contain
``/`` or ``.``), a type tag and its source. Locally the type tag becomes
the extension, so ``lib/util.gs`` <-> ``("lib/util", SERVER_JS)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

from scriptsync.exceptions import CodecError, UnsupportedFileTypeError
from scriptsync.transport import MANIFEST_FILE_NAME, ScriptFile

MANIFEST_NAME = MANIFEST_FILE_NAME
MANIFEST_BASENAME = f"{MANIFEST_NAME}.json"


class FileType(str, Enum):
    """Apps Script file type tags."""

    SERVER_JS = "SERVER_JS"
    HTML = "HTML"
    JSON = "JSON"


# Extensions that may be pushed. JSON is only valid for the manifest.
EXT_TO_FILE_TYPE: dict[str, FileType] = {
    ".gs": FileType.SERVER_JS,
    ".js": FileType.SERVER_JS,
    ".html": FileType.HTML,
    ".json": FileType.JSON,
}

SCRIPT_EXTENSIONS: tuple[str, ...] = tuple(
    ext for ext, t in EXT_TO_FILE_TYPE.items() if t is FileType.SERVER_JS
)


@dataclass(frozen=True)
class LocalFile:
    """A file in the local project tree."""

    relative_path: str  # POSIX, relative to the project root
    content: bytes

    @property
    def extension(self) -> str:
        return PurePosixPath(self.relative_path).suffix

    @property
    def is_manifest(self) -> bool:
        return PurePosixPath(self.relative_path).name == MANIFEST_BASENAME


def is_allowed_extension(relative_path: str) -> bool:
    """Whether the file's extension is one the remote can store at all."""
    return PurePosixPath(relative_path).suffix in EXT_TO_FILE_TYPE


def is_pushable(relative_path: str) -> bool:
    """Whether the file maps to a remote file type."""
    path = PurePosixPath(relative_path)
    if path.name == MANIFEST_BASENAME:
        return True
    return EXT_TO_FILE_TYPE.get(path.suffix) in (FileType.SERVER_JS, FileType.HTML)


class ContentCodec:
    """Maps LocalFile <-> ScriptFile.

    ``.gs`` and ``.js`` both encode to SERVER_JS, so decode has to pick one:
    a script already on disk keeps its extension, anything new gets
    ``script_extension``. ``decode(encode(f)) == f`` therefore holds for a
    ``.js`` file under the default ``gs`` setting only while that file
    exists under the root.

    Args:
        script_extension: Extension written for new SERVER_JS files on
            decode (``gs`` or ``js``).
    """

    def __init__(self, script_extension: str = "gs") -> None:
        script_extension = "." + script_extension.lstrip(".")
        if EXT_TO_FILE_TYPE.get(script_extension) is not FileType.SERVER_JS:
            raise UnsupportedFileTypeError("<settings>", script_extension)
        self._type_to_ext: dict[FileType, str] = {
            FileType.SERVER_JS: script_extension,
            FileType.HTML: ".html",
            FileType.JSON: ".json",
        }

    def encode(self, local: LocalFile) -> ScriptFile:
        path = PurePosixPath(local.relative_path)
        if not is_pushable(local.relative_path):
            raise UnsupportedFileTypeError(local.relative_path, local.extension)
        file_type = EXT_TO_FILE_TYPE[local.extension]
        try:
            source = local.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecError(f"{local.relative_path} is not valid UTF-8: {e}") from e
        name = str(path.with_suffix(""))
        return ScriptFile(name=name, type=file_type.value, source=source)

    def decode(self, remote: ScriptFile, root_dir: str | Path) -> LocalFile:
        try:
            file_type = FileType(remote.type)
        except ValueError:
            raise UnsupportedFileTypeError(remote.name, remote.type) from None
        relative_path = remote.name + self._type_to_ext[file_type]
        if file_type is FileType.SERVER_JS:
            existing = self._existing_script(remote.name, root_dir)
            relative_path = existing or relative_path
        self.resolve(relative_path, root_dir)
        return LocalFile(
            relative_path=relative_path, content=remote.source.encode("utf-8")
        )

    def _existing_script(self, name: str, root_dir: str | Path) -> str | None:
        """Local path of a script named ``name`` already under the root."""
        preferred = self._type_to_ext[FileType.SERVER_JS]
        for ext in sorted(SCRIPT_EXTENSIONS, key=lambda e: e != preferred):
            if (Path(root_dir) / (name + ext)).is_file():
                return name + ext
        return None

    def resolve(self, relative_path: str, root_dir: str | Path) -> Path:
        """Absolute location of ``relative_path``, which must stay inside root."""
        root = Path(root_dir).resolve()
        target = (root / relative_path).resolve()
        if PurePosixPath(relative_path).is_absolute() or not target.is_relative_to(
            root
        ):
            raise CodecError(f"Remote file '{relative_path}' escapes {root}")
        return target

    def write(self, local: LocalFile, root_dir: str | Path) -> Path:
        """Write ``local`` under ``root_dir``, creating parent directories."""
        target = self.resolve(local.relative_path, root_dir)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(local.content)
        return target
