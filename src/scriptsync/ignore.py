"""Ignore rules for local project files.

Patterns follow the ``.gitignore`` dialect used by ``.claspignore``:

- blank lines and lines starting with ``#`` are skipped
- ``*`` and ``?`` never cross ``/``; ``**`` does
- a pattern without an inner ``/`` matches at any depth
- a leading ``/`` anchors the pattern to the project root
- a trailing ``/`` matches directories (and everything below them)
- a leading ``!`` re-includes paths matched by earlier patterns

The last matching pattern decides. The manifest can never be ignored.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from scriptsync.codec import MANIFEST_BASENAME
from scriptsync.exceptions import IgnorePatternError

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    ".git/",
    "node_modules/",
    "**/.git/**",
    "**/node_modules/**",
)


@dataclass(frozen=True)
class IgnoreRule:
    """A single compiled ignore pattern."""

    pattern: str
    regex: re.Pattern[str]
    negated: bool
    dir_only: bool

    def matches(self, path: str, is_dir: bool) -> bool:
        parts = path.split("/")
        # Each ancestor directory, then the path itself
        for depth in range(1, len(parts) + 1):
            candidate = "/".join(parts[:depth])
            candidate_is_dir = depth < len(parts) or is_dir
            if self.dir_only and not candidate_is_dir:
                continue
            if self.regex.match(candidate):
                return True
        return False


def _translate(glob: str, pattern: str) -> str:
    """Translate one glob body into a regular expression fragment."""
    out: list[str] = []
    i = 0
    n = len(glob)
    while i < n:
        c = glob[i]
        if c == "*":
            if glob.startswith("**", i):
                at_segment_start = i == 0 or glob[i - 1] == "/"
                if at_segment_start and glob.startswith("**/", i):
                    out.append("(?:.*/)?")
                    i += 3
                    continue
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = i + 1
            if end < n and glob[end] in "!^":
                end += 1
            if end < n and glob[end] == "]":
                end += 1
            while end < n and glob[end] != "]":
                end += 1
            if end >= n:
                raise IgnorePatternError(pattern, "unterminated character class")
            body = glob[i + 1 : end]
            if body[0] in "!^":
                body = "^" + body[1:]
            out.append("[" + body.replace("\\", "\\\\") + "]")
            i = end
        elif c == "\\":
            if i + 1 >= n:
                raise IgnorePatternError(pattern, "trailing backslash")
            out.append(re.escape(glob[i + 1]))
            i += 1
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


def compile_pattern(pattern: str) -> IgnoreRule:
    """Compile one non-blank, non-comment pattern line."""
    body = pattern
    negated = body.startswith("!")
    if negated:
        body = body[1:]
    dir_only = body.endswith("/")
    body = body.rstrip("/")
    anchored = body.startswith("/") or "/" in body
    body = body.lstrip("/")
    if not body:
        raise IgnorePatternError(pattern, "empty pattern")
    prefix = "^" if anchored else "^(?:.*/)?"
    try:
        regex = re.compile(prefix + _translate(body, pattern) + "$")
    except re.error as e:
        raise IgnorePatternError(pattern, str(e)) from e
    return IgnoreRule(pattern=pattern, regex=regex, negated=negated, dir_only=dir_only)


class IgnoreMatcher:
    """Predicate over project-relative POSIX paths.

    Example:
        >>> matcher = IgnoreMatcher(["*.tmp", "!keep.tmp"])
        >>> matcher.is_ignored("other.tmp"), matcher.is_ignored("keep.tmp")
        (True, False)
    """

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns: tuple[str, ...] = tuple(_clean_lines(patterns))
        self._rules: tuple[IgnoreRule, ...] = tuple(
            compile_pattern(p) for p in self.patterns
        )
        self._has_negations = any(r.negated for r in self._rules)

    @classmethod
    def default(cls) -> IgnoreMatcher:
        return cls(DEFAULT_IGNORE_PATTERNS)

    @classmethod
    def from_file(cls, path: str | Path) -> IgnoreMatcher:
        """Load patterns from an ignore file, or the defaults if it is absent."""
        path = Path(path)
        if not path.is_file():
            return cls.default()
        return cls(path.read_text(encoding="utf-8").splitlines())

    def is_ignored(self, path: str, *, is_dir: bool = False) -> bool:
        path = _normalize(path)
        if not is_dir and PurePosixPath(path).name == MANIFEST_BASENAME:
            return False
        ignored = False
        for rule in self._rules:
            if rule.matches(path, is_dir):
                ignored = not rule.negated
        return ignored

    def can_prune(self, directory: str) -> bool:
        """Whether a whole directory can be skipped without scanning it.

        Only safe when no negation could re-include something beneath.
        """
        return not self._has_negations and self.is_ignored(directory, is_dir=True)


def _clean_lines(lines: Iterable[str]) -> Sequence[str]:
    cleaned: list[str] = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        cleaned.append(line)
    return cleaned


def _normalize(path: str) -> str:
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.strip("/")
