"""Glob matching for ledger file paths.

Patterns follow the usual shell-plus-globstar rules: ``*`` stays within a
path segment, ``**`` spans any number of directories (including none),
``[...]`` is a character class and ``{a,b}`` expands to alternatives.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from wcmatch import glob

GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.DOTGLOB


def normalize_path(file_path: str) -> str:
    """Normalize separators and strip a leading ``./`` from a ledger path."""
    normalized = file_path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


class GlobSet:
    """A precompiled list of glob patterns matched with OR semantics."""

    def __init__(self, patterns: Sequence[str]) -> None:
        self.patterns: tuple[str, ...] = tuple(patterns)
        self._matcher = (
            glob.compile(list(self.patterns), flags=GLOB_FLAGS) if self.patterns else None
        )

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def __repr__(self) -> str:
        return f"GlobSet({list(self.patterns)!r})"

    def matches(self, file_path: str) -> bool:
        """Return True if *file_path* matches any pattern."""
        if self._matcher is None:
            return False
        return bool(self._matcher.match(normalize_path(file_path)))

    def select(self, file_paths: Iterable[str]) -> list[str]:
        """Paths matching any pattern, in input order."""
        return [p for p in file_paths if self.matches(p)]

    def reject(self, file_paths: Iterable[str]) -> list[str]:
        """Paths matching none of the patterns, in input order."""
        return [p for p in file_paths if not self.matches(p)]


def path_matches_globs(file_path: str, patterns: Sequence[str]) -> bool:
    """Match one path against *patterns*; an empty list matches everything."""
    if not patterns:
        return True
    return GlobSet(patterns).matches(file_path)


def escape_glob(file_path: str) -> str:
    """Escape a literal path so it can be used as a glob pattern.

    Paths such as ``app/[id]/page.tsx`` would otherwise be read as a
    character class.
    """
    return glob.escape(normalize_path(file_path))
