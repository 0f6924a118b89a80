"""Tree-sitter grammar loading for the languages the import analyzer understands."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tree_sitter import Language, Parser

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable


class ImportSyntax(enum.Enum):
    """Which import extractor handles a language."""

    PYTHON = "python"
    ECMASCRIPT = "ecmascript"


@dataclass(frozen=True)
class LangConfig:
    """Tree-sitter configuration for one source language."""

    language: Language
    syntax: ImportSyntax

    def parser(self) -> Parser:
        return Parser(self.language)


# ---- Language loaders (lazy, handle ImportError) ----


def _load_python() -> LangConfig:
    import tree_sitter_python as tspython

    return LangConfig(language=Language(tspython.language()), syntax=ImportSyntax.PYTHON)


def _load_typescript() -> LangConfig:
    import tree_sitter_typescript as tstypescript

    return LangConfig(
        language=Language(tstypescript.language_typescript()),
        syntax=ImportSyntax.ECMASCRIPT,
    )


def _load_tsx() -> LangConfig:
    import tree_sitter_typescript as tstypescript

    return LangConfig(
        language=Language(tstypescript.language_tsx()),
        syntax=ImportSyntax.ECMASCRIPT,
    )


# Extension -> loader function mapping.  Plain JS parses fine with the
# TypeScript grammars; JSX needs the TSX one.
_EXTENSION_LOADERS: dict[str, Callable[[], LangConfig]] = {
    ".py": _load_python,
    ".ts": _load_typescript,
    ".mts": _load_typescript,
    ".cts": _load_typescript,
    ".tsx": _load_tsx,
    ".js": _load_typescript,
    ".mjs": _load_typescript,
    ".cjs": _load_typescript,
    ".jsx": _load_tsx,
}

# Cache for loaded languages (None means "tried and failed / unsupported").
_LANG_CACHE: dict[str, LangConfig | None] = {}


def get_lang_config(extension: str) -> LangConfig | None:
    """Get language config for a file extension, or ``None`` if unsupported/unavailable."""
    if extension in _LANG_CACHE:
        return _LANG_CACHE[extension]

    loader = _EXTENSION_LOADERS.get(extension)
    if loader is None:
        _LANG_CACHE[extension] = None
        return None

    try:
        config = loader()
    except ImportError:
        _LANG_CACHE[extension] = None
        return None

    _LANG_CACHE[extension] = config
    return config


def supported_extensions(candidates: Iterable[str] | None = None) -> frozenset[str]:
    """Return the file extensions with an installed grammar.

    When *candidates* is given only those extensions are considered.
    """
    available: set[str] = set()
    for ext in candidates if candidates is not None else _EXTENSION_LOADERS:
        if get_lang_config(ext) is not None:
            available.add(ext)
    return frozenset(available)


def clear_cache() -> None:
    """Clear the language config cache (useful for testing)."""
    _LANG_CACHE.clear()
