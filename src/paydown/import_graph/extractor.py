"""Module discovery and import extraction via tree-sitter.

This is the static-analysis side of the import graph: it finds source
modules under a root directory, extracts their import specifiers and
resolves each one either to another discovered module (internal) or
leaves it unresolved (external: third-party packages, stdlib, missing files).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from paydown.globs import GlobSet
from paydown.import_graph.languages import ImportSyntax, get_lang_config, supported_extensions

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from tree_sitter import Node as TSNode

logger = logging.getLogger(__name__)

# Directories never worth descending into.
_SKIP_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".paydown",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".tox",
        ".venv",
        "venv",
        "__pycache__",
        "node_modules",
    }
)

# Python source roots probed for absolute imports (bare root last).
_PYTHON_SCAN_PREFIXES: tuple[str, ...] = ("src", "lib", "app", "")

# Well-known TS/JS path aliases mapped to directory names.
_TS_ALIAS_MAP: dict[str, str] = {
    "@/": "src/",
    "~/": "src/",
}

_ES_PROBE_EXTENSIONS: tuple[str, ...] = (
    ".ts",
    ".tsx",
    ".mts",
    ".cts",
    ".js",
    ".jsx",
    ".mjs",
    ".cjs",
)

# ESM-style TypeScript imports name the emitted file (``./x.js`` for ``x.ts``).
_ES_EMITTED_SOURCES: dict[str, tuple[str, ...]] = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}


class ModuleAnalysisError(Exception):
    """Raised when the module list for a directory cannot be produced."""


@dataclass(frozen=True)
class RawImport:
    """An import as written in source, before resolution."""

    specifier: str  # "a.b", "..pkg", "./util", "react"
    line_number: int  # 1-based
    names: tuple[str, ...] = ()  # Python ``from X import names``


@dataclass(frozen=True)
class ModuleImport:
    """An import with its resolution outcome."""

    specifier: str
    line_number: int
    resolved: str | None  # absolute path of the target module when internal

    @property
    def internal(self) -> bool:
        return self.resolved is not None


@dataclass(frozen=True)
class ModuleInfo:
    """One discovered source module and its imports."""

    source: str  # absolute path
    imports: tuple[ModuleImport, ...]

    @property
    def internal_targets(self) -> list[str]:
        """Resolved targets in first-seen order, without duplicates."""
        seen: dict[str, None] = {}
        for imp in self.imports:
            if imp.resolved is not None and imp.resolved != self.source:
                seen.setdefault(imp.resolved, None)
        return list(seen)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _text(node: TSNode | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8")


def _walk(root: TSNode, types: frozenset[str]) -> Iterator[TSNode]:
    """Yield descendants of *root* whose type is in *types* (not nested in a match)."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in types:
            yield node
            continue
        stack.extend(reversed(node.children))


def _python_name(node: TSNode) -> str:
    if node.type == "aliased_import":
        return _text(node.child_by_field_name("name"))
    return _text(node)


def _extract_python_imports(root: TSNode) -> list[RawImport]:
    results: list[RawImport] = []
    for node in _walk(root, frozenset({"import_statement", "import_from_statement"})):
        line = node.start_point.row + 1
        if node.type == "import_statement":
            # `import X` or `import X.Y as Z`
            for name_node in node.children_by_field_name("name"):
                path = _python_name(name_node)
                if path:
                    results.append(RawImport(specifier=path, line_number=line))
            continue

        # `from X import Y` / `from . import Y` / `from ..X import *`
        module = _text(node.child_by_field_name("module_name"))
        if not module:
            continue
        names = tuple(
            name for name in (_python_name(n) for n in node.children_by_field_name("name")) if name
        )
        results.append(RawImport(specifier=module, line_number=line, names=names))
    return results


def _string_value(node: TSNode | None) -> str | None:
    """Extract the value of a JS/TS string literal node."""
    if node is None or node.type != "string":
        return None
    for sub in node.children:
        if sub.type == "string_fragment":
            return _text(sub) or None
    return None


def _extract_ecmascript_imports(root: TSNode) -> list[RawImport]:
    results: list[RawImport] = []
    types = frozenset({"import_statement", "export_statement", "call_expression"})
    for node in _walk(root, types):
        source: str | None = None
        if node.type in ("import_statement", "export_statement"):
            source = _string_value(node.child_by_field_name("source"))
            if node.type == "export_statement" and source is None:
                # `export function f() { require("x") }`: look inside.
                for inner in node.children:
                    results.extend(_extract_ecmascript_imports(inner))
                continue
        else:
            func = node.child_by_field_name("function")
            is_require = func is not None and func.type == "identifier" and _text(func) == "require"
            is_dynamic = func is not None and func.type == "import"
            if is_require or is_dynamic:
                args = node.child_by_field_name("arguments")
                if args is not None and args.named_child_count > 0:
                    source = _string_value(args.named_children[0])
            else:
                for inner in node.children:
                    results.extend(_extract_ecmascript_imports(inner))
                continue
        if source:
            results.append(RawImport(specifier=source, line_number=node.start_point.row + 1))
    return results


def extract_imports(file_path: Path) -> list[RawImport]:
    """Extract import specifiers from a source file using tree-sitter.

    Detects language by file extension.  Returns an empty list if the
    language is not supported, the grammar package is not installed or the
    file cannot be read.
    """
    config = get_lang_config(file_path.suffix)
    if config is None:
        return []

    try:
        content = file_path.read_bytes()
    except OSError:
        logger.debug("Cannot read %s", file_path)
        return []

    if not content.strip():
        return []

    tree = config.parser().parse(content)
    if config.syntax is ImportSyntax.PYTHON:
        return _extract_python_imports(tree.root_node)
    return _extract_ecmascript_imports(tree.root_node)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _import_path_to_file_paths(base: Path, dotted: str) -> list[Path]:
    """Candidate files for a dotted Python module path under *base*.

    E.g. ``paydown.config`` under ``src``::

        src/paydown/config.py
        src/paydown/config/__init__.py
    """
    parts = [p for p in dotted.split(".") if p]
    if not parts:
        return [base / "__init__.py"]
    target = base.joinpath(*parts)
    return [target.with_name(target.name + ".py"), target / "__init__.py"]


def _lookup(candidate: Path, known: frozenset[Path]) -> Path | None:
    """Return the discovered module at *candidate*, following symlinks."""
    if candidate in known:
        return candidate
    if not candidate.exists():
        return None
    resolved = candidate.resolve()
    return resolved if resolved in known else None


def _first_known(candidates: list[Path], known: frozenset[Path]) -> Path | None:
    for candidate in candidates:
        hit = _lookup(candidate, known)
        if hit is not None:
            return hit
    return None


def _resolve_python(
    raw: RawImport,
    importer: Path,
    root_dir: Path,
    known: frozenset[Path],
) -> list[str]:
    specifier = raw.specifier
    if specifier.startswith("."):
        level = len(specifier) - len(specifier.lstrip("."))
        base = importer.parent
        for _ in range(level - 1):
            base = base.parent
        bases = [(base, specifier[level:])]
    else:
        bases = [
            (root_dir / prefix if prefix else root_dir, specifier)
            for prefix in _PYTHON_SCAN_PREFIXES
        ]

    for base, module in bases:
        hits: list[Path] = []
        module_hit = _first_known(_import_path_to_file_paths(base, module), known)
        if module_hit is not None:
            hits.append(module_hit)
        # `from pkg import mod` may name submodules rather than attributes.
        for name in raw.names:
            sub_hit = _first_known(_import_path_to_file_paths(base, f"{module}.{name}"), known)
            if sub_hit is not None and sub_hit not in hits:
                hits.append(sub_hit)
        if hits:
            return [str(h) for h in hits]
    return []


def _probe_ecmascript(target: Path, known: frozenset[Path]) -> Path | None:
    candidates = [target]
    candidates += [target.with_suffix(ext) for ext in _ES_EMITTED_SOURCES.get(target.suffix, ())]
    candidates += [target.with_name(target.name + ext) for ext in _ES_PROBE_EXTENSIONS]
    candidates += [target / f"index{ext}" for ext in _ES_PROBE_EXTENSIONS]
    return _first_known(candidates, known)


def _resolve_ecmascript(
    raw: RawImport,
    importer: Path,
    root_dir: Path,
    known: frozenset[Path],
) -> list[str]:
    specifier = raw.specifier
    if specifier.startswith(("./", "../")) or specifier in (".", ".."):
        target = Path(os.path.normpath(importer.parent / specifier))
    else:
        for alias, replacement in _TS_ALIAS_MAP.items():
            if specifier.startswith(alias):
                target = Path(os.path.normpath(root_dir / (replacement + specifier[len(alias) :])))
                break
        else:
            # Bare specifiers are npm packages or builtins.
            return []
    hit = _probe_ecmascript(target, known)
    return [str(hit)] if hit is not None else []


def resolve_imports(
    file_path: Path,
    raw_imports: Sequence[RawImport],
    root_dir: Path,
    known: frozenset[Path],
) -> tuple[ModuleImport, ...]:
    """Resolve *raw_imports* of *file_path* against the *known* module set."""
    config = get_lang_config(file_path.suffix)
    if config is None:
        return ()
    resolver = _resolve_python if config.syntax is ImportSyntax.PYTHON else _resolve_ecmascript

    results: list[ModuleImport] = []
    for raw in raw_imports:
        targets = resolver(raw, file_path, root_dir, known)
        if not targets:
            results.append(ModuleImport(raw.specifier, raw.line_number, None))
            continue
        for target in targets:
            results.append(ModuleImport(raw.specifier, raw.line_number, target))
    return tuple(results)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_modules(
    root_dir: Path,
    *,
    exclude: Sequence[str] = (),
    extensions: frozenset[str] | None = None,
) -> list[Path]:
    """Collect source files under *root_dir*, sorted, as absolute paths.

    Paths are symlink-resolved so they compare equal to resolved ledger
    paths and entry points.  Excludes match the path as walked.
    """
    exts = extensions if extensions is not None else supported_extensions()
    excluded = GlobSet(exclude)
    files: set[Path] = set()

    for dirpath, dirnames, filenames in os.walk(root_dir):
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
        base = Path(dirpath)
        for name in filenames:
            path = base / name
            if path.suffix not in exts:
                continue
            rel = path.relative_to(root_dir).as_posix()
            if excluded and excluded.matches(rel):
                continue
            resolved = path.resolve()
            # Dangling symlinks.
            if not resolved.is_file():
                continue
            files.add(resolved)

    return sorted(files)


def analyze_modules(
    root_dir: Path,
    *,
    exclude: Sequence[str] = (),
    extensions: frozenset[str] | None = None,
) -> list[ModuleInfo]:
    """Discover modules under *root_dir* and resolve their imports.

    Raises
    ------
    ModuleAnalysisError
        When *root_dir* is not a directory or no grammar is installed.
    """
    root = root_dir.resolve()
    if not root.is_dir():
        msg = f"Cannot analyze modules: {root_dir} is not a directory"
        raise ModuleAnalysisError(msg)

    exts = extensions if extensions is not None else supported_extensions()
    if not exts:
        msg = "Cannot analyze modules: no tree-sitter grammar is installed"
        raise ModuleAnalysisError(msg)

    files = discover_modules(root, exclude=exclude, extensions=exts)
    known = frozenset(files)

    modules: list[ModuleInfo] = []
    for file_path in files:
        raw = extract_imports(file_path)
        modules.append(
            ModuleInfo(
                source=str(file_path),
                imports=resolve_imports(file_path, raw, root, known),
            )
        )

    logger.debug("Analyzed %d modules under %s", len(modules), root)
    return modules
