"""Dependency graph: build from analyzed modules, compute reachability, filter files."""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, assert_never

from paydown.config import DependencyMode
from paydown.import_graph.extractor import ModuleAnalysisError, analyze_modules

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from paydown.config import DependencyScope
    from paydown.import_graph.extractor import ModuleInfo

    ModuleAnalyzer = Callable[..., list[ModuleInfo]]

logger = logging.getLogger(__name__)

# Depth of nodes no entry point reaches.
UNREACHED: float = math.inf


class GraphBuildError(Exception):
    """Raised when a dependency graph cannot be built."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DependencyNode:
    """A single module in the dependency graph."""

    path: str  # absolute
    dependencies: tuple[str, ...] = ()
    dependents: tuple[str, ...] = ()
    is_entry_point: bool = False
    depth: float = UNREACHED  # hops from the nearest entry point

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "dependencies": list(self.dependencies),
            "dependents": list(self.dependents),
            "isEntryPoint": self.is_entry_point,
            # JSON has no infinity.
            "depth": None if math.isinf(self.depth) else int(self.depth),
        }


@dataclass(frozen=True)
class DependencyGraph:
    """Module-level import graph keyed by absolute path."""

    nodes: Mapping[str, DependencyNode]
    entry_points: tuple[str, ...]
    built_at: float = field(default_factory=time.time)
    excluded_imports: int = 0  # imports pointing outside the analyzed set

    def __contains__(self, path: object) -> bool:
        return path in self.nodes

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": {path: node.to_dict() for path, node in self.nodes.items()},
            "entryPoints": list(self.entry_points),
            "builtAt": self.built_at,
            "excludedImports": self.excluded_imports,
        }

    @classmethod
    def from_dict(cls, data: Any) -> DependencyGraph:
        """Rebuild a graph from :meth:`to_dict` output.

        Raises ``ValueError`` when *data* does not have the expected schema.
        """
        if not isinstance(data, dict):
            msg = "graph: expected a mapping"
            raise ValueError(msg)
        raw_nodes = data.get("nodes")
        entry_points = data.get("entryPoints")
        built_at = data.get("builtAt")
        excluded = data.get("excludedImports", 0)
        if not isinstance(raw_nodes, dict):
            msg = "graph: 'nodes' must be a mapping"
            raise ValueError(msg)
        if not isinstance(entry_points, list) or not all(isinstance(e, str) for e in entry_points):
            msg = "graph: 'entryPoints' must be a list of strings"
            raise ValueError(msg)
        if isinstance(built_at, bool) or not isinstance(built_at, (int, float)):
            msg = "graph: 'builtAt' must be a number"
            raise ValueError(msg)
        if isinstance(excluded, bool) or not isinstance(excluded, int):
            msg = "graph: 'excludedImports' must be an integer"
            raise ValueError(msg)

        nodes: dict[str, DependencyNode] = {}
        for key, raw in raw_nodes.items():
            nodes[key] = _node_from_dict(key, raw)

        for node in nodes.values():
            for edge in (*node.dependencies, *node.dependents):
                if edge not in nodes:
                    msg = f"graph: edge from {node.path!r} to unknown node {edge!r}"
                    raise ValueError(msg)

        return cls(
            nodes=nodes,
            entry_points=tuple(entry_points),
            built_at=float(built_at),
            excluded_imports=excluded,
        )


def _str_tuple(raw: Any, what: str) -> tuple[str, ...]:
    if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
        msg = f"graph: {what} must be a list of strings"
        raise ValueError(msg)
    return tuple(raw)


def _node_from_dict(key: str, raw: Any) -> DependencyNode:
    if not isinstance(raw, dict):
        msg = f"graph: node {key!r} must be a mapping"
        raise ValueError(msg)
    if raw.get("path") != key:
        msg = f"graph: node {key!r} has mismatched path"
        raise ValueError(msg)
    is_entry = raw.get("isEntryPoint")
    if not isinstance(is_entry, bool):
        msg = f"graph: node {key!r} 'isEntryPoint' must be a boolean"
        raise ValueError(msg)
    depth = raw.get("depth")
    if depth is not None and (isinstance(depth, bool) or not isinstance(depth, int) or depth < 0):
        msg = f"graph: node {key!r} 'depth' must be a non-negative integer or null"
        raise ValueError(msg)
    return DependencyNode(
        path=key,
        dependencies=_str_tuple(raw.get("dependencies"), f"node {key!r} dependencies"),
        dependents=_str_tuple(raw.get("dependents"), f"node {key!r} dependents"),
        is_entry_point=is_entry,
        depth=UNREACHED if depth is None else depth,
    )


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------


def resolve_entry_points(entry_points: Iterable[str], root_dir: Path) -> tuple[str, ...]:
    """Resolve entry points relative to *root_dir* into absolute paths."""
    resolved: dict[str, None] = {}
    for entry in entry_points:
        resolved.setdefault(str((root_dir / entry).resolve()), None)
    return tuple(resolved)


def _compute_depths(
    dependencies: Mapping[str, Sequence[str]],
    entry_points: Sequence[str],
    max_depth: int | None,
) -> dict[str, float]:
    """Multi-source BFS along dependency edges from every entry point."""
    depths: dict[str, float] = {}
    queue: deque[str] = deque()
    for entry in entry_points:
        if entry in dependencies and entry not in depths:
            depths[entry] = 0
            queue.append(entry)

    while queue:
        current = queue.popleft()
        depth = depths[current]
        if max_depth is not None and depth >= max_depth:
            continue
        for dep in dependencies[current]:
            if dep not in depths:
                depths[dep] = depth + 1
                queue.append(dep)
    return depths


def graph_from_modules(
    modules: Sequence[ModuleInfo],
    entry_points: Sequence[str],
    max_depth: int | None = None,
) -> DependencyGraph:
    """Assemble a :class:`DependencyGraph` from analyzed modules.

    Pass 1 registers every module, pass 2 keeps only edges whose target is
    a registered module and derives ``dependents`` from them, pass 3
    assigns BFS depths from the entry points.
    """
    # Pass 1: one slot per module.
    dependencies: dict[str, list[str]] = {module.source: [] for module in modules}

    # Pass 2: edges to known modules only.
    excluded = 0
    for module in modules:
        targets = dependencies[module.source]
        for imp in module.imports:
            if imp.resolved is None or imp.resolved not in dependencies:
                excluded += 1
                continue
            if imp.resolved != module.source and imp.resolved not in targets:
                targets.append(imp.resolved)

    dependents: dict[str, list[str]] = {path: [] for path in dependencies}
    for source, targets in dependencies.items():
        for target in targets:
            dependents[target].append(source)

    # Pass 3: depths.
    entry_set = set(entry_points)
    depths = _compute_depths(dependencies, entry_points, max_depth)

    nodes = {
        path: DependencyNode(
            path=path,
            dependencies=tuple(targets),
            dependents=tuple(dependents[path]),
            is_entry_point=path in entry_set,
            depth=depths.get(path, UNREACHED),
        )
        for path, targets in dependencies.items()
    }
    return DependencyGraph(
        nodes=nodes,
        entry_points=tuple(entry_points),
        excluded_imports=excluded,
    )


def build_dependency_graph(
    entry_points: Sequence[str],
    root_dir: Path,
    exclude: Sequence[str] = (),
    max_depth: int | None = None,
    *,
    analyze: ModuleAnalyzer = analyze_modules,
) -> DependencyGraph:
    """Analyze *root_dir* and build its dependency graph.

    Raises
    ------
    GraphBuildError
        When the module analysis fails or finds no modules at all.
    """
    start = time.monotonic()
    try:
        modules = analyze(root_dir, exclude=exclude)
    except ModuleAnalysisError as exc:
        msg = f"Dependency analysis failed: {exc}"
        raise GraphBuildError(msg) from exc

    if not modules:
        msg = f"Dependency analysis found no modules under {root_dir}"
        raise GraphBuildError(msg)

    resolved_entries = resolve_entry_points(entry_points, root_dir)
    graph = graph_from_modules(modules, resolved_entries, max_depth)

    missing = [e for e in resolved_entries if e not in graph]
    if missing:
        logger.warning("Entry points not found in the analyzed modules: %s", ", ".join(missing))

    elapsed = (time.monotonic() - start) * 1000
    logger.info(
        "Built dependency graph: %d modules, %d external imports (%.0f ms)",
        len(graph.nodes),
        graph.excluded_imports,
        elapsed,
    )
    return graph


# ---------------------------------------------------------------------------
# Reachability
# ---------------------------------------------------------------------------


def _bfs(
    graph: DependencyGraph,
    start: str,
    neighbours: Callable[[DependencyNode], Sequence[str]],
    max_depth: int | None,
) -> set[str]:
    seen = {start}
    queue: deque[tuple[str, int]] = deque([(start, 0)])
    while queue:
        current, depth = queue.popleft()
        if max_depth is not None and depth >= max_depth:
            continue
        for nxt in neighbours(graph.nodes[current]):
            if nxt not in seen and nxt in graph.nodes:
                seen.add(nxt)
                queue.append((nxt, depth + 1))
    return seen


def _along_dependencies(node: DependencyNode) -> Sequence[str]:
    return node.dependencies


def _along_dependents(node: DependencyNode) -> Sequence[str]:
    return node.dependents


def reachable_files(
    graph: DependencyGraph,
    entry_points: Iterable[str],
    mode: DependencyMode,
    max_depth: int | None = None,
) -> frozenset[str]:
    """Files connected to *entry_points* in the direction given by *mode*.

    Entry points missing from the graph are ignored.  Each hop consumes one
    unit of *max_depth*; in ``CONNECTED`` mode both directions get their
    own budget.
    """
    if mode is DependencyMode.DEPENDENCIES:
        directions = [_along_dependencies]
    elif mode is DependencyMode.DEPENDENTS:
        directions = [_along_dependents]
    elif mode is DependencyMode.CONNECTED:
        directions = [_along_dependencies, _along_dependents]
    else:
        assert_never(mode)

    result: set[str] = set()
    for entry in entry_points:
        if entry not in graph.nodes:
            continue
        for direction in directions:
            result |= _bfs(graph, entry, direction, max_depth)
    return frozenset(result)


def scope_reachable_files(
    graph: DependencyGraph,
    scope: DependencyScope,
    root_dir: Path,
) -> frozenset[str]:
    """Reachable set for a configured scope, resolving its entry points."""
    entries = resolve_entry_points(scope.entry_points, root_dir)
    return reachable_files(graph, entries, scope.mode, scope.max_depth)


@dataclass(frozen=True)
class GraphFilterResult:
    """Split of ledger files by graph reachability."""

    matched: list[str]
    filtered: list[str]


def filter_files_by_graph(
    files: Iterable[str],
    graph: DependencyGraph,
    scope: DependencyScope,
    root_dir: Path,
) -> GraphFilterResult:
    """Partition *files* (relative to *root_dir*) into reachable and not."""
    connected = scope_reachable_files(graph, scope, root_dir)
    matched: list[str] = []
    filtered: list[str] = []
    for file_path in files:
        if str((root_dir / file_path).resolve()) in connected:
            matched.append(file_path)
        else:
            filtered.append(file_path)
    return GraphFilterResult(matched=matched, filtered=filtered)
