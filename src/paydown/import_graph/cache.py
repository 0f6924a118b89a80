"""On-disk caches: generic JSON envelope cache and the dependency graph cache.

Entries are JSON documents of the form::

    {"formatVersion": "...", "configHash": "...",
     "trackedFileMtimes": {path: mtime_ns | null}, "data": ...}

An entry is served only when its format version and config hash match and
every tracked file still has the recorded modification time.  Anything
else (missing, unreadable, malformed, stale) is a miss.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from paydown.config import CONFIG_DIR
from paydown.import_graph.analyzer import DependencyGraph, build_dependency_graph

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from paydown.config import DependencyMode, DependencyScope

logger = logging.getLogger(__name__)

GRAPH_CACHE_NAMESPACE = "dependency-graph"
GRAPH_CACHE_VERSION = "1"
DEFAULT_MAX_SAMPLE_SIZE = 50


def canonical_hash(data: Any) -> str:
    """SHA-256 of *data* serialized with sorted keys and no whitespace."""
    encoded = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def file_mtime(path: str) -> int | None:
    """Modification time in nanoseconds, or ``None`` if the file is gone."""
    try:
        return os.stat(path).st_mtime_ns
    except OSError:
        return None


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class CacheStore(Protocol):
    """Byte store the caches persist into."""

    def read(self, namespace: str, name: str) -> bytes | None: ...

    def write(self, namespace: str, name: str, payload: bytes) -> None: ...

    def clear(self, namespace: str | None = None) -> None: ...


class DirectoryCacheStore:
    """Store each entry as ``<directory>/<namespace>/<name>.json``."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    @classmethod
    def for_project(cls, project_root: Path) -> DirectoryCacheStore:
        return cls(project_root / CONFIG_DIR / "cache")

    def _path(self, namespace: str, name: str) -> Path:
        return self.directory / namespace / f"{name}.json"

    def read(self, namespace: str, name: str) -> bytes | None:
        path = self._path(namespace, name)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.debug("Cannot read cache file %s: %s", path, exc)
            return None

    def write(self, namespace: str, name: str, payload: bytes) -> None:
        path = self._path(namespace, name)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so readers never see a half-written file.
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def clear(self, namespace: str | None = None) -> None:
        target = self.directory if namespace is None else self.directory / namespace
        shutil.rmtree(target, ignore_errors=True)


# ---------------------------------------------------------------------------
# Generic JSON cache
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheEntry:
    """A validated cache envelope."""

    data: Any
    config_hash: str
    tracked_file_mtimes: dict[str, int | None]
    format_version: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "formatVersion": self.format_version,
            "configHash": self.config_hash,
            "trackedFileMtimes": self.tracked_file_mtimes,
            "data": self.data,
        }


def parse_cache_entry(raw: Any) -> CacheEntry:
    """Validate a decoded envelope; raises ``ValueError`` on schema errors."""
    if not isinstance(raw, dict):
        msg = "cache entry must be a mapping"
        raise ValueError(msg)
    expected = {"formatVersion", "configHash", "trackedFileMtimes", "data"}
    if set(raw) != expected:
        msg = f"cache entry keys {sorted(raw)} != {sorted(expected)}"
        raise ValueError(msg)
    version = raw["formatVersion"]
    config_hash = raw["configHash"]
    mtimes = raw["trackedFileMtimes"]
    if not isinstance(version, str) or not isinstance(config_hash, str):
        msg = "cache entry 'formatVersion' and 'configHash' must be strings"
        raise ValueError(msg)
    if not isinstance(mtimes, dict):
        msg = "cache entry 'trackedFileMtimes' must be a mapping"
        raise ValueError(msg)
    for path, mtime in mtimes.items():
        if mtime is not None and (isinstance(mtime, bool) or not isinstance(mtime, int)):
            msg = f"cache entry mtime for {path!r} must be an integer or null"
            raise ValueError(msg)
    return CacheEntry(
        data=raw["data"],
        config_hash=config_hash,
        tracked_file_mtimes=dict(mtimes),
        format_version=version,
    )


class JsonCache:
    """Versioned, hash-keyed JSON cache with mtime-based invalidation."""

    def __init__(self, store: CacheStore, namespace: str, version: str) -> None:
        self.store = store
        self.namespace = namespace
        self.version = version

    @staticmethod
    def _name(config_hash: str) -> str:
        return config_hash[:16]

    def get_entry(self, config_hash: str) -> CacheEntry | None:
        """Return the entry stored for *config_hash*, or ``None`` on any miss."""
        payload = self.store.read(self.namespace, self._name(config_hash))
        if payload is None:
            return None

        try:
            entry = parse_cache_entry(json.loads(payload.decode("utf-8")))
        except (UnicodeDecodeError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError.
            logger.debug("Discarding corrupted %s cache entry: %s", self.namespace, exc)
            return None

        if entry.format_version != self.version:
            logger.debug(
                "Discarding %s cache entry: format %s != %s",
                self.namespace,
                entry.format_version,
                self.version,
            )
            return None
        if entry.config_hash != config_hash:
            logger.debug("Discarding %s cache entry: config hash mismatch", self.namespace)
            return None
        for path, mtime in entry.tracked_file_mtimes.items():
            if file_mtime(path) != mtime:
                logger.debug("Discarding %s cache entry: %s changed", self.namespace, path)
                return None
        return entry

    def get(self, config_hash: str) -> Any | None:
        entry = self.get_entry(config_hash)
        return None if entry is None else entry.data

    def set(self, config_hash: str, data: Any, tracked_files: Iterable[str] = ()) -> None:
        """Store *data*; write failures are logged and otherwise ignored."""
        entry = CacheEntry(
            data=data,
            config_hash=config_hash,
            tracked_file_mtimes={path: file_mtime(path) for path in tracked_files},
            format_version=self.version,
        )
        payload = json.dumps(entry.to_dict(), indent=2).encode("utf-8")
        try:
            self.store.write(self.namespace, self._name(config_hash), payload)
        except OSError as exc:
            logger.warning("Failed to write %s cache: %s", self.namespace, exc)

    def clear(self) -> None:
        self.store.clear(self.namespace)


# ---------------------------------------------------------------------------
# Dependency graph cache
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GraphCacheKey:
    """Inputs that determine the shape of a dependency graph."""

    mode: DependencyMode
    entry_points: tuple[str, ...]
    max_depth: int | None
    root_dir: str
    exclude: tuple[str, ...] = ()

    @classmethod
    def from_scope(cls, scope: DependencyScope, root_dir: Path) -> GraphCacheKey:
        return cls(
            mode=scope.mode,
            entry_points=scope.entry_points,
            max_depth=scope.max_depth,
            root_dir=str(root_dir.resolve()),
            exclude=scope.exclude,
        )

    def digest(self) -> str:
        """Order-independent hash of the key."""
        return canonical_hash(
            {
                "mode": self.mode.value,
                "entryPoints": sorted(self.entry_points),
                "maxDepth": self.max_depth,
                "rootDirectory": self.root_dir,
                "exclude": sorted(self.exclude),
            }
        )


def sample_tracked_files(
    graph: DependencyGraph,
    max_sample_size: int = DEFAULT_MAX_SAMPLE_SIZE,
) -> list[str]:
    """Pick the files whose mtimes guard a cached graph.

    Entry points are always included; the remaining slots are filled with
    an even stride over the other nodes.  Edits to files outside the sample
    go unnoticed until a sampled file changes.
    """
    sample = [e for e in graph.entry_points if e in graph.nodes]
    remaining = max_sample_size - len(sample)
    if remaining <= 0:
        return sample

    entry_set = set(sample)
    others = [path for path in graph.nodes if path not in entry_set]
    if not others:
        return sample

    step = max(1, len(others) // remaining)
    for index in range(0, len(others), step):
        if len(sample) >= max_sample_size:
            break
        sample.append(others[index])
    return sample


class DependencyGraphCache:
    """Cache of built dependency graphs, keyed by :class:`GraphCacheKey`."""

    def __init__(
        self,
        store: CacheStore,
        *,
        max_sample_size: int = DEFAULT_MAX_SAMPLE_SIZE,
    ) -> None:
        self._cache = JsonCache(store, GRAPH_CACHE_NAMESPACE, GRAPH_CACHE_VERSION)
        self.max_sample_size = max_sample_size

    @classmethod
    def for_project(cls, project_root: Path) -> DependencyGraphCache:
        return cls(DirectoryCacheStore.for_project(project_root))

    def get(self, key: GraphCacheKey) -> DependencyGraph | None:
        data = self._cache.get(key.digest())
        if data is None:
            return None
        try:
            return DependencyGraph.from_dict(data)
        except ValueError as exc:
            logger.debug("Discarding cached graph with invalid schema: %s", exc)
            return None

    def set(
        self,
        key: GraphCacheKey,
        graph: DependencyGraph,
        tracked_files: Iterable[str] | None = None,
    ) -> None:
        if tracked_files is None:
            tracked_files = sample_tracked_files(graph, self.max_sample_size)
        self._cache.set(key.digest(), graph.to_dict(), tracked_files)

    def clear(self) -> None:
        self._cache.clear()


def resolve_dependency_graph(
    scope: DependencyScope,
    root_dir: Path,
    cache: DependencyGraphCache | None = None,
    *,
    builder: Callable[..., DependencyGraph] = build_dependency_graph,
) -> DependencyGraph:
    """Return the graph for *scope*: from *cache* when valid, else freshly built.

    Build errors propagate; a fresh graph is written back to *cache*.
    """
    key = GraphCacheKey.from_scope(scope, root_dir)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            logger.info("Loaded dependency graph from cache (%d modules)", len(cached.nodes))
            return cached

    graph = builder(scope.entry_points, root_dir, scope.exclude, scope.max_depth)
    if cache is not None:
        cache.set(key, graph)
    return graph
