"""Import graph domain: module analysis, dependency graph, reachability, cache."""

from paydown.import_graph.analyzer import (
    UNREACHED,
    DependencyGraph,
    DependencyNode,
    GraphBuildError,
    GraphFilterResult,
    build_dependency_graph,
    filter_files_by_graph,
    graph_from_modules,
    reachable_files,
    scope_reachable_files,
)
from paydown.import_graph.cache import (
    CacheStore,
    DependencyGraphCache,
    DirectoryCacheStore,
    GraphCacheKey,
    JsonCache,
    resolve_dependency_graph,
    sample_tracked_files,
)
from paydown.import_graph.extractor import (
    ModuleAnalysisError,
    ModuleImport,
    ModuleInfo,
    analyze_modules,
    extract_imports,
)

__all__ = [
    "UNREACHED",
    "CacheStore",
    "DependencyGraph",
    "DependencyGraphCache",
    "DependencyNode",
    "DirectoryCacheStore",
    "GraphBuildError",
    "GraphCacheKey",
    "GraphFilterResult",
    "JsonCache",
    "ModuleAnalysisError",
    "ModuleImport",
    "ModuleInfo",
    "analyze_modules",
    "build_dependency_graph",
    "extract_imports",
    "filter_files_by_graph",
    "graph_from_modules",
    "reachable_files",
    "resolve_dependency_graph",
    "sample_tracked_files",
    "scope_reachable_files",
]
