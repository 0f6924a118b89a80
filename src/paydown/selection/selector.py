"""Optimal rule selection: pick the next rule (or slice of one) to fix.

The selector is a greedy heuristic.  Rules that fit the limit entirely are
preferred; among them fixable rules win, then larger eligible counts, then
the smaller rule id.  When nothing fits and partial selection is allowed,
the largest rule is cut down to a prefix of its eligible files.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from paydown.config import LimitKind
from paydown.import_graph.analyzer import build_dependency_graph, scope_reachable_files
from paydown.import_graph.cache import resolve_dependency_graph
from paydown.selection.candidates import aggregate_candidates
from paydown.selection.filters import EligibilityFilter

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from pathlib import Path

    from paydown.config import SelectionConfig, SelectionLimit, SelectionOptions
    from paydown.import_graph.analyzer import DependencyGraph
    from paydown.import_graph.cache import DependencyGraphCache
    from paydown.rules import RuleMetadata
    from paydown.selection.candidates import RuleCandidate

logger = logging.getLogger(__name__)


class SelectionMode(enum.Enum):
    """Whether a selection covers all eligible violations of a rule."""

    FULL = "full"
    PARTIAL = "partial"


@dataclass(frozen=True)
class SelectionSuccess:
    """A selected rule; ``violations`` is set only for partial selections.

    ``eligible_violations`` records the files a full selection covers.  It
    is left out of comparisons and of :meth:`to_dict`.
    """

    rule_id: str
    mode: SelectionMode
    violations: dict[str, int] | None = None
    eligible_violations: dict[str, int] | None = field(default=None, compare=False, repr=False)

    @property
    def success(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        selection: dict[str, Any] = {"ruleId": self.rule_id, "type": self.mode.value}
        if self.violations is not None:
            selection["violations"] = dict(self.violations)
        return {"success": True, "selection": selection}


@dataclass(frozen=True)
class SelectionFailure:
    """No rule could be selected under the current limit and options."""

    @property
    def success(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {"success": False}


SelectionResult = SelectionSuccess | SelectionFailure


def _full_rank(candidate: RuleCandidate) -> tuple[bool, int, str]:
    return (not candidate.is_fixable, -candidate.eligible_count, candidate.rule_id)


def _partial_subset(candidate: RuleCandidate, limit: SelectionLimit) -> dict[str, int]:
    """Longest prefix of the candidate's eligible files that fits *limit*."""
    subset: dict[str, int] = {}
    if limit.kind is LimitKind.FILE:
        for file_path in candidate.eligible_files[: limit.count]:
            subset[file_path] = candidate.eligible_violations[file_path]
        return subset

    total = 0
    for file_path, count in candidate.eligible_violations.items():
        if total + count > limit.count:
            break
        total += count
        subset[file_path] = count
    return subset


def select_optimal_rule(
    candidates: Sequence[RuleCandidate],
    limit: SelectionLimit,
    options: SelectionOptions,
) -> SelectionResult:
    """Choose one candidate under *limit*.

    Candidates must have been aggregated for ``limit.kind``.

    Raises
    ------
    ConfigError
        When the limit count is not positive.
    """
    limit.validate()

    full_pool = [c for c in candidates if c.eligible_count <= limit.count]
    if full_pool:
        best = min(full_pool, key=_full_rank)
        return SelectionSuccess(
            rule_id=best.rule_id,
            mode=SelectionMode.FULL,
            eligible_violations=dict(best.eligible_violations),
        )

    if not options.allow_partial_selection or not candidates:
        return SelectionFailure()

    # max() keeps the first of equal maxima.
    target = max(candidates, key=lambda c: c.eligible_count)
    subset = _partial_subset(target, limit)
    if not subset:
        logger.debug(
            "Partial selection of %s is empty: first file exceeds the %s limit",
            target.rule_id,
            limit.kind.value,
        )
        return SelectionFailure()
    return SelectionSuccess(rule_id=target.rule_id, mode=SelectionMode.PARTIAL, violations=subset)


def select_rule_to_correct(
    ledger: Mapping[str, Mapping[str, int]],
    rule_metadata: RuleMetadata,
    config: SelectionConfig,
    *,
    root_dir: Path,
    graph_cache: DependencyGraphCache | None = None,
    dependency_graph: DependencyGraph | None = None,
    graph_builder: Callable[..., DependencyGraph] = build_dependency_graph,
) -> SelectionResult:
    """Run one full selection: validate, filter, aggregate and select.

    When the options carry a dependency scope with entry points, the graph
    is taken from *dependency_graph*, else from *graph_cache*, else built
    with *graph_builder*.  It is resolved once per run.

    Raises
    ------
    ConfigError
        When the limit is not usable.
    GraphBuildError
        When the dependency graph is needed and cannot be built.
    """
    limit = config.limit
    limit.validate()
    options = config.options

    reachable: frozenset[str] | None = None
    scope = options.dependency_scope
    if scope is not None and scope.active:
        graph = dependency_graph
        if graph is None:
            graph = resolve_dependency_graph(scope, root_dir, graph_cache, builder=graph_builder)
        reachable = scope_reachable_files(graph, scope, root_dir)
        logger.debug(
            "%d files reachable from %d entry points", len(reachable), len(scope.entry_points)
        )

    eligibility = EligibilityFilter(
        rule_metadata, options, reachable_files=reachable, root_dir=root_dir
    )
    candidates = aggregate_candidates(
        ledger, rule_metadata, options, limit.kind, eligibility=eligibility
    )
    result = select_optimal_rule(candidates, limit, options)

    if isinstance(result, SelectionSuccess):
        logger.info(
            "Selected %s (%s) out of %d candidates",
            result.rule_id,
            result.mode.value,
            len(candidates),
        )
    else:
        logger.info("No rule selectable within %d %ss", limit.count, limit.kind.value)
    return result
