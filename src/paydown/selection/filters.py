"""Eligibility filter: decide which of a rule's violations may be selected."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from paydown.globs import GlobSet
from paydown.import_graph.analyzer import scope_reachable_files
from paydown.rules import is_rule_fixable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from paydown.config import SelectionOptions
    from paydown.import_graph.analyzer import DependencyGraph
    from paydown.rules import RuleMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Eligible:
    """The violations of a rule that survived every filter, in ledger order."""

    violations: dict[str, int]

    @property
    def files(self) -> list[str]:
        return list(self.violations)


@dataclass(frozen=True)
class Ineligible:
    """A rule dropped from selection, with the guard that dropped it."""

    reason: str


FilterResult = Eligible | Ineligible


class EligibilityFilter:
    """Apply rule and file filters for one selection run.

    The glob sets are compiled once per run and reused for every rule.
    *reachable_files* holds absolute paths; when given, ledger paths are
    resolved against *root_dir* before the membership test.  It is only
    consulted when the options carry a dependency scope with entry points.
    """

    def __init__(
        self,
        rule_metadata: RuleMetadata,
        options: SelectionOptions,
        *,
        reachable_files: frozenset[str] | None = None,
        root_dir: Path | None = None,
    ) -> None:
        scope = options.dependency_scope
        self._reachable: tuple[frozenset[str], Path] | None = None
        if scope is not None and scope.active:
            if reachable_files is None:
                msg = "a dependency scope with entry points needs the reachable file set"
                raise ValueError(msg)
            if root_dir is None:
                msg = "root_dir is required to match ledger paths against reachable files"
                raise ValueError(msg)
            self._reachable = (reachable_files, root_dir)

        self.rule_metadata = rule_metadata
        self.options = options
        self.root_dir = root_dir
        self._exclude = GlobSet(options.exclude_file_globs)
        self._include = GlobSet(options.include_file_globs)

    def filter(self, rule_id: str, violations: Mapping[str, int]) -> FilterResult:
        """Run the guards in order and stop at the first one that fails."""
        options = self.options
        if options.only_auto_fixable and not is_rule_fixable(self.rule_metadata, rule_id):
            return Ineligible("not auto-fixable")
        if rule_id in options.exclude_rules:
            return Ineligible("rule excluded")
        if options.include_rules and rule_id not in options.include_rules:
            return Ineligible("rule not included")

        files = list(violations)
        if self._reachable is not None:
            reachable, root_dir = self._reachable
            files = [f for f in files if str((root_dir / f).resolve()) in reachable]
        if self._exclude:
            files = self._exclude.reject(files)
        if self._include:
            files = self._include.select(files)

        if not files:
            return Ineligible("no eligible files")
        return Eligible({f: violations[f] for f in files})


def filter_rule(
    rule_id: str,
    violations: Mapping[str, int],
    rule_metadata: RuleMetadata,
    options: SelectionOptions,
    dependency_graph: DependencyGraph | None = None,
    *,
    root_dir: Path | None = None,
) -> FilterResult:
    """Filter a single rule; convenience wrapper around :class:`EligibilityFilter`."""
    reachable: frozenset[str] | None = None
    scope = options.dependency_scope
    if scope is not None and scope.active:
        if dependency_graph is None or root_dir is None:
            msg = "a dependency scope with entry points needs a dependency graph and root_dir"
            raise ValueError(msg)
        reachable = scope_reachable_files(dependency_graph, scope, root_dir)

    eligibility = EligibilityFilter(
        rule_metadata, options, reachable_files=reachable, root_dir=root_dir
    )
    return eligibility.filter(rule_id, violations)
