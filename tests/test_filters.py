"""Tests for paydown.selection.filters: the eligibility guard sequence."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from paydown.config import DependencyMode, DependencyScope, SelectionOptions
from paydown.import_graph.analyzer import graph_from_modules
from paydown.import_graph.extractor import ModuleImport, ModuleInfo
from paydown.rules import RuleMeta
from paydown.selection.filters import EligibilityFilter, Eligible, Ineligible, filter_rule

if TYPE_CHECKING:
    from pathlib import Path

FIXABLE = {"semi": RuleMeta(fixable=True), "no-eval": RuleMeta(fixable=False)}
VIOLATIONS = {"src/a.ts": 2, "dist/b.js": 1, "src/c.test.ts": 4}


def _filter(**options: object) -> EligibilityFilter:
    return EligibilityFilter(FIXABLE, SelectionOptions(**options))  # type: ignore[arg-type]


class TestRuleGuards:
    def test_not_fixable_dropped_when_required(self) -> None:
        result = _filter().filter("no-eval", VIOLATIONS)
        assert result == Ineligible("not auto-fixable")

    def test_unknown_rule_counts_as_not_fixable(self) -> None:
        assert isinstance(_filter().filter("mystery", VIOLATIONS), Ineligible)

    def test_not_fixable_allowed_when_not_required(self) -> None:
        result = _filter(only_auto_fixable=False).filter("no-eval", VIOLATIONS)
        assert isinstance(result, Eligible)

    def test_excluded_rule(self) -> None:
        result = _filter(exclude_rules=frozenset({"semi"})).filter("semi", VIOLATIONS)
        assert result == Ineligible("rule excluded")

    def test_include_list_restricts(self) -> None:
        flt = _filter(include_rules=frozenset({"other"}))
        assert flt.filter("semi", VIOLATIONS) == Ineligible("rule not included")

    def test_fixability_checked_before_exclusion(self) -> None:
        flt = _filter(exclude_rules=frozenset({"no-eval"}))
        assert flt.filter("no-eval", VIOLATIONS) == Ineligible("not auto-fixable")


class TestFileGuards:
    def test_exclude_globs(self) -> None:
        result = _filter(exclude_file_globs=("dist/**",)).filter("semi", VIOLATIONS)
        assert result == Eligible({"src/a.ts": 2, "src/c.test.ts": 4})

    def test_include_globs(self) -> None:
        result = _filter(include_file_globs=("**/*.test.ts",)).filter("semi", VIOLATIONS)
        assert result == Eligible({"src/c.test.ts": 4})

    def test_exclude_applied_before_include(self) -> None:
        flt = _filter(include_file_globs=("src/**",), exclude_file_globs=("**/*.test.ts",))
        assert flt.filter("semi", VIOLATIONS) == Eligible({"src/a.ts": 2})

    def test_everything_filtered_is_ineligible(self) -> None:
        flt = _filter(exclude_file_globs=("dist/**",))
        assert flt.filter("semi", {"dist/x.js": 3}) == Ineligible("no eligible files")

    def test_counts_preserved_in_ledger_order(self) -> None:
        result = _filter().filter("semi", VIOLATIONS)
        assert isinstance(result, Eligible)
        assert result.files == ["src/a.ts", "dist/b.js", "src/c.test.ts"]
        assert result.violations == VIOLATIONS

    def test_idempotent(self) -> None:
        flt = _filter(exclude_file_globs=("dist/**",))
        assert flt.filter("semi", VIOLATIONS) == flt.filter("semi", VIOLATIONS)


class TestReachabilityGuard:
    def test_keeps_only_reachable_files(self, tmp_path: Path) -> None:
        scope = DependencyScope(entry_points=("src/main.ts",))
        reachable = frozenset({str(tmp_path.resolve() / "src" / "a.ts")})
        flt = EligibilityFilter(
            FIXABLE,
            SelectionOptions(dependency_scope=scope),
            reachable_files=reachable,
            root_dir=tmp_path,
        )
        assert flt.filter("semi", VIOLATIONS) == Eligible({"src/a.ts": 2})

    def test_runs_before_glob_filters(self, tmp_path: Path) -> None:
        scope = DependencyScope(entry_points=("src/main.ts",))
        flt = EligibilityFilter(
            FIXABLE,
            SelectionOptions(dependency_scope=scope, include_file_globs=("dist/**",)),
            reachable_files=frozenset({str(tmp_path.resolve() / "src" / "a.ts")}),
            root_dir=tmp_path,
        )
        assert flt.filter("semi", VIOLATIONS) == Ineligible("no eligible files")

    def test_empty_entry_points_skip_scoping(self, tmp_path: Path) -> None:
        flt = EligibilityFilter(
            FIXABLE,
            SelectionOptions(dependency_scope=DependencyScope(entry_points=())),
            reachable_files=frozenset(),
            root_dir=tmp_path,
        )
        assert flt.filter("semi", VIOLATIONS) == Eligible(VIOLATIONS)

    def test_active_scope_requires_reachable_set(self) -> None:
        scope = DependencyScope(entry_points=("src/main.ts",))
        with pytest.raises(ValueError, match="reachable file set"):
            EligibilityFilter(FIXABLE, SelectionOptions(dependency_scope=scope))

    def test_reachable_set_requires_root_dir(self) -> None:
        scope = DependencyScope(entry_points=("src/main.ts",))
        with pytest.raises(ValueError, match="root_dir"):
            EligibilityFilter(
                FIXABLE,
                SelectionOptions(dependency_scope=scope),
                reachable_files=frozenset(),
            )

    def test_reachable_set_ignored_without_active_scope(self) -> None:
        flt = EligibilityFilter(FIXABLE, SelectionOptions(), reachable_files=frozenset())
        assert flt.filter("semi", VIOLATIONS) == Eligible(VIOLATIONS)


class TestFilterRule:
    def test_without_scope(self) -> None:
        options = SelectionOptions(exclude_file_globs=("dist/**",))
        result = filter_rule("semi", VIOLATIONS, FIXABLE, options)
        assert result == Eligible({"src/a.ts": 2, "src/c.test.ts": 4})

    def test_with_graph(self, tmp_path: Path) -> None:
        main = str(tmp_path.resolve() / "src" / "main.ts")
        util = str(tmp_path.resolve() / "src" / "a.ts")
        other = str(tmp_path.resolve() / "src" / "c.test.ts")
        graph = graph_from_modules(
            [
                ModuleInfo(main, (ModuleImport("./a", 1, util),)),
                ModuleInfo(util, ()),
                ModuleInfo(other, ()),
            ],
            [main],
        )
        options = SelectionOptions(
            dependency_scope=DependencyScope(
                entry_points=("src/main.ts",),
                mode=DependencyMode.DEPENDENCIES,
            )
        )
        result = filter_rule("semi", VIOLATIONS, FIXABLE, options, graph, root_dir=tmp_path)
        assert result == Eligible({"src/a.ts": 2})

    def test_active_scope_without_graph(self, tmp_path: Path) -> None:
        options = SelectionOptions(
            dependency_scope=DependencyScope(entry_points=("src/main.ts",))
        )
        with pytest.raises(ValueError, match="dependency graph"):
            filter_rule("semi", VIOLATIONS, FIXABLE, options, root_dir=tmp_path)
