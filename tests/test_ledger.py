"""Tests for paydown.ledger: ingestion, rule-major view, apply-selection."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from paydown.ledger import (
    Ledger,
    LedgerError,
    apply_selection,
    dump_ledger,
    iter_rule_violations,
    ledger_from_mapping,
    load_ledger,
)
from paydown.selection.selector import SelectionFailure, SelectionMode, SelectionSuccess

if TYPE_CHECKING:
    from pathlib import Path


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class TestLedgerFromMapping:
    def test_suppressions_shape(self) -> None:
        ledger = ledger_from_mapping({"a.ts": {"R1": {"count": 2}}})
        assert ledger == {"a.ts": {"R1": 2}}

    def test_flat_shape(self) -> None:
        ledger = ledger_from_mapping({"a.ts": {"R1": 2, "R2": 1}})
        assert ledger["a.ts"] == {"R1": 2, "R2": 1}

    def test_file_order_preserved(self) -> None:
        ledger = ledger_from_mapping({"z.ts": {"R": 1}, "a.ts": {"R": 1}, "m.ts": {"R": 1}})
        assert list(ledger) == ["z.ts", "a.ts", "m.ts"]

    def test_empty_file_entries_dropped(self) -> None:
        ledger = ledger_from_mapping({"a.ts": {}, "b.ts": {"R": 1}})
        assert list(ledger) == ["b.ts"]

    @pytest.mark.parametrize("count", [0, -1, True, 1.5, "3", None])
    def test_invalid_counts_rejected(self, count: object) -> None:
        with pytest.raises(LedgerError):
            ledger_from_mapping({"a.ts": {"R": count}})

    def test_missing_count_key(self) -> None:
        with pytest.raises(LedgerError, match="missing 'count'"):
            ledger_from_mapping({"a.ts": {"R": {"total": 3}}})

    def test_top_level_must_be_mapping(self) -> None:
        with pytest.raises(LedgerError, match="top level"):
            ledger_from_mapping([["a.ts", "R", 1]])

    def test_rules_must_be_mapping(self) -> None:
        with pytest.raises(LedgerError, match="mapping of rule ids"):
            ledger_from_mapping({"a.ts": ["R"]})

    def test_empty_rule_id_rejected(self) -> None:
        with pytest.raises(LedgerError, match="rule id"):
            ledger_from_mapping({"a.ts": {"": 1}})


class TestLoadLedger:
    def test_loads_file(self, tmp_path: Path) -> None:
        path = tmp_path / "eslint-suppressions.json"
        path.write_text(json.dumps({"src/a.ts": {"no-console": {"count": 3}}}))
        assert load_ledger(path) == {"src/a.ts": {"no-console": 3}}

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(LedgerError, match="not valid JSON"):
            load_ledger(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(LedgerError, match="cannot read"):
            load_ledger(tmp_path / "missing.json")


class TestDumpLedger:
    def test_suppressions_shape_in_ledger_order(self) -> None:
        ledger = Ledger({"b.ts": {"R2": 1}, "a.ts": {"R1": 4}})
        text = dump_ledger(ledger)
        assert text.endswith("\n")
        data = json.loads(text)
        assert list(data) == ["b.ts", "a.ts"]
        assert data["a.ts"] == {"R1": {"count": 4}}

    def test_reloads_to_equal_ledger(self) -> None:
        ledger = Ledger({"a.ts": {"R1": 2, "R2": 1}})
        assert ledger_from_mapping(json.loads(dump_ledger(ledger))) == ledger


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


class TestRuleMajorView:
    def test_rule_ids_first_seen(self) -> None:
        ledger = Ledger({"a.ts": {"R2": 1}, "b.ts": {"R1": 1, "R2": 3}})
        assert ledger.rule_ids() == ["R2", "R1"]

    def test_iter_rule_violations(self) -> None:
        ledger = Ledger({"a.ts": {"R1": 1, "R2": 2}, "b.ts": {"R1": 5}})
        assert list(iter_rule_violations(ledger)) == [
            ("R1", {"a.ts": 1, "b.ts": 5}),
            ("R2", {"a.ts": 2}),
        ]

    def test_ledger_is_read_only(self) -> None:
        ledger = Ledger({"a.ts": {"R1": 1}})
        with pytest.raises(TypeError):
            ledger["b.ts"] = {"R1": 1}  # type: ignore[index]


# ---------------------------------------------------------------------------
# apply_selection
# ---------------------------------------------------------------------------


class TestApplySelection:
    def test_full_without_eligible_set_removes_rule_everywhere(self) -> None:
        ledger = Ledger({"a.ts": {"R1": 1, "R2": 1}, "b.ts": {"R1": 2}})
        result = SelectionSuccess(rule_id="R1", mode=SelectionMode.FULL)
        assert apply_selection(ledger, result) == {"a.ts": {"R2": 1}}

    def test_full_removes_only_eligible_files(self) -> None:
        ledger = Ledger(
            {
                "src/f0.ts": {"R1": 1},
                "src/f1.ts": {"R1": 2, "R2": 1},
                **{f"dist/d{i}.js": {"R1": 1} for i in range(8)},
            }
        )
        result = SelectionSuccess(
            rule_id="R1",
            mode=SelectionMode.FULL,
            eligible_violations={"src/f0.ts": 1, "src/f1.ts": 2},
        )
        updated = apply_selection(ledger, result)
        assert list(updated) == ["src/f1.ts", *(f"dist/d{i}.js" for i in range(8))]
        assert updated["src/f1.ts"] == {"R2": 1}
        removed = [f for f in ledger if "R1" not in updated.get(f, {})]
        assert removed == ["src/f0.ts", "src/f1.ts"]

    def test_partial_removes_matching_counts_only(self) -> None:
        ledger = Ledger({"a.ts": {"R1": 2}, "b.ts": {"R1": 3}, "c.ts": {"R1": 1}})
        result = SelectionSuccess(
            rule_id="R1",
            mode=SelectionMode.PARTIAL,
            violations={"a.ts": 2, "b.ts": 1},
        )
        # b.ts changed since selection: count 3 != 1, kept.
        assert apply_selection(ledger, result) == {"b.ts": {"R1": 3}, "c.ts": {"R1": 1}}

    def test_partial_ignores_files_not_in_ledger(self) -> None:
        ledger = Ledger({"a.ts": {"R1": 2}})
        result = SelectionSuccess(
            rule_id="R1",
            mode=SelectionMode.PARTIAL,
            violations={"gone.ts": 2},
        )
        assert apply_selection(ledger, result) == ledger

    def test_failure_leaves_ledger_unchanged(self) -> None:
        ledger = Ledger({"a.ts": {"R1": 1}})
        assert apply_selection(ledger, SelectionFailure()) is ledger

    def test_unknown_rule_leaves_ledger_unchanged(self) -> None:
        ledger = Ledger({"a.ts": {"R1": 1}})
        result = SelectionSuccess(rule_id="R9", mode=SelectionMode.FULL)
        assert apply_selection(ledger, result) is ledger

    def test_input_not_mutated(self) -> None:
        ledger = Ledger({"a.ts": {"R1": 1, "R2": 1}})
        apply_selection(ledger, SelectionSuccess(rule_id="R1", mode=SelectionMode.FULL))
        assert ledger == {"a.ts": {"R1": 1, "R2": 1}}
