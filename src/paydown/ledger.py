"""Violation ledger: ingestion, rule-major view, apply-selection, serialization."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

    from paydown.selection.selector import SelectionResult

logger = logging.getLogger(__name__)


class LedgerError(ValueError):
    """Raised when ledger input does not have the expected shape."""


class Ledger(Mapping[str, Mapping[str, int]]):
    """Read-only ``file -> rule -> count`` mapping.

    File insertion order is preserved; partial selection walks files in
    this order.  Counts are positive integers and files without rules are
    never stored.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Mapping[str, int]] | None = None) -> None:
        self._data: dict[str, dict[str, int]] = {}
        for file_path, rules in (data or {}).items():
            if rules:
                self._data[file_path] = dict(rules)

    def __getitem__(self, file_path: str) -> Mapping[str, int]:
        return self._data[file_path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Ledger({self._data!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Ledger):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == {k: dict(v) for k, v in other.items()}
        return NotImplemented

    def rule_ids(self) -> list[str]:
        """Return rule ids in first-seen order."""
        seen: dict[str, None] = {}
        for rules in self._data.values():
            for rule_id in rules:
                seen.setdefault(rule_id, None)
        return list(seen)

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {k: dict(v) for k, v in self._data.items()}


def iter_rule_violations(
    ledger: Mapping[str, Mapping[str, int]],
) -> Iterator[tuple[str, dict[str, int]]]:
    """Yield ``(rule_id, {file: count})`` pairs in rule-major form.

    Rules come out in first-seen order and each rule's files keep the
    ledger's file order.  The inversion is built on the fly and not kept.
    """
    by_rule: dict[str, dict[str, int]] = {}
    for file_path, rules in ledger.items():
        for rule_id, count in rules.items():
            by_rule.setdefault(rule_id, {})[file_path] = count
    yield from by_rule.items()


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


def _coerce_count(raw: Any, file_path: str, rule_id: str) -> int:
    if isinstance(raw, Mapping):
        if "count" not in raw:
            msg = f"ledger: {file_path!r} / {rule_id!r} is missing 'count'"
            raise LedgerError(msg)
        raw = raw["count"]
    # bool is an int subclass; reject it explicitly.
    if isinstance(raw, bool) or not isinstance(raw, int):
        msg = f"ledger: count for {file_path!r} / {rule_id!r} must be an integer, got {raw!r}"
        raise LedgerError(msg)
    if raw <= 0:
        msg = f"ledger: count for {file_path!r} / {rule_id!r} must be positive, got {raw}"
        raise LedgerError(msg)
    return raw


def ledger_from_mapping(data: Any) -> Ledger:
    """Validate raw decoded data and build a :class:`Ledger`.

    Accepts both the ESLint bulk-suppressions shape
    (``{file: {rule: {"count": n}}}``) and the flat shape
    (``{file: {rule: n}}``).

    Raises
    ------
    LedgerError
        When *data* is not a mapping of mappings with positive counts.
    """
    if not isinstance(data, Mapping):
        msg = "ledger: top level must be a mapping of file paths"
        raise LedgerError(msg)

    result: dict[str, dict[str, int]] = {}
    for file_path, rules in data.items():
        if not isinstance(file_path, str) or not file_path:
            msg = f"ledger: file path must be a non-empty string, got {file_path!r}"
            raise LedgerError(msg)
        if not isinstance(rules, Mapping):
            msg = f"ledger: entry for {file_path!r} must be a mapping of rule ids"
            raise LedgerError(msg)
        counts: dict[str, int] = {}
        for rule_id, raw in rules.items():
            if not isinstance(rule_id, str) or not rule_id:
                msg = f"ledger: rule id in {file_path!r} must be a non-empty string"
                raise LedgerError(msg)
            counts[rule_id] = _coerce_count(raw, file_path, rule_id)
        if counts:
            result[file_path] = counts
        else:
            logger.debug("Dropping ledger entry with no rules: %s", file_path)
    return Ledger(result)


def load_ledger(path: Path) -> Ledger:
    """Read a suppressions JSON file into a :class:`Ledger`."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"ledger: cannot read {path}: {exc}"
        raise LedgerError(msg) from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        msg = f"ledger: {path} is not valid JSON: {exc}"
        raise LedgerError(msg) from exc
    return ledger_from_mapping(data)


def dump_ledger(ledger: Mapping[str, Mapping[str, int]]) -> str:
    """Serialize a ledger in the ESLint bulk-suppressions shape."""
    payload = {
        file_path: {rule_id: {"count": count} for rule_id, count in rules.items()}
        for file_path, rules in ledger.items()
    }
    return json.dumps(payload, indent=2) + "\n"


# ---------------------------------------------------------------------------
# Apply a selection
# ---------------------------------------------------------------------------


def apply_selection(ledger: Ledger, result: SelectionResult) -> Ledger:
    """Return a new ledger with the selected violations removed.

    Only the files the selection covers are touched: the eligible files of
    a full selection, the chosen subset of a partial one.  A file entry is
    dropped only when its count still equals the selected count.  A full
    selection without a recorded eligible set drops the rule everywhere.
    Failures and rules absent from the ledger leave the ledger unchanged.
    """
    from paydown.selection.selector import SelectionMode, SelectionSuccess

    if not isinstance(result, SelectionSuccess):
        return ledger
    if result.rule_id not in ledger.rule_ids():
        return ledger

    data = ledger.to_dict()
    if result.mode is SelectionMode.FULL:
        selected = result.eligible_violations
    else:
        selected = result.violations or {}

    if selected is None:
        for rules in data.values():
            rules.pop(result.rule_id, None)
        return Ledger(data)

    for file_path, count in selected.items():
        rules = data.get(file_path)
        if rules is None or rules.get(result.rule_id) != count:
            continue
        del rules[result.rule_id]

    return Ledger(data)
