"""Rule candidates: one eligibility-adjusted record per rule in the ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from paydown.config import LimitKind, SelectionLimit
from paydown.ledger import iter_rule_violations
from paydown.rules import is_rule_fixable
from paydown.selection.filters import EligibilityFilter, Ineligible

if TYPE_CHECKING:
    from collections.abc import Mapping

    from paydown.config import SelectionOptions
    from paydown.rules import RuleMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleCandidate:
    """A rule considered for selection in one run."""

    rule_id: str
    is_fixable: bool
    original_files: tuple[str, ...]
    original_violation_total: int
    eligible_violations: dict[str, int]  # ledger order
    eligible_count: int  # files or violations, per the limit kind

    @property
    def eligible_files(self) -> list[str]:
        return list(self.eligible_violations)

    @property
    def eligible_violation_total(self) -> int:
        return sum(self.eligible_violations.values())


def aggregate_candidates(
    ledger: Mapping[str, Mapping[str, int]],
    rule_metadata: RuleMetadata,
    options: SelectionOptions,
    limit_kind: LimitKind,
    *,
    eligibility: EligibilityFilter | None = None,
) -> list[RuleCandidate]:
    """Build candidates for every rule that has at least one eligible violation.

    Rules come out in first-seen ledger order.  *eligibility* must be given
    when the options scope selection by the import graph; otherwise a
    filter without reachability is created.
    """
    if eligibility is None:
        eligibility = EligibilityFilter(rule_metadata, options)
    measure = SelectionLimit(kind=limit_kind).measure

    candidates: list[RuleCandidate] = []
    for rule_id, violations in iter_rule_violations(ledger):
        result = eligibility.filter(rule_id, violations)
        if isinstance(result, Ineligible):
            logger.debug("Skipping rule %s: %s", rule_id, result.reason)
            continue

        candidates.append(
            RuleCandidate(
                rule_id=rule_id,
                is_fixable=is_rule_fixable(rule_metadata, rule_id),
                original_files=tuple(violations),
                original_violation_total=sum(violations.values()),
                eligible_violations=result.violations,
                eligible_count=measure(result.violations),
            )
        )
    return candidates
