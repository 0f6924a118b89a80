"""Selection engine: eligibility filtering, candidate aggregation, rule choice."""

from paydown.selection.candidates import RuleCandidate, aggregate_candidates
from paydown.selection.filters import Eligible, EligibilityFilter, Ineligible, filter_rule
from paydown.selection.selector import (
    SelectionFailure,
    SelectionMode,
    SelectionResult,
    SelectionSuccess,
    select_optimal_rule,
    select_rule_to_correct,
)

__all__ = [
    "EligibilityFilter",
    "Eligible",
    "Ineligible",
    "RuleCandidate",
    "SelectionFailure",
    "SelectionMode",
    "SelectionResult",
    "SelectionSuccess",
    "aggregate_candidates",
    "filter_rule",
    "select_optimal_rule",
    "select_rule_to_correct",
]
