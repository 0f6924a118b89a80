"""Rule metadata: which rules the linter can fix automatically."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True)
class RuleMeta:
    """Metadata the selection engine needs about a single rule."""

    fixable: bool = False


RuleMetadata = Mapping[str, RuleMeta]


def is_rule_fixable(rule_metadata: RuleMetadata, rule_id: str) -> bool:
    """Return whether *rule_id* supports auto-fix; unknown rules do not."""
    meta = rule_metadata.get(rule_id)
    return meta is not None and meta.fixable


def rule_metadata_from_mapping(data: Any) -> dict[str, RuleMeta]:
    """Build rule metadata from ``{rule: {"fixable": bool}}`` or ``{rule: bool}``.

    Raises ``ValueError`` on any other shape.
    """
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        msg = "rule metadata must be a mapping of rule ids"
        raise ValueError(msg)

    result: dict[str, RuleMeta] = {}
    for rule_id, raw in data.items():
        if not isinstance(rule_id, str):
            msg = f"rule metadata: rule id must be a string, got {rule_id!r}"
            raise ValueError(msg)
        if isinstance(raw, Mapping):
            raw = raw.get("fixable", False)
        if not isinstance(raw, bool):
            msg = f"rule metadata: 'fixable' for {rule_id!r} must be a boolean"
            raise ValueError(msg)
        result[rule_id] = RuleMeta(fixable=raw)
    return result


def load_rule_metadata(path: Path) -> dict[str, RuleMeta]:
    """Read rule metadata from a JSON or YAML file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    return rule_metadata_from_mapping(data)
