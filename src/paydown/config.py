"""Selection configuration: limit, options, dependency scope, config.yml loading."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, assert_never

import yaml

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_DIR = ".paydown"
CONFIG_FILE = "config.yml"

DEFAULT_LIMIT_COUNT = 100


class ConfigError(ValueError):
    """Raised on invalid selection configuration."""


class LimitKind(enum.Enum):
    """What a selection limit counts."""

    FILE = "file"
    VIOLATION = "violation"


class DependencyMode(enum.Enum):
    """Direction of import-graph traversal from the entry points."""

    CONNECTED = "connected"
    DEPENDENCIES = "dependencies"
    DEPENDENTS = "dependents"


@dataclass(frozen=True)
class SelectionLimit:
    """Upper bound on the size of one selection."""

    kind: LimitKind = LimitKind.VIOLATION
    count: int = DEFAULT_LIMIT_COUNT

    def validate(self) -> None:
        """Raise :class:`ConfigError` unless the limit is usable."""
        if not isinstance(self.kind, LimitKind):
            msg = f"Got unknown limit type: {self.kind!r}"
            raise ConfigError(msg)
        if self.count <= 0:
            msg = f"The {self.kind.value} limit must be greater than 0."
            raise ConfigError(msg)

    def measure(self, violations: dict[str, int]) -> int:
        """Size of *violations* in this limit's unit."""
        if self.kind is LimitKind.FILE:
            return len(violations)
        if self.kind is LimitKind.VIOLATION:
            return sum(violations.values())
        assert_never(self.kind)


@dataclass(frozen=True)
class DependencyScope:
    """Restrict eligible files to those reachable from entry points."""

    entry_points: tuple[str, ...] = ()
    mode: DependencyMode = DependencyMode.CONNECTED
    max_depth: int | None = None
    exclude: tuple[str, ...] = ()

    @property
    def active(self) -> bool:
        # An empty entry-point list disables scoping instead of matching nothing.
        return bool(self.entry_points)


@dataclass(frozen=True)
class SelectionOptions:
    """Filters and switches applied during one selection run."""

    only_auto_fixable: bool = True
    allow_partial_selection: bool = False
    exclude_rules: frozenset[str] = frozenset()
    include_rules: frozenset[str] = frozenset()
    exclude_file_globs: tuple[str, ...] = ()
    include_file_globs: tuple[str, ...] = ()
    dependency_scope: DependencyScope | None = None


@dataclass(frozen=True)
class SelectionConfig:
    """Everything a selection run needs besides the ledger and metadata."""

    limit: SelectionLimit = field(default_factory=SelectionLimit)
    options: SelectionOptions = field(default_factory=SelectionOptions)

    def with_overrides(self, **overrides: Any) -> SelectionConfig:
        """Return a copy with non-``None`` overrides applied.

        Recognised keys: ``limit_kind``, ``limit_count`` and any
        :class:`SelectionOptions` field.  ``None`` values are ignored so
        CLI options that were not given keep the file's value.
        """
        limit = self.limit
        if overrides.get("limit_kind") is not None:
            limit = replace(limit, kind=_parse_limit_kind(overrides["limit_kind"]))
        if overrides.get("limit_count") is not None:
            limit = replace(limit, count=int(overrides["limit_count"]))

        option_fields = SelectionOptions.__dataclass_fields__
        changes = {
            key: value
            for key, value in overrides.items()
            if key in option_fields and value is not None
        }
        return SelectionConfig(limit=limit, options=replace(self.options, **changes))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_limit_kind(raw: Any) -> LimitKind:
    if isinstance(raw, LimitKind):
        return raw
    try:
        return LimitKind(str(raw))
    except ValueError:
        msg = f"Got unknown limit type: {raw!r}"
        raise ConfigError(msg) from None


def _parse_mode(raw: Any) -> DependencyMode:
    if isinstance(raw, DependencyMode):
        return raw
    try:
        return DependencyMode(str(raw))
    except ValueError:
        expected = sorted(m.value for m in DependencyMode)
        msg = f"config.yml: unknown import_graph mode {raw!r}, expected one of {expected}"
        raise ConfigError(msg) from None


def _str_list(section: dict[str, Any], key: str, where: str) -> tuple[str, ...]:
    value = section.get(key, [])
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        msg = f"config.yml: '{where}.{key}' must be a list of strings"
        raise ConfigError(msg)
    return tuple(value)


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        msg = f"config.yml: '{key}' must be a mapping"
        raise ConfigError(msg)
    return value


def _bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        msg = f"config.yml: '{key}' must be a boolean"
        raise ConfigError(msg)
    return value


def config_from_mapping(data: Any) -> SelectionConfig:
    """Validate a decoded config.yml document.

    Raises :class:`ConfigError` on schema errors.  The limit itself is
    validated lazily by :meth:`SelectionLimit.validate` so that CLI
    overrides can still fix it.
    """
    if data is None:
        return SelectionConfig()
    if not isinstance(data, dict):
        msg = "config.yml must be a YAML mapping"
        raise ConfigError(msg)

    limit_data = _section(data, "limit")
    count = limit_data.get("count", DEFAULT_LIMIT_COUNT)
    if isinstance(count, bool) or not isinstance(count, int):
        msg = "config.yml: 'limit.count' must be an integer"
        raise ConfigError(msg)
    limit = SelectionLimit(
        kind=_parse_limit_kind(limit_data.get("type", LimitKind.VIOLATION.value)),
        count=count,
    )

    include = _section(data, "include")
    exclude = _section(data, "exclude")

    scope: DependencyScope | None = None
    graph_data = _section(data, "import_graph")
    if graph_data:
        depth = graph_data.get("depth")
        if depth is not None and (isinstance(depth, bool) or not isinstance(depth, int)):
            msg = "config.yml: 'import_graph.depth' must be an integer"
            raise ConfigError(msg)
        scope = DependencyScope(
            entry_points=_str_list(graph_data, "entry_points", "import_graph"),
            mode=_parse_mode(graph_data.get("mode", DependencyMode.CONNECTED.value)),
            max_depth=depth,
            exclude=_str_list(graph_data, "exclude", "import_graph"),
        )

    options = SelectionOptions(
        only_auto_fixable=_bool(data, "auto_fixable_only", True),
        allow_partial_selection=_bool(data, "partial_selection", False),
        exclude_rules=frozenset(_str_list(exclude, "rules", "exclude")),
        include_rules=frozenset(_str_list(include, "rules", "include")),
        exclude_file_globs=_str_list(exclude, "files", "exclude"),
        include_file_globs=_str_list(include, "files", "include"),
        dependency_scope=scope,
    )
    return SelectionConfig(limit=limit, options=options)


def load_config(project_root: Path) -> SelectionConfig:
    """Load ``.paydown/config.yml`` under *project_root*.

    Falls back to defaults when the file does not exist.
    """
    config_path = project_root / CONFIG_DIR / CONFIG_FILE
    if not config_path.is_file():
        logger.debug("No config file at %s, using defaults", config_path)
        return SelectionConfig()

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        msg = f"config.yml: invalid YAML: {exc}"
        raise ConfigError(msg) from exc
    return config_from_mapping(data)
