"""Paydown CLI entry point."""

from __future__ import annotations

import functools
import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn

import click

from paydown import __version__
from paydown.config import (
    CONFIG_DIR,
    ConfigError,
    DependencyMode,
    DependencyScope,
    LimitKind,
    load_config,
)
from paydown.import_graph.analyzer import GraphBuildError, scope_reachable_files
from paydown.import_graph.cache import DependencyGraphCache, resolve_dependency_graph
from paydown.ledger import LedgerError, apply_selection, dump_ledger, load_ledger
from paydown.rules import load_rule_metadata
from paydown.selection.selector import SelectionSuccess, select_rule_to_correct

if TYPE_CHECKING:
    from collections.abc import Callable

    from paydown.config import SelectionConfig
    from paydown.ledger import Ledger
    from paydown.rules import RuleMeta
    from paydown.selection.selector import SelectionResult

RULES_FILE = "rules.yml"

# Exit codes.
EXIT_NOTHING_SELECTED = 1
EXIT_USAGE = 2

_INPUT_ERRORS = (ConfigError, LedgerError, GraphBuildError)


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    handler = RichHandler(console=Console(stderr=True), show_time=False, show_path=verbose)
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)


@click.group()
@click.version_option(version=__version__, prog_name="paydown")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Paydown - pick the next lint rule to fix, one reviewable change at a time."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(EXIT_USAGE)


_project_option = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)


def _selection_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by ``select`` and ``apply``."""
    options = [
        click.argument("ledger", type=click.Path(exists=True, dir_okay=False, path_type=Path)),
        click.option(
            "--rules",
            "rules_path",
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            default=None,
            help=f"Rule metadata file (default: {CONFIG_DIR}/{RULES_FILE} if present).",
        ),
        click.option(
            "--limit-type",
            type=click.Choice([k.value for k in LimitKind]),
            default=None,
            help="Count the limit in files or violations.",
        ),
        click.option("--limit", "limit_count", type=int, default=None, help="Limit count."),
        click.option(
            "--partial/--no-partial",
            default=None,
            help="Allow selecting a slice of a rule that exceeds the limit.",
        ),
        click.option(
            "--auto-fixable-only/--all-rules",
            default=None,
            help="Only consider rules the linter can fix automatically.",
        ),
        click.option("--include-rule", multiple=True, help="Only consider these rules."),
        click.option("--exclude-rule", multiple=True, help="Never select these rules."),
        click.option("--include-file", multiple=True, help="Only consider files matching glob."),
        click.option("--exclude-file", multiple=True, help="Skip files matching glob."),
        click.option(
            "--entry-point",
            multiple=True,
            help="Restrict to files connected to this entry point (repeatable).",
        ),
        click.option(
            "--graph-mode",
            type=click.Choice([m.value for m in DependencyMode]),
            default=None,
            help="Import graph traversal direction.",
        ),
        click.option("--graph-depth", type=int, default=None, help="Maximum import hops."),
        click.option("--no-cache", is_flag=True, help="Rebuild the import graph."),
        _project_option,
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _override_scope(
    scope: DependencyScope | None,
    entry_points: tuple[str, ...],
    graph_mode: str | None,
    graph_depth: int | None,
) -> DependencyScope | None:
    if not entry_points and graph_mode is None and graph_depth is None:
        return scope
    base = scope or DependencyScope()
    changes: dict[str, Any] = {}
    if entry_points:
        changes["entry_points"] = entry_points
    if graph_mode is not None:
        changes["mode"] = DependencyMode(graph_mode)
    if graph_depth is not None:
        changes["max_depth"] = graph_depth
    return replace(base, **changes)


def _load_rules(project_root: Path, rules_path: Path | None) -> dict[str, RuleMeta]:
    path = rules_path or project_root / CONFIG_DIR / RULES_FILE
    if rules_path is None and not path.is_file():
        return {}
    try:
        return load_rule_metadata(path)
    except (OSError, ValueError) as exc:
        msg = f"cannot load rule metadata from {path}: {exc}"
        raise ConfigError(msg) from exc


def _run_selection(
    project_root: Path,
    ledger_path: Path,
    params: dict[str, Any],
) -> tuple[Ledger, SelectionResult]:
    """Load inputs, apply CLI overrides and run one selection."""
    config: SelectionConfig = load_config(project_root)
    scope = _override_scope(
        config.options.dependency_scope,
        params["entry_point"],
        params["graph_mode"],
        params["graph_depth"],
    )
    config = config.with_overrides(
        limit_kind=params["limit_type"],
        limit_count=params["limit_count"],
        allow_partial_selection=params["partial"],
        only_auto_fixable=params["auto_fixable_only"],
        include_rules=frozenset(params["include_rule"]) or None,
        exclude_rules=frozenset(params["exclude_rule"]) or None,
        include_file_globs=params["include_file"] or None,
        exclude_file_globs=params["exclude_file"] or None,
        dependency_scope=scope,
    )

    ledger = load_ledger(ledger_path)
    rule_metadata = _load_rules(project_root, params["rules_path"])
    cache = None if params["no_cache"] else DependencyGraphCache.for_project(project_root)
    result = select_rule_to_correct(
        ledger,
        rule_metadata,
        config,
        root_dir=project_root,
        graph_cache=cache,
    )
    return ledger, result


def _print_result(result: SelectionResult) -> None:
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    console = Console()
    if not isinstance(result, SelectionSuccess):
        console.print("[yellow]No rule can be selected within the current limit.[/]")
        return

    console.print(f"Selected [bold]{escape(result.rule_id)}[/] ({result.mode.value})")
    if result.violations:
        table = Table(show_header=True, box=None, padding=(0, 1))
        table.add_column("file", style="cyan")
        table.add_column("violations", justify="right")
        for file_path, count in result.violations.items():
            table.add_row(escape(file_path), str(count))
        console.print(table)


def _with_selection(
    command: Callable[..., None],
) -> Callable[..., None]:
    """Translate input errors raised by a selection command into exit code 2."""

    @functools.wraps(command)
    def wrapper(**kwargs: Any) -> None:
        try:
            command(**kwargs)
        except _INPUT_ERRORS as exc:
            _fail(str(exc))

    return wrapper


@main.command()
@_selection_options
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@_with_selection
def select(*, ledger: Path, project: Path | None, output_json: bool, **params: Any) -> None:
    """Select the next rule to fix from a suppressions LEDGER.

    Exits with code 1 when no rule fits the limit.
    """
    project_root = project or Path.cwd()
    _, result = _run_selection(project_root, ledger, params)

    if output_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        _print_result(result)

    if not result.success:
        sys.exit(EXIT_NOTHING_SELECTED)


@main.command()
@_selection_options
@click.option("--write", is_flag=True, help="Rewrite LEDGER in place instead of printing it.")
@_with_selection
def apply(*, ledger: Path, project: Path | None, write: bool, **params: Any) -> None:
    """Select a rule and remove its suppressions from LEDGER."""
    project_root = project or Path.cwd()
    current, result = _run_selection(project_root, ledger, params)
    if not isinstance(result, SelectionSuccess):
        click.echo("No rule can be selected within the current limit.", err=True)
        sys.exit(EXIT_NOTHING_SELECTED)

    updated = apply_selection(current, result)
    text = dump_ledger(updated)
    if write:
        ledger.write_text(text, encoding="utf-8")
        click.echo(f"Removed {result.rule_id} ({result.mode.value}) from {ledger}", err=True)
    else:
        click.echo(text, nl=False)


@main.command()
@click.argument("entry_points", nargs=-1, required=True)
@click.option(
    "--mode",
    type=click.Choice([m.value for m in DependencyMode]),
    default=DependencyMode.CONNECTED.value,
    show_default=True,
    help="Traversal direction.",
)
@click.option("--depth", type=int, default=None, help="Maximum import hops.")
@click.option("--exclude", multiple=True, help="Skip modules matching glob.")
@click.option("--no-cache", is_flag=True, help="Rebuild the import graph.")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@_project_option
def graph(
    *,
    entry_points: tuple[str, ...],
    mode: str,
    depth: int | None,
    exclude: tuple[str, ...],
    no_cache: bool,
    output_json: bool,
    project: Path | None,
) -> None:
    """List the files connected to ENTRY_POINTS through imports."""
    project_root = (project or Path.cwd()).resolve()
    scope = DependencyScope(
        entry_points=entry_points,
        mode=DependencyMode(mode),
        max_depth=depth,
        exclude=exclude,
    )
    cache = None if no_cache else DependencyGraphCache.for_project(project_root)
    try:
        dependency_graph = resolve_dependency_graph(scope, project_root, cache)
    except GraphBuildError as exc:
        _fail(str(exc))

    reachable = scope_reachable_files(dependency_graph, scope, project_root)
    files = sorted(Path(os.path.relpath(p, project_root)).as_posix() for p in reachable)

    if output_json:
        data = {
            "entryPoints": list(entry_points),
            "mode": mode,
            "depth": depth,
            "modules": len(dependency_graph.nodes),
            "files": files,
        }
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    for file_path in files:
        click.echo(file_path)
    click.echo(
        f"{len(files)} of {len(dependency_graph.nodes)} modules reachable",
        err=True,
    )


@main.group()
def cache() -> None:
    """Manage the on-disk import graph cache."""


@cache.command("clear")
@_project_option
def cache_clear(*, project: Path | None) -> None:
    """Delete cached import graphs."""
    project_root = project or Path.cwd()
    DependencyGraphCache.for_project(project_root).clear()
    click.echo("Import graph cache cleared.")
