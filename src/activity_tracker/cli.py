"""Command-line interface for the activity engine."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

import typer

from .errors import ActivityTrackerError, ConflictError, NotFoundError
from .models import ActivityRecord, Dimension, TimeWindow
from .paths import get_config_path, get_db_path

app = typer.Typer(help="Activity aggregation and classification engine.")
rules_app = typer.Typer(help="Manage productivity rating rules.", no_args_is_help=True)
app.add_typer(rules_app, name="rules")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _config_option() -> Any:
    return typer.Option(
        None, "--config", path_type=Path, help="Location of the engine settings JSON file."
    )


def _db_option() -> Any:
    return typer.Option(
        None, "--db", path_type=Path, help="Location of the rules SQLite database."
    )


def _load_settings(config_path: Optional[Path]):
    from .config import EngineSettings

    try:
        return EngineSettings.load(config_path or get_config_path())
    except ActivityTrackerError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def _load_records(path: Path) -> list[ActivityRecord]:
    from .schemas import parse_records

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise typer.BadParameter(f"cannot read {path}: {exc}", param_hint="INPUT") from exc
    if not isinstance(data, list):
        raise typer.BadParameter("expected a JSON list of activity records", param_hint="INPUT")
    try:
        return parse_records(data)
    except ActivityTrackerError as exc:
        raise typer.BadParameter(str(exc), param_hint="INPUT") from exc


def _parse_day(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise typer.BadParameter("expected YYYY-MM-DD", param_hint="--start/--end") from exc


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command()
def merge(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Raw records JSON."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", path_type=Path, help="Write merged records here."
    ),
    config_path: Optional[Path] = _config_option(),
) -> None:
    """Merge a raw capture stream into consolidated records."""
    from .merge import merge_records

    settings = _load_settings(config_path)
    records = _load_records(input_path)
    merged = merge_records(records, gap_ms=settings.merge_gap_ms)
    payload = [record.to_dict() for record in merged]
    if output:
        output.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        typer.echo(f"Merged {len(records)} records into {len(merged)}; wrote {output}.")
    else:
        _echo_json(payload)


@app.command()
def report(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Records JSON."),
    dimension: Dimension = typer.Option(
        Dimension.APPLICATION, "--dimension", "-d", help="Axis to group durations by."
    ),
    start: Optional[str] = typer.Option(
        None, "--start", help="First day (YYYY-MM-DD, inclusive). Defaults to today."
    ),
    end: Optional[str] = typer.Option(
        None, "--end", help="Last day (YYYY-MM-DD, inclusive). Defaults to --start."
    ),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum rows shown."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    config_path: Optional[Path] = _config_option(),
) -> None:
    """Print application, domain or title duration totals for a date range."""
    from .merge import merge_records
    from .reporting import ReportPrinter, build_duration_report

    settings = _load_settings(config_path)
    start_day = _parse_day(start)
    end_day = _parse_day(end) if end else start_day
    if end_day < start_day:
        raise typer.BadParameter("end date must be on or after start date", param_hint="--end")
    window = TimeWindow(
        start=int(start_day.timestamp() * 1000),
        end=int((end_day + timedelta(days=1)).timestamp() * 1000),
    )

    merged = merge_records(_load_records(input_path), gap_ms=settings.merge_gap_ms)
    reports = build_duration_report(merged, window, dimension)
    row_limit = limit if limit is not None else settings.report_limit
    if as_json:
        shown = reports if row_limit is None else reports[:row_limit]
        _echo_json([item.to_dict() for item in shown])
        return
    ReportPrinter(limit=row_limit).print_report(reports, dimension, window)


@app.command()
def categories(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Records JSON."),
    as_json: bool = typer.Option(False, "--json", help="Print the tree as JSON."),
    config_path: Optional[Path] = _config_option(),
) -> None:
    """Classify records and print the category tree."""
    from .categories import build_category_tree
    from .merge import merge_records

    settings = _load_settings(config_path)
    merged = merge_records(_load_records(input_path), gap_ms=settings.merge_gap_ms)
    tree = build_category_tree(merged, settings.category_rules)
    if as_json:
        _echo_json([node.to_dict() for node in tree])
        return
    if not tree:
        typer.echo("No activity to categorize.")
        return
    stack = [(node, 0) for node in reversed(tree)]
    while stack:
        node, depth = stack.pop()
        typer.echo(f"{'  ' * depth}{node.category[-1]:<30} {node.percentage:6.1f}%")
        stack.extend((child, depth + 1) for child in reversed(node.children))


@rules_app.command("list")
def list_rules(db_path: Optional[Path] = _db_option()) -> None:
    """List stored rules, newest first."""
    from .db import SqliteRuleStore, database_connection

    with database_connection(db_path or get_db_path()) as conn:
        stored = SqliteRuleStore(conn).list_rules()
    if not stored:
        typer.echo("No rules defined.")
        return
    for rule in stored:
        state = "on " if rule.active else "off"
        typer.echo(
            f"{rule.id}  [{state}] {rule.name}: {rule.rule_type.value} "
            f"{rule.condition.value} {rule.value!r} -> {rule.rating}"
        )


def _with_stored_ratings(records: list[ActivityRecord], store) -> list[ActivityRecord]:
    ratings = store.fetch_ratings()
    for record in records:
        if record.timestamp in ratings:
            record.rating, record.rule_id = ratings[record.timestamp]
    return records


def _report_batch(result) -> None:
    typer.echo(f"Rated {len(result.ratings.updated)} activities.")
    for failure in result.ratings.failed:
        typer.echo(f"  failed {failure.timestamp}: {failure.error}", err=True)
    if not result.ratings.ok:
        raise typer.Exit(code=1)


@rules_app.command("add")
def add_rule(
    name: str = typer.Option(..., "--name", help="Display name of the rule."),
    rule_type: str = typer.Option(..., "--type", help="duration, app_name, domain, title or url."),
    condition: str = typer.Option(..., "--condition", help="Comparison operator."),
    value: str = typer.Option(..., "--value", help="Value to compare against."),
    rating: int = typer.Option(..., "--rating", min=0, max=1, help="1 productive, 0 distracting."),
    description: Optional[str] = typer.Option(None, "--description"),
    input_path: Optional[Path] = typer.Option(
        None, "--activities", exists=True, dir_okay=False, help="Records JSON to re-rate."
    ),
    apply_to_all: bool = typer.Option(
        False, "--apply-to-all", help="Re-rate already rated activities as well."
    ),
    db_path: Optional[Path] = _db_option(),
) -> None:
    """Create a rule and rate the matching activities."""
    from .db import SqliteRuleStore, database_connection
    from .rules import RuleService

    fields = {
        "name": name,
        "description": description,
        "ruleType": rule_type,
        "condition": condition,
        "value": value,
        "rating": rating,
    }
    with database_connection(db_path or get_db_path()) as conn:
        store = SqliteRuleStore(conn)
        candidates = _with_stored_ratings(_load_records(input_path), store) if input_path else []
        try:
            result = RuleService(store).create_rule(fields, candidates, apply_to_all=apply_to_all)
        except ActivityTrackerError as exc:
            raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"Created rule {result.rule.id}.")
    _report_batch(result)


@rules_app.command("update")
def update_rule(
    rule_id: str = typer.Argument(..., help="Rule identifier."),
    name: Optional[str] = typer.Option(None, "--name"),
    condition: Optional[str] = typer.Option(None, "--condition"),
    value: Optional[str] = typer.Option(None, "--value"),
    rating: Optional[int] = typer.Option(None, "--rating", min=0, max=1),
    input_path: Optional[Path] = typer.Option(
        None, "--activities", exists=True, dir_okay=False, help="Records JSON to re-rate."
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm a rating change."),
    apply_to_all: bool = typer.Option(
        False, "--apply-to-all", help="Re-rate already rated activities as well."
    ),
    db_path: Optional[Path] = _db_option(),
) -> None:
    """Update a rule; changing its rating asks for confirmation first."""
    from .db import SqliteRuleStore, database_connection
    from .rules import RatingChangeConfirmation, RuleService

    changes = {
        key: item
        for key, item in {
            "name": name,
            "condition": condition,
            "value": value,
            "rating": rating,
        }.items()
        if item is not None
    }
    with database_connection(db_path or get_db_path()) as conn:
        store = SqliteRuleStore(conn)
        service = RuleService(store)
        candidates = _with_stored_ratings(_load_records(input_path), store) if input_path else []
        confirmation = RatingChangeConfirmation(apply_to_all=apply_to_all) if yes else None
        try:
            try:
                result = service.update_rule(
                    rule_id, changes, candidates, confirmation=confirmation
                )
            except ConflictError:
                typer.confirm(
                    "Changing this rule's rating will re-rate matching activities. Continue?",
                    abort=True,
                )
                result = service.update_rule(
                    rule_id,
                    changes,
                    candidates,
                    confirmation=RatingChangeConfirmation(apply_to_all=apply_to_all),
                )
        except NotFoundError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1) from exc
        except ActivityTrackerError as exc:
            raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"Updated rule {result.rule.id}.")
    _report_batch(result)


@rules_app.command("delete")
def delete_rule(
    rule_id: str = typer.Argument(..., help="Rule identifier."),
    db_path: Optional[Path] = _db_option(),
) -> None:
    """Delete a rule."""
    from .db import SqliteRuleStore, database_connection
    from .rules import RuleService

    with database_connection(db_path or get_db_path()) as conn:
        try:
            RuleService(SqliteRuleStore(conn)).delete_rule(rule_id)
        except NotFoundError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1) from exc
    typer.echo(f"Deleted rule {rule_id}.")


@rules_app.command("toggle")
def toggle_rule(
    rule_id: str = typer.Argument(..., help="Rule identifier."),
    active: bool = typer.Option(True, "--active/--inactive", help="New active state."),
    db_path: Optional[Path] = _db_option(),
) -> None:
    """Enable or disable a rule."""
    from .db import SqliteRuleStore, database_connection
    from .rules import RuleService

    with database_connection(db_path or get_db_path()) as conn:
        try:
            rule = RuleService(SqliteRuleStore(conn)).toggle_rule(rule_id, active)
        except NotFoundError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1) from exc
    typer.echo(f"Rule {rule.id} is now {'active' if rule.active else 'inactive'}.")


@rules_app.command("defaults")
def install_defaults(db_path: Optional[Path] = _db_option()) -> None:
    """Install the built-in duration rules."""
    from .db import SqliteRuleStore, database_connection
    from .rules import RuleService

    with database_connection(db_path or get_db_path()) as conn:
        created = RuleService(SqliteRuleStore(conn)).install_default_rules()
    for rule in created:
        typer.echo(f"Created rule {rule.id} ({rule.name}).")


@rules_app.command("apply")
def apply_stored_rule(
    rule_id: str = typer.Argument(..., help="Rule identifier."),
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Records JSON."),
    db_path: Optional[Path] = _db_option(),
) -> None:
    """Re-rate every activity in INPUT that matches a stored rule."""
    from .db import SqliteRuleStore, database_connection
    from .rules import RuleMutationResult, RuleService, apply_rule

    with database_connection(db_path or get_db_path()) as conn:
        store = SqliteRuleStore(conn)
        try:
            rule = RuleService(store).get_rule(rule_id)
        except NotFoundError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1) from exc
        ratings = apply_rule(rule, _load_records(input_path), store)
    _report_batch(RuleMutationResult(rule, ratings))


@rules_app.command("suggest")
def suggest(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Records JSON."),
    index: int = typer.Option(0, "--index", min=0, help="Record to build suggestions from."),
    rating: int = typer.Option(1, "--rating", min=0, max=1, help="Rating the user assigned."),
) -> None:
    """Suggest rules that would reproduce a manual rating."""
    from .rules import suggest_rules

    records = _load_records(input_path)
    if index >= len(records):
        raise typer.BadParameter(f"INPUT holds only {len(records)} records", param_hint="--index")
    for suggestion in suggest_rules(records[index], rating):
        typer.echo(
            f"{suggestion.name}: {suggestion.rule_type.value} "
            f"{suggestion.condition.value} {suggestion.value!r}"
        )


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = _db_option(),
    config_path: Optional[Path] = _config_option(),
) -> None:
    """Serve the engine over a local HTTP API."""
    from .server_runner import run_server

    run_server(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=_load_settings(config_path),
    )
