"""Command-line interface for acctsync."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

import typer
import yaml
from dotenv import load_dotenv

from .comparator import compare as compare_records
from .config import SyncConfig, load_config
from .exceptions import AcctSyncError
from .logger import setup_logger
from .models import AccountRecord, Decision, ReconciliationPlan
from .reconcile import plan_reconciliation

app = typer.Typer(
    name="acctsync",
    help="Reconcile CRM accounts between a source and a destination org",
    add_completion=False,
)


class _State:
    """Options shared by all commands."""

    def __init__(self) -> None:
        self.config_path: Path | None = None


_state = _State()


class _RecordLoader(yaml.SafeLoader):
    """SafeLoader that reads account field values verbatim.

    Only null survives implicit typing; `NO`, `0123` and timestamps stay strings.
    """


_KEPT_RESOLVERS = {"tag:yaml.org,2002:null", "tag:yaml.org,2002:merge"}

_RecordLoader.yaml_implicit_resolvers = {
    first_char: [(tag, regexp) for tag, regexp in resolvers if tag in _KEPT_RESOLVERS]
    for first_char, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

_DECISION_TEXT = {
    Decision.A_IS_NEWER: "A is newer",
    Decision.B_IS_NEWER: "B is newer",
    Decision.UNDECIDED: "undecided",
}


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=silent (default), 1=show changes, 2=show all checks, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to config file (default: $ACCTSYNC_CONFIG or acctsync_config.yaml)",
        ),
    ] = None,
) -> None:
    """Global options for acctsync commands."""
    load_dotenv()
    setup_logger(verbose)
    _state.config_path = config


def _load_config() -> SyncConfig:
    try:
        return load_config(_state.config_path)
    except AcctSyncError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None


def _read_yaml(path: Path) -> Any:
    try:
        with path.open(encoding="utf-8") as f:
            return yaml.load(f, Loader=_RecordLoader)  # noqa: S506 - SafeLoader subclass
    except (OSError, yaml.YAMLError) as e:
        typer.echo(f"Error: cannot read {path}: {e}", err=True)
        raise typer.Exit(1) from None


def _load_record(path: Path) -> AccountRecord:
    data = _read_yaml(path)
    if not isinstance(data, dict):
        typer.echo(f"Error: {path} must contain a single account mapping", err=True)
        raise typer.Exit(1)
    return AccountRecord.from_mapping(data)


def _load_records(path: Path) -> list[AccountRecord]:
    data = _read_yaml(path)
    if data is None:
        return []
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        typer.echo(f"Error: {path} must contain a list of account mappings", err=True)
        raise typer.Exit(1)
    return [AccountRecord.from_mapping(item) for item in data]


def _plan_to_dict(plan: ReconciliationPlan) -> dict[str, Any]:
    return {
        "summary": plan.summary(),
        "changes": [
            {"key": change.key, "action": change.action.value, "reason": change.reason}
            for change in plan.changes
        ],
    }


@app.command()
def compare(
    record_a: Annotated[Path, typer.Argument(help="YAML/JSON file with account A")],
    record_b: Annotated[Path, typer.Argument(help="YAML/JSON file with account B")],
) -> None:
    """Tell which of two account snapshots was touched last."""
    config = _load_config()
    account_a = _load_record(record_a)
    account_b = _load_record(record_b)
    try:
        decision = compare_records(
            account_a, account_b, field=config.reconcile.timestamp_field
        )
    except AcctSyncError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    typer.echo(_DECISION_TEXT[decision])


@app.command()
def plan(
    source: Annotated[Path, typer.Argument(help="YAML/JSON list of source org accounts")],
    destination: Annotated[
        Path, typer.Argument(help="YAML/JSON list of destination org accounts")
    ],
    *,
    as_json: Annotated[bool, typer.Option("--json", help="Emit the plan as JSON")] = False,
) -> None:
    """Show what a sync would do with each source account."""
    config = _load_config()
    try:
        result = plan_reconciliation(
            _load_records(source),
            _load_records(destination),
            record_filter=config.record_filter(),
            key_field=config.reconcile.key_field,
            timestamp_field=config.reconcile.timestamp_field,
        )
    except AcctSyncError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if as_json:
        typer.echo(json.dumps(_plan_to_dict(result), indent=2))
        return

    for change in result.changes:
        typer.echo(f"{change.action.value:<10} {change.key}: {change.reason}")
    summary = ", ".join(f"{action}={count}" for action, count in result.summary().items())
    typer.echo(f"Summary: {summary}")


@app.command("check-config")
def check_config() -> None:
    """Validate the config file and print the effective settings."""
    config = _load_config()
    typer.echo(yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False), nl=False)
    typer.echo(f"Filter: {config.record_filter().describe()}")


def main() -> None:
    """Entry point for the acctsync console script."""
    app()


if __name__ == "__main__":
    main()
