"\"\"\"Typer CLI entrypoint for evaluation sessions.\"\"\""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import ValidationError

from .config import ConfigManager
from .container import create_container
from .logging import configure_logging
from .pipeline import AuditLogger, EvaluationPipeline, NoActiveSessionError
from .schemas import FilterCriteria

app = typer.Typer(help="Grid-based candidate evaluation CLI.")

RecordsOption = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Records JSONL path.")


@app.callback()
def main_options(
    ctx: typer.Context,
    state_dir: Optional[Path] = typer.Option(None, file_okay=False, help="Directory holding the saved session."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: str = typer.Option("WARNING", help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
) -> None:
    """Shared options for every command."""
    configure_logging(log_level)

    settings: dict[str, Any] = {}
    if config:
        try:
            settings = ConfigManager.from_file(config).to_settings()
        except ValidationError as exc:
            raise typer.BadParameter(f"Invalid config: {exc}", param_name="config") from exc

    container = create_container(settings=settings, state_dir=state_dir)
    ctx.obj = container.pipeline(audit_logger=AuditLogger(audit_log) if audit_log else None)


def _pipeline(ctx: typer.Context) -> EvaluationPipeline:
    return ctx.obj


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _build_criteria(
    rank_filter: str,
    groups: list[str] | None,
    score_min: int,
    score_max: int,
    method: str,
    seed: int | None,
) -> FilterCriteria:
    try:
        return FilterCriteria(
            rank_filter=rank_filter,
            group_filter=groups or None,
            score_threshold={"min": score_min, "max": score_max},
            selection_method=method,
            random_seed=seed,
        )
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _run(action) -> None:
    try:
        payload = action()
    except NoActiveSessionError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    _emit(payload)


@app.command()
def count(
    ctx: typer.Context,
    records: Path = RecordsOption,
    rank_filter: str = typer.Option("unranked", help="unranked | ranked | all"),
    group: Optional[List[str]] = typer.Option(None, help="Allowed group label (repeatable)."),
    score_min: int = typer.Option(0, help="Minimum external score."),
    score_max: int = typer.Option(100, help="Maximum external score."),
) -> None:
    """Preview how many records pass the filters."""
    criteria = _build_criteria(rank_filter, group, score_min, score_max, "top-score", None)
    _emit(_pipeline(ctx).count(records, criteria))


@app.command()
def start(
    ctx: typer.Context,
    records: Path = RecordsOption,
    rank_filter: str = typer.Option("unranked", help="unranked | ranked | all"),
    group: Optional[List[str]] = typer.Option(None, help="Allowed group label (repeatable)."),
    score_min: int = typer.Option(0, help="Minimum external score."),
    score_max: int = typer.Option(100, help="Maximum external score."),
    method: str = typer.Option("top-score", help="top-score | bottom-score | random"),
    seed: Optional[int] = typer.Option(None, help="Random seed for reproducible selection."),
    selection_count: Optional[int] = typer.Option(None, min=1, help="Maximum records in the session."),
    batch_size: Optional[int] = typer.Option(None, min=1, help="Records per wave (defaults to grid capacity)."),
) -> None:
    """Start a new session, replacing any saved one."""
    criteria = _build_criteria(rank_filter, group, score_min, score_max, method, seed)
    payload = _pipeline(ctx).start(
        records,
        criteria,
        selection_count=selection_count,
        batch_size=batch_size,
    )
    _emit(payload)
    if "error" in payload:
        raise typer.Exit(code=2)


@app.command()
def status(
    ctx: typer.Context,
    records: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="Records JSONL path."),
) -> None:
    """Show whether a resumable session is saved."""
    _emit(_pipeline(ctx).status(records))


@app.command()
def batch(ctx: typer.Context, records: Path = RecordsOption) -> None:
    """Place the next wave of records on the grid."""
    _run(lambda: _pipeline(ctx).next_batch(records))


@app.command()
def score(
    ctx: typer.Context,
    record_id: str = typer.Argument(..., help="Record id."),
    value: int = typer.Argument(..., min=0, max=3, help="Score 0-3."),
    records: Path = RecordsOption,
    replace: bool = typer.Option(False, help="Backfill the freed grid cell immediately."),
) -> None:
    """Score one record."""
    _run(lambda: _pipeline(ctx).score(records, record_id, value, replace=replace))


@app.command()
def skip(
    ctx: typer.Context,
    record_id: str = typer.Argument(..., help="Record id."),
    records: Path = RecordsOption,
    replace: bool = typer.Option(False, help="Backfill the freed grid cell immediately."),
) -> None:
    """Mark one record as undecided."""
    _run(lambda: _pipeline(ctx).skip(records, record_id, replace=replace))


@app.command("mass-score")
def mass_score(
    ctx: typer.Context,
    kind: str = typer.Option(..., help="root | class"),
    value: str = typer.Option(..., help="Tag value to match."),
    score_value: int = typer.Option(..., "--score", min=0, max=3, help="Score 0-3."),
    records: Path = RecordsOption,
) -> None:
    """Score every record sharing a root or class tag."""
    if kind not in ("root", "class"):
        raise typer.BadParameter("kind must be 'root' or 'class'", param_name="kind")
    _run(lambda: _pipeline(ctx).mass_score(records, kind, value, score_value))


@app.command()
def advance(ctx: typer.Context, records: Path = RecordsOption) -> None:
    """Move to the next wave."""
    _run(lambda: _pipeline(ctx).advance(records))


@app.command()
def progress(ctx: typer.Context, records: Path = RecordsOption) -> None:
    """Show progress counts."""
    _run(lambda: _pipeline(ctx).progress(records))


@app.command()
def results(
    ctx: typer.Context,
    records: Path = RecordsOption,
    output: Optional[Path] = typer.Option(None, dir_okay=False, resolve_path=True, help="Results JSON path."),
) -> None:
    """Summarise scores of the active session."""
    _run(lambda: _pipeline(ctx).results(records, output))


@app.command()
def export(
    ctx: typer.Context,
    records: Path = RecordsOption,
    output: Path = typer.Option(..., dir_okay=False, resolve_path=True, help="Rated records JSONL path."),
) -> None:
    """Write the records with session ratings applied."""
    _run(lambda: _pipeline(ctx).export(records, output))


@app.command()
def cancel(ctx: typer.Context, records: Path = RecordsOption) -> None:
    """Abandon the saved session."""
    _emit(_pipeline(ctx).cancel(records))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
