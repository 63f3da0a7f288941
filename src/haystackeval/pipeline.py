"\"\"\"Record loading, write-back and the file-driven evaluation pipeline.\"\"\""

from __future__ import annotations

import json
import re
from dataclasses import asdict
from pathlib import Path
from typing import Any, Sequence

import pendulum
import structlog
from pydantic import BaseModel, ValidationError

from . import __version__
from .core import EvaluationEngine, NoEligibleRecords, Session
from .core.grid import Cell
from .core.models import AttributeKind
from .schemas import CandidateRecord, FilterCriteria

_RATING_SUFFIX = re.compile(r"\s+(T[123]|Blocked)$", re.IGNORECASE)


def base_group(group: str) -> str:
    """Strip a trailing rating suffix such as ``" T2"`` or ``" Blocked"``."""
    if not group:
        return ""
    return _RATING_SUFFIX.sub("", group)


def group_with_rating(base: str, score: int | None) -> str:
    if not base:
        return base
    if score == 0:
        return f"{base} Blocked"
    if score in (1, 2, 3):
        return f"{base} T{score}"
    return base


def apply_rating(
    records: Sequence[CandidateRecord],
    record_id: str,
    score: int | None,
) -> list[CandidateRecord]:
    """Reflect a rating into the record store.

    The target gets the new rank, a rated group label and the id derived from
    it; records linking to the old id are repointed. ``score=None`` clears the
    rating.
    """
    target = next((record for record in records if record.record_id == record_id), None)
    if target is None:
        return list(records)

    new_group = group_with_rating(base_group(target.group), score)
    new_id = f"{new_group}-{target.name}"

    updated: list[CandidateRecord] = []
    for record in records:
        if record.record_id == record_id:
            updated.append(
                record.model_copy(
                    update={"group": new_group, "record_id": new_id, "user_rank": score}
                )
            )
        elif record.linked_id == record_id:
            updated.append(record.model_copy(update={"linked_id": new_id}))
        else:
            updated.append(record)
    return updated


class RecordLoadError(ValueError):
    """Raised when record loading encounters invalid rows."""

    def __init__(self, errors: list[str], partial: list[CandidateRecord]):
        super().__init__("Record loading failed")
        self.errors = errors
        self.partial = partial

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"Record loading failed: {self.errors}"


class NoActiveSessionError(ValueError):
    """Raised when a command needs a resumable session and none is stored."""


class RecordLoader:
    """Load candidate records from JSONL."""

    def load(self, path: Path) -> list[CandidateRecord]:
        records: list[CandidateRecord] = []
        errors: list[str] = []
        seen: set[str] = set()
        with path.open("r", encoding="utf-8") as handle:
            for idx, line in enumerate(handle, start=1):
                raw = line.strip()
                if not raw:
                    continue
                try:
                    payload = json.loads(raw)
                except json.JSONDecodeError as exc:
                    errors.append(f"line {idx}: invalid JSON ({exc})")
                    continue
                if not isinstance(payload, dict):
                    errors.append(f"line {idx}: expected an object")
                    continue
                try:
                    record = CandidateRecord.model_validate(payload)
                except ValidationError as exc:
                    errors.append(f"line {idx}: {exc.errors()[0]['msg']}")
                    continue
                if record.record_id in seen:
                    errors.append(f"line {idx}: duplicate id {record.record_id!r}")
                    continue
                seen.add(record.record_id)
                records.append(record)
        if errors:
            raise RecordLoadError(errors, records)
        return records


class OutputWriter:
    """Persist summaries and record exports."""

    def write(self, path: Path, payload: dict | list[dict]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, default=_json_default),
            encoding="utf-8",
        )

    def write_records(self, path: Path, records: Sequence[CandidateRecord]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            for record in records:
                handle.write(json.dumps(record.model_dump(by_alias=True), ensure_ascii=False))
                handle.write("\n")


class AuditLogger:
    """Append-only audit logger writing JSON lines."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: dict) -> None:
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False, default=_json_default))
            handle.write("\n")


class EvaluationPipeline:
    """Run engine operations against a JSONL record file.

    Every call reloads the records and resumes the stored session, so each
    CLI invocation is independent.
    """

    def __init__(
        self,
        *,
        engine: EvaluationEngine,
        loader: RecordLoader | None = None,
        writer: OutputWriter | None = None,
        results_dir: Path | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._engine = engine
        self._audit_logger = audit_logger
        self._loader = loader or RecordLoader()
        self._writer = writer or OutputWriter()
        self._results_dir = results_dir
        self._logger = structlog.get_logger(__name__)

    @property
    def engine(self) -> EvaluationEngine:
        return self._engine

    def load_records(self, path: Path) -> list[CandidateRecord]:
        try:
            return self._loader.load(path)
        except RecordLoadError as exc:
            self._logger.warning("records.partial_load", path=str(path), errors=exc.errors)
            return exc.partial

    def count(self, records_path: Path, criteria: FilterCriteria) -> dict[str, Any]:
        records = self.load_records(records_path)
        return {
            "eligible": self._engine.count_eligible(records, criteria),
            "total": len(records),
        }

    def start(
        self,
        records_path: Path,
        criteria: FilterCriteria,
        *,
        selection_count: int | None = None,
        batch_size: int | None = None,
    ) -> dict[str, Any]:
        records = self.load_records(records_path)
        outcome = self._engine.create_session(
            records,
            criteria,
            selection_count=selection_count,
            batch_size=batch_size,
        )
        if isinstance(outcome, NoEligibleRecords):
            return {"error": outcome.error, "suggestions": outcome.suggestions}
        return self._summary(outcome)

    def status(self, records_path: Path | None = None) -> dict[str, Any]:
        info = self._engine.get_saved_session_info()
        payload: dict[str, Any] = {
            "resumable": self._engine.has_resumable_session(),
            "saved": asdict(info) if info else None,
        }
        if records_path is not None and info is not None:
            session = self._engine.load_session(self.load_records(records_path))
            payload["session"] = self._summary(session) if session else None
        return payload

    def next_batch(self, records_path: Path) -> dict[str, Any]:
        _, session = self._resume(records_path)
        batch = self._engine.get_next_batch_with_grid_positions(session)
        return {
            "session_id": session.id,
            "wave": session.current_batch_index + 1,
            "batch": [_entry_payload(entry.record, entry.cell) for entry in batch],
            "roots": [asdict(summary) for summary in self._engine.get_current_batch_roots(session)],
        }

    def score(self, records_path: Path, record_id: str, score: int, *, replace: bool = False) -> dict[str, Any]:
        _, session = self._resume(records_path)
        result = self._engine.score_candidate(session, record_id, score)
        self._audit("score", session, record_id=record_id, score=score, success=result.success, error=result.error)
        return self._after_decision(session, record_id, asdict(result), result.success, replace)

    def skip(self, records_path: Path, record_id: str, *, replace: bool = False) -> dict[str, Any]:
        _, session = self._resume(records_path)
        result = self._engine.skip_candidate(session, record_id)
        self._audit("skip", session, record_id=record_id, success=result.success, error=result.error)
        return self._after_decision(session, record_id, asdict(result), result.success, replace)

    def mass_score(
        self,
        records_path: Path,
        kind: AttributeKind,
        value: str,
        score: int,
    ) -> dict[str, Any]:
        records, session = self._resume(records_path)
        result = self._engine.mass_score_by_attribute(session, kind, value, score, records)
        self._audit(
            "mass_score",
            session,
            kind=kind,
            value=value,
            score=score,
            scored_ids=result.scored_ids,
            error=result.error,
        )
        payload = asdict(result)
        if result.evaluation_complete:
            payload["results_path"] = self._write_results(session)
        return payload

    def advance(self, records_path: Path) -> dict[str, Any]:
        _, session = self._resume(records_path)
        advanced = self._engine.advance_to_next_batch(session)
        return {
            "advanced": advanced,
            "wave": session.current_batch_index + 1,
            "batch": [record.record_id for record in self._engine.get_current_batch(session)],
        }

    def progress(self, records_path: Path) -> dict[str, Any]:
        _, session = self._resume(records_path)
        return asdict(self._engine.get_progress(session))

    def results(self, records_path: Path, output_path: Path | None = None) -> dict[str, Any]:
        _, session = self._resume(records_path)
        payload = self._results_payload(session)
        if output_path is not None:
            self._writer.write(output_path, payload)
        return payload

    def export(self, records_path: Path, output_path: Path) -> dict[str, Any]:
        """Write the record file with every session score applied."""
        records, session = self._resume(records_path)
        for record_id, entry in session.scores.items():
            records = apply_rating(records, record_id, entry.score)
        self._writer.write_records(output_path, records)
        return {"exported": len(records), "rated": len(session.scores), "output": str(output_path)}

    def cancel(self, records_path: Path) -> dict[str, Any]:
        records = self.load_records(records_path)
        session = self._engine.load_session(records)
        if session is None:
            self._engine.clear_session()
            return {"cancelled": None}
        self._engine.cancel_session(session)
        return {"cancelled": session.id, "status": session.status}

    def _resume(self, records_path: Path) -> tuple[list[CandidateRecord], Session]:
        records = self.load_records(records_path)
        session = self._engine.load_session(records)
        if session is None:
            raise NoActiveSessionError("No resumable evaluation session; run 'start' first")
        return records, session

    def _after_decision(
        self,
        session: Session,
        record_id: str,
        payload: dict[str, Any],
        success: bool,
        replace: bool,
    ) -> dict[str, Any]:
        if success and session.find_entry(record_id) is not None:
            if replace:
                entry = self._engine.replace_in_grid(session, record_id)
                payload["replacement"] = _entry_payload(entry.record, entry.cell) if entry else None
            else:
                payload["remaining_in_batch"] = self._engine.remove_from_batch(session, record_id)
        if payload.get("evaluation_complete") and success:
            payload["results_path"] = self._write_results(session)
        return payload

    def _audit(self, action: str, session: Session, **details: Any) -> None:
        if self._audit_logger is None:
            return
        self._audit_logger.append(
            {
                "action": action,
                "session_id": session.id,
                "wave": session.current_batch_index + 1,
                "timestamp": pendulum.now().to_iso8601_string(),
                **details,
            }
        )

    def _write_results(self, session: Session) -> str | None:
        if self._results_dir is None:
            return None
        path = self._results_dir / f"results-{session.id}.json"
        self._writer.write(path, self._results_payload(session))
        self._logger.info("results.written", session_id=session.id, path=str(path))
        return str(path)

    def _results_payload(self, session: Session) -> dict[str, Any]:
        results = self._engine.get_results(session)
        return {
            "metadata": {
                "session_id": session.id,
                "criteria": session.criteria.to_config(),
                "timestamp": pendulum.now().to_iso8601_string(),
                "app_version": __version__,
            },
            "progress": asdict(self._engine.get_progress(session)),
            "distribution": {str(score): count for score, count in results.distribution.items()},
            "undecided_count": results.undecided_count,
            "total_scored": results.total_scored,
            "duration_ms": results.duration_ms,
            "scored": [
                {
                    "id": item.record.record_id,
                    "name": item.record.name,
                    "group": item.record.group,
                    "score": item.score,
                    "timestamp": item.timestamp,
                    "wave": item.wave_number,
                    "mass_scored": item.mass_scored,
                }
                for item in results.scored_records
            ],
            "undecided": [record.record_id for record in results.undecided_records],
        }

    def _summary(self, session: Session) -> dict[str, Any]:
        return {
            "session_id": session.id,
            "status": session.status,
            "selected": len(session.selected_ids),
            "batch_size": session.batch_size,
            "criteria": session.criteria.to_config(),
            "progress": asdict(self._engine.get_progress(session)),
        }


def _entry_payload(record: CandidateRecord, cell: Cell | None) -> dict[str, Any]:
    return {
        "id": record.record_id,
        "name": record.name,
        "group": record.group,
        "external_score": record.external_score,
        "grid_row": cell.row if cell else None,
        "grid_col": cell.col if cell else None,
    }


def _json_default(value: Any) -> Any:
    if isinstance(value, pendulum.DateTime):
        return value.to_iso8601_string()
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
