"\"\"\"Read-only progress and results views of a session.\"\"\""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from ..schemas import CandidateRecord
from .models import Session

SCORE_LEVELS = (0, 1, 2, 3)


@dataclass(slots=True)
class Progress:
    total: int = 0
    scored: int = 0
    skipped: int = 0
    remaining: int = 0
    current_wave: int = 0
    total_waves: int = 0
    percent_complete: int = 0


@dataclass(slots=True)
class ScoredRecord:
    record: CandidateRecord
    score: int
    timestamp: int
    wave_number: int
    mass_scored: bool = False


@dataclass(slots=True)
class Results:
    distribution: dict[int, int] = field(default_factory=lambda: dict.fromkeys(SCORE_LEVELS, 0))
    undecided_count: int = 0
    total_scored: int = 0
    duration_ms: int = 0
    scored_records: list[ScoredRecord] = field(default_factory=list)
    undecided_records: list[CandidateRecord] = field(default_factory=list)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def build_progress(session: Session | None) -> Progress:
    if session is None:
        return Progress()

    total = len(session.selected_ids)
    scored = sum(1 for record_id in session.selected_ids if record_id in session.scores)
    skipped = sum(1 for record_id in session.selected_ids if record_id in session.undecided)
    percent = _round_half_up((scored + skipped) / total * 100) if total else 0

    return Progress(
        total=total,
        scored=scored,
        skipped=skipped,
        remaining=total - scored - skipped,
        current_wave=session.current_batch_index + 1,
        total_waves=-(-total // session.batch_size) if session.batch_size else 0,
        percent_complete=percent,
    )


def build_results(session: Session | None, *, now_ms: int) -> Results:
    """Summarise scores; scored records are sorted by score, highest first."""

    if session is None:
        return Results()

    distribution = dict.fromkeys(SCORE_LEVELS, 0)
    for entry in session.scores.values():
        distribution[entry.score] = distribution.get(entry.score, 0) + 1

    by_id = {record.record_id: record for record in session.selected}
    scored_records = [
        ScoredRecord(
            record=by_id[record_id],
            score=entry.score,
            timestamp=entry.timestamp,
            wave_number=entry.wave_number,
            mass_scored=entry.mass_scored,
        )
        for record_id, entry in session.scores.items()
        if record_id in by_id
    ]
    scored_records.sort(key=lambda item: item.score, reverse=True)

    undecided_records = [
        record for record in session.selected if record.record_id in session.undecided
    ]
    finished = session.completed_at if session.completed_at is not None else now_ms

    return Results(
        distribution=distribution,
        undecided_count=len(session.undecided),
        total_scored=len(session.scores),
        duration_ms=finished - session.started_at,
        scored_records=scored_records,
        undecided_records=undecided_records,
    )


__all__ = ["Progress", "Results", "ScoredRecord", "build_progress", "build_results"]
