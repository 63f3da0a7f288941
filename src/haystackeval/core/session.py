"\"\"\"Evaluation session state machine.\"\"\""

from __future__ import annotations

import random
from typing import Callable, Iterable, Sequence

import pendulum
import structlog
from rapidfuzz import process

from ..schemas import CandidateRecord, FilterCriteria
from .filters import count_eligible, filter_records
from .grid import Cell, Grid, GridConfig, assign_cell, cell_of, init_grid, occupy_cell, release_cell
from .models import (
    AttributeKind,
    BatchEntry,
    MassScoreResult,
    NoEligibleRecords,
    RootSummary,
    SavedSessionInfo,
    ScoreEntry,
    ScoreResult,
    Session,
)
from .persistence import SessionRepository, to_epoch_ms
from .reporting import Progress, Results, build_progress, build_results
from .selection import apply_selection

VALID_SCORES = frozenset({0, 1, 2, 3})
DEFAULT_WAVE_SIZE = 6


def matches_attribute(record: CandidateRecord, kind: AttributeKind, value: str) -> bool:
    if not value:
        return False
    slots = record.roots() if kind == "root" else record.classes()
    return value in slots


class EvaluationEngine:
    """Owns session lifecycle: creation, waves, scoring and completion.

    All operations are synchronous. Expected conditions (nothing eligible,
    duplicate scoring, a full grid, no backfill candidate) come back as result
    values rather than exceptions.
    """

    def __init__(
        self,
        repository: SessionRepository,
        *,
        grid_config: GridConfig | None = None,
        batch_size: int | None = None,
        wave_size: int = DEFAULT_WAVE_SIZE,
        now_provider: Callable[[], pendulum.DateTime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._repository = repository
        self._grid_config = grid_config or GridConfig()
        self._batch_size = batch_size or self._grid_config.capacity
        self._wave_size = wave_size
        self._now_provider = now_provider or pendulum.now
        self._rng = rng or random.Random()
        self._logger = structlog.get_logger(__name__)

    @property
    def repository(self) -> SessionRepository:
        return self._repository

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def default_criteria(self) -> FilterCriteria:
        return FilterCriteria()

    def count_eligible(self, records: Sequence[CandidateRecord], criteria: FilterCriteria) -> int:
        return count_eligible(records, criteria)

    def create_session(
        self,
        records: Sequence[CandidateRecord],
        criteria: FilterCriteria,
        *,
        selection_count: int | None = None,
        batch_size: int | None = None,
    ) -> Session | NoEligibleRecords:
        now_ms = self._now_ms()
        if criteria.selection_method == "random" and criteria.random_seed is None:
            criteria = criteria.with_seed(now_ms)

        eligible = filter_records(records, criteria)
        ordered = apply_selection(eligible, criteria.selection_method, criteria.random_seed)
        selected = ordered if selection_count is None else ordered[: max(selection_count, 0)]

        if not selected:
            self._logger.info("session.no_eligible", criteria=criteria.to_config())
            return NoEligibleRecords(
                error="No candidates match the current filters",
                suggestions=self._suggestions(records, criteria),
            )

        self._repository.clear()

        session = Session(
            id=f"eval-{now_ms}",
            selected=list(selected),
            selected_ids=[record.record_id for record in selected],
            batch_size=batch_size or self._batch_size,
            grid=init_grid(self._grid_config),
            criteria=criteria,
            started_at=now_ms,
            selection_count=selection_count,
        )
        self._repository.save(session)
        self._logger.info(
            "session.created",
            session_id=session.id,
            selected=len(session.selected),
            eligible=len(eligible),
            method=criteria.selection_method,
            seed=criteria.random_seed,
        )
        return session

    def get_current_batch(self, session: Session) -> list[CandidateRecord]:
        start = session.current_batch_index * session.batch_size
        window = session.selected[start : start + session.batch_size]
        return [record for record in window if not session.is_processed(record.record_id)]

    def get_next_batch_with_grid_positions(self, session: Session) -> list[BatchEntry]:
        for entry in session.current_batch:
            if entry.cell is not None:
                release_cell(session.grid, entry.cell)
        batch = self._place(session.unprocessed()[: session.batch_size], session.grid)
        session.current_batch = batch
        self._repository.save(session)
        return list(batch)

    def advance_to_next_batch(self, session: Session) -> bool:
        if session.current_batch_index < session.total_waves() - 1:
            session.current_batch_index += 1
            self._repository.save(session)
            self._logger.info(
                "session.wave_advanced",
                session_id=session.id,
                wave=session.current_batch_index + 1,
            )
            return True
        return False

    def score_candidate(self, session: Session, record_id: str, score: int) -> ScoreResult:
        rejection = self._reject_mutation(session, record_id)
        if rejection is not None:
            return rejection
        if score not in VALID_SCORES:
            return ScoreResult(success=False, error=f"Invalid score: {score!r}")

        session.scores[record_id] = ScoreEntry(
            score=score,
            timestamp=self._now_ms(),
            wave_number=session.current_batch_index + 1,
        )
        self._repository.save(session)
        return ScoreResult(success=True, evaluation_complete=self._check_completion(session))

    def skip_candidate(self, session: Session, record_id: str) -> ScoreResult:
        rejection = self._reject_mutation(session, record_id)
        if rejection is not None:
            return rejection

        session.undecided.add(record_id)
        self._repository.save(session)
        return ScoreResult(success=True, evaluation_complete=self._check_completion(session))

    def remove_from_batch(self, session: Session, record_id: str) -> int:
        """Drop a record from the wave without backfilling its cell."""
        entry = session.find_entry(record_id)
        if entry is not None and entry.cell is not None:
            release_cell(session.grid, entry.cell)
        session.current_batch = [item for item in session.current_batch if item.record_id != record_id]
        self._repository.save(session)
        return len(session.current_batch)

    def replace_in_grid(self, session: Session, record_id: str) -> BatchEntry | None:
        """Free the departing record's cell and backfill it with the next candidate."""
        departing = session.find_entry(record_id)
        if departing is None or departing.cell is None:
            return None

        release_cell(session.grid, departing.cell)
        session.current_batch = [item for item in session.current_batch if item.record_id != record_id]

        shown = session.batch_ids()
        replacement = next(
            (
                record
                for record in session.selected
                if not session.is_processed(record.record_id) and record.record_id not in shown
            ),
            None,
        )
        if replacement is None:
            self._repository.save(session)
            return None

        occupy_cell(session.grid, departing.cell, replacement.record_id)
        entry = BatchEntry(record=replacement.model_copy(), cell=departing.cell)
        session.current_batch.append(entry)
        self._repository.save(session)
        return entry

    def mass_score_by_attribute(
        self,
        session: Session,
        kind: AttributeKind,
        value: str,
        score: int,
        dataset: Sequence[CandidateRecord] | None = None,
    ) -> MassScoreResult:
        """Force a score onto every record sharing a root or class tag.

        The scan covers ``dataset`` (the full collection) rather than just the
        session's selection; existing scores are overwritten.
        """
        if session.is_closed:
            return MassScoreResult(
                evaluation_complete=session.completed_at is not None,
                error=f"Session is {session.status}",
            )
        if score not in VALID_SCORES:
            return MassScoreResult(error=f"Invalid score: {score!r}")
        if kind not in ("root", "class"):
            return MassScoreResult(error=f"Unknown attribute kind: {kind!r}")

        candidates = dataset if dataset is not None else session.selected
        now_ms = self._now_ms()
        result = MassScoreResult()

        for record in candidates:
            if not matches_attribute(record, kind, value):
                continue
            if record.record_id in session.scores:
                result.re_scored += 1
            session.undecided.discard(record.record_id)
            session.scores[record.record_id] = ScoreEntry(
                score=score,
                timestamp=now_ms,
                wave_number=session.current_batch_index + 1,
                mass_scored=True,
            )
            result.scored_ids.append(record.record_id)
            result.affected += 1

        scored = set(result.scored_ids)
        for record_id in scored:
            cell = cell_of(session.grid, record_id)
            if cell is not None:
                release_cell(session.grid, cell)
        session.current_batch = [
            entry for entry in session.current_batch if entry.record_id not in scored
        ]

        result.evaluation_complete = self._mark_complete_if_done(session)
        self._repository.save(session)
        self._logger.info(
            "session.mass_scored",
            session_id=session.id,
            kind=kind,
            value=value,
            score=score,
            affected=result.affected,
            re_scored=result.re_scored,
        )
        return result

    def count_by_attribute(
        self,
        kind: AttributeKind,
        value: str,
        dataset: Iterable[CandidateRecord] | None,
    ) -> int:
        return sum(1 for record in dataset or [] if matches_attribute(record, kind, value))

    def get_current_batch_roots(self, session: Session) -> list[RootSummary]:
        summaries: dict[tuple[str, str], RootSummary] = {}
        for entry in session.current_batch:
            for root, cls in entry.record.tag_pairs():
                if not root:
                    continue
                summary = summaries.setdefault((root, cls), RootSummary(root=root, cls=cls, count=0))
                summary.count += 1
        return list(summaries.values())

    def cancel_session(self, session: Session) -> None:
        if session.completed_at is None:
            session.abandoned = True
        self._repository.clear()
        self._logger.info("session.cancelled", session_id=session.id, status=session.status)

    def get_progress(self, session: Session | None) -> Progress:
        return build_progress(session)

    def get_results(self, session: Session | None) -> Results:
        return build_results(session, now_ms=self._now_ms())

    def load_session(self, dataset: Sequence[CandidateRecord]) -> Session | None:
        return self._repository.load(dataset)

    def save_session(self, session: Session) -> bool:
        return self._repository.save(session)

    def clear_session(self) -> None:
        self._repository.clear()

    def has_resumable_session(self) -> bool:
        return self._repository.has_resumable()

    def get_saved_session_info(self) -> SavedSessionInfo | None:
        return self._repository.saved_info()

    # Session-less wave helpers used by the immediate-sync grid.

    def create_grid(self) -> Grid:
        return init_grid(self._grid_config)

    def get_filtered_batch(
        self,
        records: Sequence[CandidateRecord],
        criteria: FilterCriteria,
        current_ids: Iterable[str] | None,
        grid: Grid,
        batch_size: int | None = None,
    ) -> list[BatchEntry]:
        if criteria.selection_method == "random" and criteria.random_seed is None:
            criteria = criteria.with_seed(self._now_ms())
        shown = set(current_ids or [])
        eligible = apply_selection(
            filter_records(records, criteria),
            criteria.selection_method,
            criteria.random_seed,
        )
        eligible = [record for record in eligible if record.record_id not in shown]
        return self._place(eligible[: batch_size or self._wave_size], grid)

    def release_cell(self, grid: Grid, cell: Cell | tuple[int, int]) -> None:
        release_cell(grid, cell)

    def _now_ms(self) -> int:
        return to_epoch_ms(self._now_provider())

    def _place(self, records: Sequence[CandidateRecord], grid: Grid) -> list[BatchEntry]:
        return [
            BatchEntry(
                record=record.model_copy(),
                cell=assign_cell(grid, record.record_id, self._rng),
            )
            for record in records
        ]

    def _reject_mutation(self, session: Session, record_id: str) -> ScoreResult | None:
        if session.completed_at is not None:
            return ScoreResult(success=False, evaluation_complete=True, error="Session already completed")
        if session.abandoned:
            return ScoreResult(success=False, error="Session was abandoned")
        if record_id not in session.selected_ids:
            return ScoreResult(success=False, error="Not in session")
        if record_id in session.scores:
            return ScoreResult(success=False, error="Already scored")
        if record_id in session.undecided:
            return ScoreResult(success=False, error="Already skipped")
        return None

    def _check_completion(self, session: Session) -> bool:
        if self._mark_complete_if_done(session):
            self._repository.save(session)
            return True
        return False

    def _mark_complete_if_done(self, session: Session) -> bool:
        if session.completed_at is not None:
            return True
        if session.processed_count() < len(session.selected_ids):
            return False
        session.completed_at = self._now_ms()
        self._logger.info(
            "session.completed",
            session_id=session.id,
            scored=len(session.scores),
            skipped=len(session.undecided),
        )
        return True

    def _suggestions(
        self,
        records: Sequence[CandidateRecord],
        criteria: FilterCriteria,
    ) -> list[str]:
        suggestions: list[str] = []
        if not criteria.score_threshold.is_full_range:
            suggestions.append("Try expanding the score range")
        if criteria.rank_filter != "all":
            suggestions.append('Include ranked candidates (change rank filter to "all")')
        if criteria.group_filter:
            suggestions.append("Select more groups")
            known_groups = sorted({record.group for record in records if record.group})
            for label in criteria.group_filter:
                if label in known_groups or not known_groups:
                    continue
                match = process.extractOne(label, known_groups, score_cutoff=70)
                if match:
                    suggestions.append(f"Group {label!r} not found; did you mean {match[0]!r}?")
        if not suggestions:
            suggestions.append("Load candidates with a non-empty name")
        return suggestions


__all__ = ["EvaluationEngine", "matches_attribute"]
