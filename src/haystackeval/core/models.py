"\"\"\"Session state and operation result types.\"\"\""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from ..schemas import CandidateRecord, FilterCriteria
from .grid import Cell, Grid

SessionStatus = Literal["created", "active", "completed", "abandoned"]
AttributeKind = Literal["root", "class"]


@dataclass(slots=True)
class ScoreEntry:
    """A single rating decision."""

    score: int
    timestamp: int
    wave_number: int
    mass_scored: bool = False


@dataclass(slots=True)
class BatchEntry:
    """Record copy currently shown on the grid."""

    record: CandidateRecord
    cell: Cell | None = None

    @property
    def record_id(self) -> str:
        return self.record.record_id


@dataclass
class Session:
    """Mutable state of one evaluation run."""

    id: str
    selected: list[CandidateRecord]
    selected_ids: list[str]
    batch_size: int
    grid: Grid
    criteria: FilterCriteria
    started_at: int
    selection_count: int | None = None
    current_batch_index: int = 0
    current_batch: list[BatchEntry] = field(default_factory=list)
    scores: dict[str, ScoreEntry] = field(default_factory=dict)
    undecided: set[str] = field(default_factory=set)
    completed_at: int | None = None
    abandoned: bool = False

    @property
    def status(self) -> SessionStatus:
        if self.completed_at is not None:
            return "completed"
        if self.abandoned:
            return "abandoned"
        if self.scores or self.undecided or self.current_batch or self.current_batch_index:
            return "active"
        return "created"

    @property
    def is_closed(self) -> bool:
        return self.completed_at is not None or self.abandoned

    def is_processed(self, record_id: str) -> bool:
        return record_id in self.scores or record_id in self.undecided

    def processed_count(self) -> int:
        return sum(1 for record_id in self.selected_ids if self.is_processed(record_id))

    def unprocessed(self) -> list[CandidateRecord]:
        return [record for record in self.selected if not self.is_processed(record.record_id)]

    def batch_ids(self) -> set[str]:
        return {entry.record_id for entry in self.current_batch}

    def find_entry(self, record_id: str) -> BatchEntry | None:
        for entry in self.current_batch:
            if entry.record_id == record_id:
                return entry
        return None

    def total_waves(self) -> int:
        if not self.batch_size:
            return 0
        return -(-len(self.selected) // self.batch_size)


@dataclass(slots=True)
class ScoreResult:
    success: bool
    evaluation_complete: bool = False
    error: str | None = None


@dataclass(slots=True)
class MassScoreResult:
    affected: int = 0
    re_scored: int = 0
    scored_ids: list[str] = field(default_factory=list)
    evaluation_complete: bool = False
    error: str | None = None


@dataclass(slots=True)
class NoEligibleRecords:
    """Returned instead of a session when the filters leave nothing to rate."""

    error: str
    suggestions: list[str]
    eligible_count: int = 0


@dataclass(slots=True)
class RootSummary:
    root: str
    cls: str
    count: int


@dataclass(slots=True)
class SavedSessionInfo:
    scored: int
    total: int
    last_saved: int | None
    config: dict


__all__ = [
    "AttributeKind",
    "BatchEntry",
    "MassScoreResult",
    "NoEligibleRecords",
    "RootSummary",
    "SavedSessionInfo",
    "ScoreEntry",
    "ScoreResult",
    "Session",
    "SessionStatus",
]
