"\"\"\"Core evaluation engine components.\"\"\""

from __future__ import annotations

from .filters import count_eligible, filter_records
from .grid import Cell, Grid, GridConfig, assign_cell, cell_of, init_grid, release_cell
from .models import (
    BatchEntry,
    MassScoreResult,
    NoEligibleRecords,
    RootSummary,
    SavedSessionInfo,
    ScoreEntry,
    ScoreResult,
    Session,
)
from .persistence import SessionRepository
from .reporting import Progress, Results, ScoredRecord
from .selection import Mulberry32, apply_selection, seeded_shuffle
from .session import EvaluationEngine

__all__ = [
    "BatchEntry",
    "Cell",
    "EvaluationEngine",
    "Grid",
    "GridConfig",
    "MassScoreResult",
    "Mulberry32",
    "NoEligibleRecords",
    "Progress",
    "Results",
    "RootSummary",
    "SavedSessionInfo",
    "ScoreEntry",
    "ScoreResult",
    "ScoredRecord",
    "Session",
    "SessionRepository",
    "apply_selection",
    "assign_cell",
    "cell_of",
    "count_eligible",
    "filter_records",
    "init_grid",
    "release_cell",
    "seeded_shuffle",
]
