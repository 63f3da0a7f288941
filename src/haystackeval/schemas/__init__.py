"\"\"\"Pydantic schema definitions for records, criteria and configuration.\"\"\""

from __future__ import annotations

from .criteria import FilterCriteria, RankFilter, ScoreThreshold, SelectionMethod
from .record import CandidateRecord, is_empty, parse_numeric

__all__ = [
    "CandidateRecord",
    "FilterCriteria",
    "RankFilter",
    "ScoreThreshold",
    "SelectionMethod",
    "is_empty",
    "parse_numeric",
]
