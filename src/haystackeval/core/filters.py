"\"\"\"Record filter pipeline.\"\"\""

from __future__ import annotations

from typing import Iterable, Sequence

from ..schemas import CandidateRecord, FilterCriteria, ScoreThreshold, is_empty


def has_name(record: CandidateRecord) -> bool:
    return not is_empty(record.name)


def apply_group_filter(
    records: Sequence[CandidateRecord],
    group_filter: Iterable[str] | None,
) -> list[CandidateRecord]:
    allowed = set(group_filter or ())
    if not allowed:
        return list(records)
    return [record for record in records if record.group in allowed]


def apply_rank_filter(
    records: Sequence[CandidateRecord],
    rank_filter: str,
) -> list[CandidateRecord]:
    if rank_filter == "unranked":
        return [record for record in records if is_empty(record.user_rank)]
    if rank_filter == "ranked":
        return [record for record in records if not is_empty(record.user_rank)]
    return list(records)


def apply_score_threshold(
    records: Sequence[CandidateRecord],
    threshold: ScoreThreshold | None,
) -> list[CandidateRecord]:
    if threshold is None:
        return list(records)

    selected: list[CandidateRecord] = []
    for record in records:
        if is_empty(record.external_score):
            # Unscored records only survive the unrestricted range.
            if threshold.is_full_range:
                selected.append(record)
            continue
        value = record.numeric_score
        if value is not None and threshold.contains(value):
            selected.append(record)
    return selected


def filter_records(
    records: Sequence[CandidateRecord],
    criteria: FilterCriteria,
) -> list[CandidateRecord]:
    """Apply name, group, rank and score filters in that order."""

    candidates = [record for record in records if has_name(record)]
    candidates = apply_group_filter(candidates, criteria.group_filter)
    candidates = apply_rank_filter(candidates, criteria.rank_filter)
    return apply_score_threshold(candidates, criteria.score_threshold)


def count_eligible(records: Sequence[CandidateRecord], criteria: FilterCriteria) -> int:
    """Count filtered records without ordering or truncation."""
    return len(filter_records(records, criteria))


__all__ = [
    "apply_group_filter",
    "apply_rank_filter",
    "apply_score_threshold",
    "count_eligible",
    "filter_records",
    "has_name",
]
