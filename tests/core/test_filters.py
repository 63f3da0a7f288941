from __future__ import annotations

from typing import Any

from haystackeval.core import count_eligible, filter_records
from haystackeval.core.filters import apply_rank_filter, apply_score_threshold
from haystackeval.schemas import CandidateRecord, FilterCriteria, ScoreThreshold


def build_record(record_id: str, **kwargs: Any) -> CandidateRecord:
    defaults: dict[str, Any] = {
        "record_id": record_id,
        "name": f"name-{record_id}",
        "group": "Alpha",
    }
    defaults.update(kwargs)
    return CandidateRecord(**defaults)


def ids(records: list[CandidateRecord]) -> list[str]:
    return [record.record_id for record in records]


def test_filter_drops_blank_names_before_other_stages():
    records = [
        build_record("a", name="  "),
        build_record("b", name=""),
        build_record("c"),
    ]

    result = filter_records(records, FilterCriteria(rank_filter="all"))

    assert ids(result) == ["c"]


def test_group_filter_keeps_allowed_labels_only():
    records = [
        build_record("a", group="Alpha"),
        build_record("b", group="Beta"),
        build_record("c", group="Gamma"),
    ]

    result = filter_records(records, FilterCriteria(rank_filter="all", group_filter=["Alpha", "Gamma"]))

    assert ids(result) == ["a", "c"]


def test_group_filter_all_is_noop():
    records = [build_record("a", group="Alpha"), build_record("b", group="Beta")]

    assert ids(filter_records(records, FilterCriteria(rank_filter="all", group_filter="all"))) == ["a", "b"]
    assert ids(filter_records(records, FilterCriteria(rank_filter="all", group_filter=[]))) == ["a", "b"]


def test_rank_filter_variants():
    records = [
        build_record("a", user_rank=None),
        build_record("b", user_rank=2),
        build_record("c", user_rank=""),
        build_record("d", user_rank=0),
    ]

    assert ids(apply_rank_filter(records, "unranked")) == ["a", "c"]
    assert ids(apply_rank_filter(records, "ranked")) == ["b", "d"]
    assert ids(apply_rank_filter(records, "all")) == ["a", "b", "c", "d"]


def test_score_threshold_handles_empty_and_non_numeric_scores():
    records = [
        build_record("empty", external_score=""),
        build_record("low", external_score=10),
        build_record("mid", external_score="55"),
        build_record("bad", external_score="n/a"),
    ]

    full = apply_score_threshold(records, ScoreThreshold())
    narrowed = apply_score_threshold(records, ScoreThreshold(min=50, max=100))

    assert ids(full) == ["empty", "low", "mid"]
    assert ids(narrowed) == ["mid"]


def test_score_threshold_bounds_are_inclusive():
    records = [build_record(str(value), external_score=value) for value in (19, 20, 40, 41)]

    result = apply_score_threshold(records, ScoreThreshold(min=20, max=40))

    assert ids(result) == ["20", "40"]


def test_filter_is_deterministic_and_does_not_mutate_input():
    records = [build_record(str(idx), external_score=idx * 7 % 100) for idx in range(20)]
    snapshot = [record.model_copy() for record in records]
    criteria = FilterCriteria(score_threshold={"min": 10, "max": 80})

    first = filter_records(records, criteria)
    second = filter_records(records, criteria)

    assert ids(first) == ids(second)
    assert records == snapshot
    assert first is not records


def test_count_eligible_matches_filter_without_truncation():
    records = [build_record(str(idx), external_score=idx) for idx in range(30)]
    criteria = FilterCriteria(score_threshold={"min": 5, "max": 100})

    assert count_eligible(records, criteria) == 25
