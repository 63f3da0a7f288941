from __future__ import annotations

import json
from pathlib import Path

import pytest

from haystackeval.pipeline import (
    OutputWriter,
    RecordLoadError,
    RecordLoader,
    apply_rating,
    base_group,
    group_with_rating,
)
from haystackeval.schemas import CandidateRecord


def test_record_loader_raises_on_invalid_json(tmp_path: Path):
    path = tmp_path / "records.jsonl"
    path.write_text('{"ID_xA": "a"}\n{invalid}', encoding="utf-8")

    with pytest.raises(RecordLoadError) as exc:
        RecordLoader().load(path)
    assert "invalid JSON" in str(exc.value)
    assert [record.record_id for record in exc.value.partial] == ["a"]


def test_record_loader_skips_invalid_and_reports(tmp_path: Path):
    path = tmp_path / "records.jsonl"
    rows = [
        {"ID_xA": "a", "Node_xA": "n1"},
        {"Node_xA": "missing id"},
        ["not", "an", "object"],
        {"ID_xA": "a", "Node_xA": "dup"},
        {"ID_xA": "b", "Rank_xB": 7},
    ]
    path.write_text("\n".join(json.dumps(row) for row in rows) + "\n\n", encoding="utf-8")

    with pytest.raises(RecordLoadError) as exc:
        RecordLoader().load(path)
    error = exc.value
    assert len(error.errors) == 4
    assert error.errors[0].startswith("line 2:")
    assert "expected an object" in error.errors[1]
    assert "duplicate id 'a'" in error.errors[2]
    assert [record.name for record in error.partial] == ["n1"]


def test_record_loader_accepts_clean_file(tmp_path: Path):
    path = tmp_path / "records.jsonl"
    path.write_text('{"ID_xA": "a", "AI_Rank_xB": 40}\n{"ID_xA": "b"}\n', encoding="utf-8")

    records = RecordLoader().load(path)

    assert [record.record_id for record in records] == ["a", "b"]


@pytest.mark.parametrize(
    ("group", "expected"),
    [
        ("Alpha T2", "Alpha"),
        ("Alpha blocked", "Alpha"),
        ("Team T4", "Team T4"),
        ("AlphaT1", "AlphaT1"),
        ("", ""),
    ],
)
def test_base_group_strips_rating_suffix(group: str, expected: str):
    assert base_group(group) == expected


def test_group_with_rating_labels():
    assert group_with_rating("Alpha", 0) == "Alpha Blocked"
    assert group_with_rating("Alpha", 3) == "Alpha T3"
    assert group_with_rating("Alpha", None) == "Alpha"
    assert group_with_rating("", 2) == ""


def test_apply_rating_rewrites_id_and_links():
    records = [
        CandidateRecord(record_id="Alpha T1-n1", name="n1", group="Alpha T1", user_rank=1),
        CandidateRecord(record_id="Beta-n2", name="n2", group="Beta", linked_id="Alpha T1-n1"),
        CandidateRecord(record_id="Beta-n3", name="n3", group="Beta"),
    ]

    updated = apply_rating(records, "Alpha T1-n1", 0)

    assert updated[0].record_id == "Alpha Blocked-n1"
    assert updated[0].group == "Alpha Blocked"
    assert updated[0].user_rank == 0
    assert updated[1].linked_id == "Alpha Blocked-n1"
    assert updated[2] is records[2]
    assert records[0].record_id == "Alpha T1-n1"

    cleared = apply_rating(updated, "Alpha Blocked-n1", None)
    assert cleared[0].record_id == "Alpha-n1"
    assert cleared[0].user_rank is None


def test_apply_rating_unknown_id_is_noop():
    records = [CandidateRecord(record_id="a", name="n", group="G")]

    assert apply_rating(records, "missing", 2) == records


def test_output_writer_writes_aliased_jsonl(tmp_path: Path):
    path = tmp_path / "nested" / "out.jsonl"
    record = CandidateRecord.model_validate({"ID_xA": "a", "Group_xA": "Alpha", "Extra": 1})

    OutputWriter().write_records(path, [record])

    row = json.loads(path.read_text(encoding="utf-8").strip())
    assert row["ID_xA"] == "a"
    assert row["Group_xA"] == "Alpha"
    assert row["Extra"] == 1
