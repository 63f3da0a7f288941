from __future__ import annotations

import pytest
from pydantic import ValidationError

from haystackeval.schemas import CandidateRecord


def test_record_accepts_column_aliases():
    record = CandidateRecord.model_validate(
        {
            "ID_xA": "Alpha-n1",
            "Node_xA": "n1",
            "Group_xA": "Alpha",
            "AI_Rank_xB": "72.9",
            "Rank_xB": "",
            "Root1_xB": "R1",
            "Class1_xB": "C1",
            "Linked_Node_ID_xA": "Beta-n2",
            "Notes": "kept",
        }
    )

    assert record.record_id == "Alpha-n1"
    assert record.external_score == 72
    assert record.numeric_score == 72
    assert record.user_rank is None
    assert record.roots() == ["R1", "", ""]
    assert record.tag_pairs()[0] == ("R1", "C1")
    assert record.linked_id == "Beta-n2"
    assert record.model_extra == {"Notes": "kept"}


def test_record_score_normalisation():
    assert CandidateRecord(record_id="a", external_score=" ").external_score is None
    assert CandidateRecord(record_id="b", external_score=None).numeric_score is None
    text = CandidateRecord(record_id="c", external_score="high")
    assert text.external_score == "high"
    assert text.numeric_score is None
    assert CandidateRecord(record_id="d", external_score=0).numeric_score == 0


def test_record_rank_must_be_in_range():
    assert CandidateRecord(record_id="a", user_rank="2").user_rank == 2

    with pytest.raises(ValidationError):
        CandidateRecord(record_id="b", user_rank=4)
    with pytest.raises(ValidationError):
        CandidateRecord(record_id="c", user_rank="top")


def test_record_requires_id():
    with pytest.raises(ValidationError):
        CandidateRecord(name="orphan")  # type: ignore[call-arg]


def test_record_coerces_numeric_text_fields():
    record = CandidateRecord.model_validate({"ID_xA": 17, "Node_xA": None, "Root2_xB": None})

    assert record.record_id == "17"
    assert record.name == ""
    assert record.root2 == ""
