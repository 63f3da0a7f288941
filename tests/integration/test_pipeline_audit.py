from __future__ import annotations

import json
from pathlib import Path

import pytest

from haystackeval.container import create_container
from haystackeval.pipeline import AuditLogger, NoActiveSessionError
from haystackeval.schemas import FilterCriteria


def test_pipeline_writes_audit_log(tmp_path: Path) -> None:
    records_path = tmp_path / "records.jsonl"
    audit_path = tmp_path / "audit" / "audit.jsonl"
    rows = [
        {"ID_xA": f"R{idx}", "Node_xA": f"n{idx}", "Group_xA": "Alpha", "AI_Rank_xB": 80 - idx, "Class1_xB": "Ops"}
        for idx in range(4)
    ]
    records_path.write_text("\n".join(json.dumps(row) for row in rows), encoding="utf-8")

    container = create_container(in_memory=True, state_dir=tmp_path / "state")
    pipeline = container.pipeline(audit_logger=AuditLogger(audit_path))

    pipeline.start(records_path, FilterCriteria(selection_method="random", random_seed=3))
    pipeline.next_batch(records_path)
    pipeline.score(records_path, "R1", 2, replace=True)
    pipeline.skip(records_path, "R1")
    outcome = pipeline.mass_score(records_path, "class", "Ops", 1)

    assert outcome["evaluation_complete"] is True
    assert Path(outcome["results_path"]).exists()

    audit_lines = audit_path.read_text(encoding="utf-8").strip().splitlines()
    entries = [json.loads(line) for line in audit_lines]
    assert [entry["action"] for entry in entries] == ["score", "skip", "mass_score"]
    assert entries[0]["record_id"] == "R1"
    assert entries[0]["success"] is True
    assert entries[1]["error"] == "Already scored"
    assert sorted(entries[2]["scored_ids"]) == ["R0", "R1", "R2", "R3"]
    assert all(entry["session_id"].startswith("eval-") for entry in entries)


def test_pipeline_requires_active_session(tmp_path: Path) -> None:
    records_path = tmp_path / "records.jsonl"
    records_path.write_text('{"ID_xA": "R0", "Node_xA": "n0"}\n', encoding="utf-8")
    pipeline = create_container(in_memory=True).pipeline()

    with pytest.raises(NoActiveSessionError):
        pipeline.progress(records_path)

    assert pipeline.cancel(records_path) == {"cancelled": None}
