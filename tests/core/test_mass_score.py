from __future__ import annotations

import random
from typing import Any

import pendulum
import pytest

from haystackeval.core import EvaluationEngine, Session, SessionRepository
from haystackeval.schemas import CandidateRecord, FilterCriteria
from haystackeval.storage import InMemoryStore

NOW = pendulum.datetime(2025, 3, 1, 9, 0, 0)


def build_record(record_id: str, **kwargs: Any) -> CandidateRecord:
    defaults: dict[str, Any] = {
        "record_id": record_id,
        "name": f"name-{record_id}",
        "group": "Alpha",
        "external_score": 50,
    }
    defaults.update(kwargs)
    return CandidateRecord(**defaults)


def build_dataset_of_50() -> list[CandidateRecord]:
    records: list[CandidateRecord] = []
    for idx in range(40):
        tags = {"root1": "R1"} if idx in (0, 5, 10) else {"root2": "R9"}
        records.append(build_record(f"A{idx}", external_score=100 - idx, **tags))
    for idx in range(10):
        tags = {"root3": "R1", "class3": "C7"} if idx in (1, 2, 3) else {}
        records.append(build_record(f"B{idx}", group="Beta", **tags))
    return records


@pytest.fixture
def engine() -> EvaluationEngine:
    repository = SessionRepository(InMemoryStore(), now_provider=lambda: NOW)
    return EvaluationEngine(repository, now_provider=lambda: NOW, rng=random.Random(5))


@pytest.fixture
def dataset() -> list[CandidateRecord]:
    return build_dataset_of_50()


@pytest.fixture
def session(engine: EvaluationEngine, dataset: list[CandidateRecord]) -> Session:
    created = engine.create_session(dataset, FilterCriteria(group_filter=["Alpha"]))
    assert isinstance(created, Session)
    return created


def test_mass_score_reaches_records_outside_selection(engine, session, dataset):
    engine.score_candidate(session, "A5", 3)
    before = len(session.scores)

    result = engine.mass_score_by_attribute(session, "root", "R1", 0, dataset)

    assert result.affected == 6
    assert len(result.scored_ids) == 6
    assert result.re_scored == 1
    assert set(result.scored_ids) == {"A0", "A5", "A10", "B1", "B2", "B3"}
    assert len(session.scores) == before + 5
    assert all(session.scores[record_id].mass_scored for record_id in result.scored_ids)
    assert session.scores["A5"].score == 0


def test_mass_score_releases_grid_cells_and_batch(engine, session, dataset):
    batch = engine.get_next_batch_with_grid_positions(session)
    assert {"A0", "A5"} <= {entry.record_id for entry in batch}

    engine.mass_score_by_attribute(session, "root", "R1", 1, dataset)

    assert not {"A0", "A5"} & session.batch_ids()
    assert "A0" not in session.grid.cells.values()
    assert len(session.grid.cells) == len(session.current_batch) == 7
    assert len(session.grid.available_cells) == 2


def test_mass_score_clears_undecided_flag(engine, session, dataset):
    engine.skip_candidate(session, "A10")

    engine.mass_score_by_attribute(session, "root", "R1", 2, dataset)

    assert "A10" not in session.undecided
    assert session.scores["A10"].score == 2


def test_mass_score_by_class_and_completion(engine, dataset):
    small = engine.create_session(dataset, FilterCriteria(group_filter=["Beta"]))
    assert isinstance(small, Session)
    for record_id in ("B0", "B4", "B5", "B6", "B7", "B8", "B9"):
        engine.skip_candidate(small, record_id)

    result = engine.mass_score_by_attribute(small, "class", "C7", 3, dataset)

    assert result.affected == 3
    assert result.evaluation_complete is True
    assert small.completed_at is not None


def test_mass_score_on_completed_session_is_rejected(engine, dataset):
    tiny = engine.create_session(dataset, FilterCriteria(), selection_count=1)
    engine.score_candidate(tiny, tiny.selected_ids[0], 2)

    result = engine.mass_score_by_attribute(tiny, "root", "R1", 0, dataset)

    assert result.error
    assert result.affected == 0


def test_count_by_attribute(engine, dataset):
    assert engine.count_by_attribute("root", "R1", dataset) == 6
    assert engine.count_by_attribute("class", "C7", dataset) == 3
    assert engine.count_by_attribute("root", "", dataset) == 0
    assert engine.count_by_attribute("root", "R1", None) == 0
