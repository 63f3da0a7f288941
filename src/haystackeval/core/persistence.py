"\"\"\"Session snapshot persistence over a key-value store.\"\"\""

from __future__ import annotations

import json
from typing import Any, Callable, Sequence

import pendulum
import structlog

from ..schemas import CandidateRecord, FilterCriteria
from ..storage import KeyValueStore
from .grid import Cell, Grid, GridConfig, init_grid, occupy_cell, release_cell
from .models import BatchEntry, SavedSessionInfo, ScoreEntry, Session

DEFAULT_SESSION_KEY = "haystack_eval_session"
DEFAULT_STALENESS_TOLERANCE = 0.10


def to_epoch_ms(moment: pendulum.DateTime) -> int:
    return int(moment.timestamp() * 1000)


class SessionRepository:
    """Persist at most one session under a fixed key.

    Store failures never propagate: they are logged and reported as
    ``None``/``False``/no-op.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = DEFAULT_SESSION_KEY,
        staleness_tolerance: float = DEFAULT_STALENESS_TOLERANCE,
        grid_config: GridConfig | None = None,
        now_provider: Callable[[], pendulum.DateTime] | None = None,
    ) -> None:
        self._store = store
        self._key = key
        self._staleness_tolerance = staleness_tolerance
        self._grid_config = grid_config or GridConfig()
        self._now_provider = now_provider or pendulum.now
        self._logger = structlog.get_logger(__name__)

    @property
    def key(self) -> str:
        return self._key

    def save(self, session: Session) -> bool:
        try:
            payload = self.serialize(session)
            self._store.save(self._key, json.dumps(payload, ensure_ascii=False))
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("storage.save_failed", key=self._key, error=str(exc))
            return False
        return True

    def load(self, dataset: Sequence[CandidateRecord]) -> Session | None:
        data = self._read()
        if data is None or data.get("completedAt"):
            return None

        try:
            return self._restore(data, dataset)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("storage.load_failed", key=self._key, error=str(exc))
            return None

    def clear(self) -> None:
        try:
            self._store.remove(self._key)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("storage.clear_failed", key=self._key, error=str(exc))

    def has_resumable(self) -> bool:
        data = self._read()
        return bool(data) and not data.get("completedAt")

    def saved_info(self) -> SavedSessionInfo | None:
        data = self._read()
        if not data or data.get("completedAt"):
            return None
        try:
            return SavedSessionInfo(
                scored=len(data.get("scores") or []),
                total=len(data.get("selectedIds") or []),
                last_saved=data.get("lastSaved"),
                config=dict(data.get("config") or {}),
            )
        except (TypeError, ValueError) as exc:
            self._logger.warning("storage.info_failed", key=self._key, error=str(exc))
            return None

    def serialize(self, session: Session) -> dict[str, Any]:
        config = session.criteria.to_config()
        config["selectionCount"] = session.selection_count
        return {
            "id": session.id,
            "selectedIds": list(session.selected_ids),
            "batchSize": session.batch_size,
            "currentBatchIndex": session.current_batch_index,
            "currentBatchData": [
                {
                    "id": entry.record_id,
                    "gridRow": entry.cell.row if entry.cell else None,
                    "gridCol": entry.cell.col if entry.cell else None,
                }
                for entry in session.current_batch
            ],
            "scores": [
                [record_id, _score_to_dict(entry)]
                for record_id, entry in session.scores.items()
            ],
            "undecided": sorted(session.undecided),
            "startedAt": session.started_at,
            "completedAt": session.completed_at,
            "lastSaved": to_epoch_ms(self._now_provider()),
            "grid": session.grid.to_dict(),
            "config": config,
            "abandoned": session.abandoned,
        }

    def _read(self) -> dict[str, Any] | None:
        try:
            raw = self._store.load(self._key)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("storage.read_failed", key=self._key, error=str(exc))
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            self._logger.warning("storage.corrupt_payload", key=self._key, error=str(exc))
            return None
        if not isinstance(data, dict):
            self._logger.warning("storage.corrupt_payload", key=self._key, error="not an object")
            return None
        return data

    def _restore(self, data: dict[str, Any], dataset: Sequence[CandidateRecord]) -> Session | None:
        by_id = {record.record_id: record for record in dataset}
        selected_ids = [str(record_id) for record_id in data["selectedIds"]]
        selected = [by_id[record_id] for record_id in selected_ids if record_id in by_id]

        if len(selected) < len(selected_ids) * (1 - self._staleness_tolerance):
            self._logger.warning(
                "session.stale",
                session_id=data.get("id"),
                expected=len(selected_ids),
                resolved=len(selected),
            )
            self.clear()
            return None

        current_batch: list[BatchEntry] = []
        for item in data.get("currentBatchData") or []:
            record = by_id.get(item.get("id"))
            if record is None:
                continue
            cell = None
            if item.get("gridRow") is not None and item.get("gridCol") is not None:
                cell = Cell(int(item["gridRow"]), int(item["gridCol"]))
            current_batch.append(BatchEntry(record=record.model_copy(), cell=cell))

        config = dict(data.get("config") or {})
        selection_count = config.pop("selectionCount", None)

        return Session(
            id=str(data["id"]),
            selected=selected,
            selected_ids=[record.record_id for record in selected],
            batch_size=int(data["batchSize"]),
            grid=self._restore_grid(data.get("grid"), current_batch),
            criteria=FilterCriteria.model_validate(config),
            started_at=int(data["startedAt"]),
            selection_count=selection_count,
            current_batch_index=int(data.get("currentBatchIndex") or 0),
            current_batch=current_batch,
            scores={
                str(record_id): _score_from_dict(entry)
                for record_id, entry in data.get("scores") or []
            },
            undecided={str(record_id) for record_id in data.get("undecided") or []},
            completed_at=data.get("completedAt"),
            abandoned=bool(data.get("abandoned", False)),
        )

    def _restore_grid(self, raw: dict[str, Any] | None, batch: list[BatchEntry]) -> Grid:
        config = self._grid_config
        if raw:
            config = GridConfig(
                width=int(raw.get("width") or config.width),
                height=int(raw.get("height") or config.height),
                cell_width=int((raw.get("cellSize") or {}).get("width") or config.cell_width),
                cell_height=int((raw.get("cellSize") or {}).get("height") or config.cell_height),
                spacing=int(raw.get("spacing") if raw.get("spacing") is not None else config.spacing),
            )
        grid = init_grid(config)
        if not raw:
            return self._grid_from_batch(grid, batch)

        grid.cells = {Cell.from_key(key): str(record_id) for key, record_id in raw.get("cells") or []}
        grid.available_cells = [
            Cell(int(item["row"]), int(item["col"])) for item in raw.get("availableCells") or []
        ]
        if not grid.is_partitioned():
            self._logger.warning("session.grid_rebuilt", occupied=len(grid.cells))
            return self._grid_from_batch(init_grid(config), batch)

        # Cells may only be held by entries of the restored batch.
        placed = {entry.record_id: entry.cell for entry in batch}
        for cell, record_id in list(grid.cells.items()):
            if placed.get(record_id) != cell:
                self._logger.info("session.cell_reclaimed", cell=cell.key, record_id=record_id)
                release_cell(grid, cell)
        for entry in batch:
            if entry.cell is None or grid.cells.get(entry.cell) == entry.record_id:
                continue
            if not occupy_cell(grid, entry.cell, entry.record_id):
                entry.cell = None
        return grid

    @staticmethod
    def _grid_from_batch(grid: Grid, batch: list[BatchEntry]) -> Grid:
        for entry in batch:
            if entry.cell is not None and not occupy_cell(grid, entry.cell, entry.record_id):
                entry.cell = None
        return grid


def _score_to_dict(entry: ScoreEntry) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "score": entry.score,
        "timestamp": entry.timestamp,
        "waveNumber": entry.wave_number,
    }
    if entry.mass_scored:
        payload["massScored"] = True
    return payload


def _score_from_dict(payload: dict[str, Any]) -> ScoreEntry:
    return ScoreEntry(
        score=int(payload["score"]),
        timestamp=int(payload["timestamp"]),
        wave_number=int(payload.get("waveNumber") or 0),
        mass_scored=bool(payload.get("massScored", False)),
    )


__all__ = ["DEFAULT_SESSION_KEY", "SessionRepository", "to_epoch_ms"]
