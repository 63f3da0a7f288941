"\"\"\"Fixed-capacity grid slot allocation.\"\"\""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, NamedTuple


class Cell(NamedTuple):
    row: int
    col: int

    @property
    def key(self) -> str:
        return f"{self.row},{self.col}"

    @classmethod
    def from_key(cls, key: str) -> "Cell":
        row, col = key.split(",")
        return cls(int(row), int(col))


@dataclass
class GridConfig:
    """Grid dimensions and display metrics."""

    width: int = 3
    height: int = 3
    cell_width: int = 140
    cell_height: int = 100
    spacing: int = 10

    @property
    def capacity(self) -> int:
        return self.width * self.height


@dataclass
class Grid:
    """Occupied and free cells of one session or wave.

    ``cells`` and ``available_cells`` always partition the coordinate space.
    """

    width: int
    height: int
    cells: dict[Cell, str] = field(default_factory=dict)
    available_cells: list[Cell] = field(default_factory=list)
    cell_size: dict[str, int] = field(default_factory=dict)
    spacing: int = 0

    def coordinates(self) -> list[Cell]:
        return [Cell(row, col) for row in range(self.height) for col in range(self.width)]

    def is_partitioned(self) -> bool:
        occupied = list(self.cells)
        combined = occupied + list(self.available_cells)
        expected = set(self.coordinates())
        return len(combined) == len(expected) and set(combined) == expected

    def to_dict(self) -> dict[str, Any]:
        return {
            "cells": [[cell.key, record_id] for cell, record_id in self.cells.items()],
            "availableCells": [
                {"row": cell.row, "col": cell.col} for cell in self.available_cells
            ],
            "cellSize": dict(self.cell_size),
            "spacing": self.spacing,
            "width": self.width,
            "height": self.height,
        }


def init_grid(config: GridConfig | None = None) -> Grid:
    config = config or GridConfig()
    grid = Grid(
        width=config.width,
        height=config.height,
        cell_size={"width": config.cell_width, "height": config.cell_height},
        spacing=config.spacing,
    )
    grid.available_cells = grid.coordinates()
    return grid


def assign_cell(
    grid: Grid,
    record_id: str,
    rng: random.Random | None = None,
) -> Cell | None:
    """Bind ``record_id`` to a random free cell; None when the grid is full."""
    if not grid.available_cells:
        return None
    chooser = rng or random
    index = chooser.randrange(len(grid.available_cells))
    cell = grid.available_cells.pop(index)
    grid.cells[cell] = record_id
    return cell


def release_cell(grid: Grid, cell: Cell | tuple[int, int]) -> None:
    cell = Cell(*cell)
    if cell in grid.cells:
        del grid.cells[cell]
        grid.available_cells.append(cell)


def occupy_cell(grid: Grid, cell: Cell, record_id: str) -> bool:
    """Bind ``record_id`` to a specific free cell."""
    if cell not in grid.available_cells:
        return False
    grid.available_cells.remove(cell)
    grid.cells[cell] = record_id
    return True


def cell_of(grid: Grid, record_id: str) -> Cell | None:
    for cell, occupant in grid.cells.items():
        if occupant == record_id:
            return cell
    return None


__all__ = [
    "Cell",
    "Grid",
    "GridConfig",
    "assign_cell",
    "cell_of",
    "init_grid",
    "occupy_cell",
    "release_cell",
]
