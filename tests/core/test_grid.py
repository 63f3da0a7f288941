from __future__ import annotations

import random

from haystackeval.core import Cell, GridConfig, assign_cell, cell_of, init_grid, release_cell


def assert_partitioned(grid) -> None:
    occupied = list(grid.cells)
    free = list(grid.available_cells)
    assert len(occupied) + len(free) == grid.width * grid.height
    assert set(occupied) | set(free) == set(grid.coordinates())
    assert not set(occupied) & set(free)


def test_init_grid_has_all_cells_free():
    grid = init_grid()

    assert grid.cells == {}
    assert len(grid.available_cells) == 9
    assert grid.cell_size == {"width": 140, "height": 100}
    assert grid.spacing == 10
    assert_partitioned(grid)


def test_assign_until_full_then_none():
    grid = init_grid(GridConfig(width=2, height=2))
    rng = random.Random(3)

    cells = [assign_cell(grid, f"R{idx}", rng) for idx in range(4)]

    assert len(set(cells)) == 4
    assert assign_cell(grid, "overflow", rng) is None
    assert grid.available_cells == []
    assert_partitioned(grid)


def test_release_is_idempotent():
    grid = init_grid()
    cell = assign_cell(grid, "R1", random.Random(1))

    release_cell(grid, cell)
    release_cell(grid, cell)
    release_cell(grid, (2, 2))

    assert grid.cells == {}
    assert grid.available_cells.count(cell) == 1
    assert_partitioned(grid)


def test_partition_holds_after_random_operations():
    grid = init_grid()
    rng = random.Random(2024)
    placed: list[Cell] = []

    for step in range(500):
        if placed and rng.random() < 0.45:
            cell = placed.pop(rng.randrange(len(placed)))
            release_cell(grid, cell)
        else:
            cell = assign_cell(grid, f"R{step}", rng)
            if cell is not None:
                placed.append(cell)
        assert_partitioned(grid)


def test_cell_of_finds_occupant():
    grid = init_grid()
    cell = assign_cell(grid, "R9", random.Random(5))

    assert cell_of(grid, "R9") == cell
    assert cell_of(grid, "missing") is None
    assert Cell.from_key(cell.key) == cell
