"\"\"\"Ordering strategies applied to a filtered record set.\"\"\""

from __future__ import annotations

from typing import Sequence, TypeVar

import pendulum

from ..schemas import CandidateRecord, SelectionMethod

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


class Mulberry32:
    """Seeded 32-bit PRNG producing floats in [0, 1)."""

    def __init__(self, seed: int) -> None:
        self._state = seed & _MASK32

    def random(self) -> float:
        self._state = (self._state + 0x6D2B79F5) & _MASK32
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296


def clock_seed() -> int:
    """Seed derived from the wall clock in milliseconds."""
    return int(pendulum.now().timestamp() * 1000)


def seeded_shuffle(items: Sequence[T], seed: int) -> list[T]:
    """Return a Fisher-Yates shuffled copy of ``items``."""
    result = list(items)
    generator = Mulberry32(seed)
    for i in range(len(result) - 1, 0, -1):
        j = int(generator.random() * (i + 1))
        result[i], result[j] = result[j], result[i]
    return result


def _sort_key(record: CandidateRecord) -> int:
    return record.numeric_score or 0


def apply_selection(
    records: Sequence[CandidateRecord],
    method: SelectionMethod | str,
    seed: int | None = None,
) -> list[CandidateRecord]:
    """Order records by score or shuffle them.

    ``random`` without a seed falls back to a clock-derived seed; callers that
    need to replay the order should derive and keep the seed themselves.
    """
    if method == "top-score":
        return sorted(records, key=_sort_key, reverse=True)
    if method == "bottom-score":
        return sorted(records, key=_sort_key)
    if method == "random":
        if seed is None:
            seed = clock_seed()
        return seeded_shuffle(records, seed)
    return list(records)


__all__ = ["Mulberry32", "apply_selection", "clock_seed", "seeded_shuffle"]
