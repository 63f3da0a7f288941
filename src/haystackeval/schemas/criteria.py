"\"\"\"Filter criteria for building an evaluation working set.\"\"\""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RankFilter = Literal["unranked", "ranked", "all"]
SelectionMethod = Literal["top-score", "bottom-score", "random"]

SCORE_FLOOR = 0
SCORE_CEILING = 100


class ScoreThreshold(BaseModel):
    """Inclusive external score range."""

    minimum: int = Field(default=SCORE_FLOOR, alias="min", ge=SCORE_FLOOR, le=SCORE_CEILING)
    maximum: int = Field(default=SCORE_CEILING, alias="max", ge=SCORE_FLOOR, le=SCORE_CEILING)

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    @model_validator(mode="after")
    def _check_order(self) -> "ScoreThreshold":
        if self.minimum > self.maximum:
            raise ValueError(
                f"score threshold min ({self.minimum}) must not exceed max ({self.maximum})"
            )
        return self

    @property
    def is_full_range(self) -> bool:
        return self.minimum == SCORE_FLOOR and self.maximum == SCORE_CEILING

    def contains(self, value: int) -> bool:
        return self.minimum <= value <= self.maximum


class FilterCriteria(BaseModel):
    """Immutable filter and ordering options for a session."""

    rank_filter: RankFilter = Field(default="unranked", alias="rankFilter")
    group_filter: tuple[str, ...] | None = Field(default=None, alias="groupFilter")
    score_threshold: ScoreThreshold = Field(
        default_factory=ScoreThreshold, alias="scoreThreshold"
    )
    selection_method: SelectionMethod = Field(default="top-score", alias="selectionMethod")
    random_seed: int | None = Field(default=None, alias="randomSeed")

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    @field_validator("group_filter", mode="before")
    @classmethod
    def _normalize_groups(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            if value.strip().lower() == "all" or not value.strip():
                return None
            return (value,)
        groups = tuple(value)
        return groups or None

    def with_seed(self, seed: int) -> "FilterCriteria":
        return self.model_copy(update={"random_seed": seed})

    def to_config(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
