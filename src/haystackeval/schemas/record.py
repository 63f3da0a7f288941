"\"\"\"Candidate record schema.\"\"\""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def is_empty(value: Any) -> bool:
    """Return True for values that mean "not set" (None or blank text)."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def parse_numeric(value: Any) -> int | None:
    """Return the integer part of a numeric value, or None when it is not numeric."""
    if is_empty(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return None


class CandidateRecord(BaseModel):
    """Provider-neutral candidate row owned by the surrounding application."""

    record_id: str = Field(alias="ID_xA")
    name: str = Field(default="", alias="Node_xA")
    group: str = Field(default="", alias="Group_xA")
    external_score: int | str | None = Field(default=None, alias="AI_Rank_xB")
    user_rank: int | None = Field(default=None, alias="Rank_xB")
    root1: str = Field(default="", alias="Root1_xB")
    class1: str = Field(default="", alias="Class1_xB")
    root2: str = Field(default="", alias="Root2_xB")
    class2: str = Field(default="", alias="Class2_xB")
    root3: str = Field(default="", alias="Root3_xB")
    class3: str = Field(default="", alias="Class3_xB")
    linked_id: str = Field(default="", alias="Linked_Node_ID_xA")

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("record_id", "name", "group", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator(
        "root1", "class1", "root2", "class2", "root3", "class3", "linked_id", mode="before"
    )
    @classmethod
    def _coerce_tag(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value

    @field_validator("external_score", mode="before")
    @classmethod
    def _normalize_score(cls, value: Any) -> Any:
        if is_empty(value):
            return None
        numeric = parse_numeric(value)
        # Non-numeric text is kept so the score threshold can exclude it.
        return numeric if numeric is not None else str(value)

    @field_validator("user_rank", mode="before")
    @classmethod
    def _normalize_rank(cls, value: Any) -> Any:
        if is_empty(value):
            return None
        numeric = parse_numeric(value)
        if numeric is None:
            raise ValueError(f"user rank must be an integer 0-3, got {value!r}")
        return numeric

    @field_validator("user_rank")
    @classmethod
    def _check_rank_range(cls, value: int | None) -> int | None:
        if value is not None and not 0 <= value <= 3:
            raise ValueError(f"user rank must be between 0 and 3, got {value}")
        return value

    @property
    def numeric_score(self) -> int | None:
        if isinstance(self.external_score, int):
            return self.external_score
        return None

    def roots(self) -> list[str]:
        return [self.root1, self.root2, self.root3]

    def classes(self) -> list[str]:
        return [self.class1, self.class2, self.class3]

    def tag_pairs(self) -> list[tuple[str, str]]:
        """Return (root, class) pairs in slot order."""
        return list(zip(self.roots(), self.classes()))
