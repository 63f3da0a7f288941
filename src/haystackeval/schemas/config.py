"\"\"\"Pydantic configuration schema for CLI YAML input.\"\"\""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError


class GridSettings(BaseModel):
    width: int = Field(default=3, ge=1)
    height: int = Field(default=3, ge=1)
    cell_width: int = Field(default=140, gt=0)
    cell_height: int = Field(default=100, gt=0)
    spacing: int = Field(default=10, ge=0)


class SessionSettings(BaseModel):
    batch_size: int | None = Field(default=None, ge=1)
    wave_size: int = Field(default=6, ge=1)
    storage_key: str = "haystack_eval_session"
    staleness_tolerance: float = Field(default=0.10, ge=0.0, le=1.0)


class StorageSettings(BaseModel):
    path: str = ".haystack-eval"


class AppConfig(BaseModel):
    grid: GridSettings = Field(default_factory=GridSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    def to_settings(self) -> dict[str, Any]:
        return self.model_dump(mode="python")


def load_config(raw: Any) -> AppConfig:
    if not isinstance(raw, dict):
        raise ValidationError.from_exception_data(
            "AppConfig",
            [{"type": "dict_type", "loc": ("config",), "input": raw}],
        )
    return AppConfig.model_validate(raw)
