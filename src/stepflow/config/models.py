"""Pydantic models for engine settings."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator

from stepflow.constants import DEFAULT_KEY_PREFIX
from stepflow.schemas.base import StrictSchemaModel
from stepflow.schemas.enums import SaveMode, normalize_save_mode


class NavigationConfig(StrictSchemaModel):
    """Reducer behaviour controls."""

    strict: bool = False


class PersistenceConfig(StrictSchemaModel):
    """Persister and store selection."""

    backend: Literal["memory", "sqlite"] = "memory"
    key_prefix: str = Field(default=DEFAULT_KEY_PREFIX, min_length=1)
    sqlite_path: Path = Path(".sqlite/stepflow.db")
    ttl_seconds: int | None = Field(default=None, gt=0)
    save_mode: SaveMode = SaveMode.NAVIGATION
    serialize_saves: bool = False

    @field_validator("save_mode", mode="before")
    @classmethod
    def normalize_mode(cls, value: str | SaveMode) -> SaveMode:
        return normalize_save_mode(value)

    @property
    def ttl(self) -> timedelta | None:
        return timedelta(seconds=self.ttl_seconds) if self.ttl_seconds else None


class EngineSettings(StrictSchemaModel):
    """Central engine configuration."""

    navigation: NavigationConfig = Field(default_factory=NavigationConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    definitions_dir: Path | None = None
