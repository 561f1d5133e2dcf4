"""Enum definitions for canonical contracts."""

from __future__ import annotations

from enum import Enum


class FlowStatus(str, Enum):
    ACTIVE = "active"
    COMPLETE = "complete"


class NavigationAction(str, Enum):
    """How a step was left."""

    NEXT = "next"
    SKIP = "skip"
    BACK = "back"


class SaveMode(str, Enum):
    """When a session writes through its persister."""

    ALWAYS = "always"
    NAVIGATION = "navigation"
    MANUAL = "manual"


def normalize_save_mode(raw_value: str | SaveMode) -> SaveMode:
    """Normalize a case-insensitive save mode label."""
    if isinstance(raw_value, SaveMode):
        return raw_value
    try:
        return SaveMode(raw_value.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unsupported save mode: {raw_value}") from exc
