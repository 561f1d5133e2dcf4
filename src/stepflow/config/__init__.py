"""Configuration exports."""

from stepflow.config.loader import (
    DEFAULT_CONFIG_PATH,
    build_persister,
    build_store,
    load_flow_definition,
    load_flow_definitions,
    load_settings,
)
from stepflow.config.models import EngineSettings, NavigationConfig, PersistenceConfig

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineSettings",
    "NavigationConfig",
    "PersistenceConfig",
    "build_persister",
    "build_store",
    "load_flow_definition",
    "load_flow_definitions",
    "load_settings",
]
