"""Settings and flow-definition loading with override resolution."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import orjson
import yaml

from stepflow.config.models import EngineSettings
from stepflow.engine.definition import define_flow
from stepflow.engine.runtime import RuntimeFlowDefinition
from stepflow.persistence.keys import KeySpace
from stepflow.persistence.persister import Persister
from stepflow.persistence.stores import KVStorageAdapter, MemoryStore, SQLiteStorage
from stepflow.persistence.stores.base import FlowStore
from stepflow.runtime_env import load_runtime_env
from stepflow.schemas.definition_models import FlowDefinition

DEFAULT_CONFIG_PATH = Path("config/stepflow.yaml")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError("Configuration file must deserialize to a mapping")
    return data


def apply_overrides(
    raw_config: dict[str, Any],
    env: Mapping[str, str],
    overrides: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Apply precedence: explicit overrides > env > YAML defaults."""
    merged = dict(raw_config)
    persistence = dict(merged.get("persistence") or {})
    navigation = dict(merged.get("navigation") or {})

    if env.get("STEPFLOW_BACKEND"):
        persistence["backend"] = env["STEPFLOW_BACKEND"]
    if env.get("STEPFLOW_KEY_PREFIX"):
        persistence["key_prefix"] = env["STEPFLOW_KEY_PREFIX"]
    if env.get("STEPFLOW_SQLITE_PATH"):
        persistence["sqlite_path"] = env["STEPFLOW_SQLITE_PATH"]
    if env.get("STEPFLOW_TTL_SECONDS"):
        persistence["ttl_seconds"] = int(env["STEPFLOW_TTL_SECONDS"])
    if env.get("STEPFLOW_SAVE_MODE"):
        persistence["save_mode"] = env["STEPFLOW_SAVE_MODE"]
    if env.get("STEPFLOW_STRICT_NAVIGATION"):
        navigation["strict"] = env["STEPFLOW_STRICT_NAVIGATION"].strip().lower() in _TRUE_VALUES

    if overrides:
        for key in ("backend", "key_prefix", "sqlite_path", "ttl_seconds", "save_mode"):
            if overrides.get(key) is not None:
                persistence[key] = overrides[key]
        if overrides.get("strict") is not None:
            navigation["strict"] = bool(overrides["strict"])

    if persistence:
        merged["persistence"] = persistence
    if navigation:
        merged["navigation"] = navigation
    return merged


def load_settings(
    config_path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> EngineSettings:
    """Load and validate engine settings.

    A missing default config file yields defaults; an explicit path must exist.
    Without an explicit ``env`` the process environment is read after loading
    any ``.env`` file.
    """
    if env is None:
        load_runtime_env()
    active_env = os.environ if env is None else env
    if config_path is None and not DEFAULT_CONFIG_PATH.exists():
        raw: dict[str, Any] = {}
    else:
        raw = _load_yaml(config_path or DEFAULT_CONFIG_PATH)
    merged = apply_overrides(raw, active_env, overrides)
    return EngineSettings.model_validate(merged)


def load_flow_definition(path: Path) -> FlowDefinition:
    """Load a wire-format definition from a ``.yaml``/``.yml`` or ``.json`` file."""
    if not path.exists():
        raise FileNotFoundError(f"Flow definition not found: {path}")
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = orjson.loads(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"Flow definition {path} must deserialize to a mapping")
    return define_flow(data)


def load_flow_definitions(directory: Path) -> dict[str, FlowDefinition]:
    """Load every definition file in ``directory`` keyed by flow id."""
    definitions: dict[str, FlowDefinition] = {}
    for path in sorted(directory.iterdir()):
        if path.suffix.lower() not in {".json", ".yaml", ".yml"}:
            continue
        definition = load_flow_definition(path)
        if definition.id in definitions:
            raise ValueError(f"Duplicate flow id {definition.id!r} in {path}")
        definitions[definition.id] = definition
    return definitions


def build_store(settings: EngineSettings) -> FlowStore:
    """Instantiate the configured snapshot store."""
    key_space = KeySpace(prefix=settings.persistence.key_prefix)
    if settings.persistence.backend == "sqlite":
        return KVStorageAdapter(
            SQLiteStorage(settings.persistence.sqlite_path),
            key_space=key_space,
        )
    return MemoryStore(key_space=key_space)


def build_persister(
    settings: EngineSettings,
    *,
    definition: FlowDefinition | RuntimeFlowDefinition | None = None,
    **options: Any,
) -> Persister:
    """Create a persister wired to the configured store and policies.

    Pass ``definition`` so restored snapshots are validated against it.
    """
    return Persister(
        build_store(settings),
        definition=definition,
        ttl=settings.persistence.ttl,
        serialize_saves=settings.persistence.serialize_saves,
        **options,
    )
