"""Serializers converting persisted snapshots to and from storage payloads."""

from __future__ import annotations

import logging
from typing import Protocol, TypeVar

import orjson
from pydantic import ValidationError

from stepflow.schemas.state_models import PersistedFlowState

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class Serializer(Protocol[T]):
    """Converts ``PersistedFlowState`` to a storage payload and back."""

    def serialize(self, state: PersistedFlowState) -> T:
        """Encode a snapshot."""

    def deserialize(self, data: T) -> PersistedFlowState | None:
        """Decode a payload; ``None`` when it is malformed."""


StringSerializer = Serializer[str]


class JsonSerializer:
    """orjson-backed serializer producing camelCase JSON text."""

    def serialize(self, state: PersistedFlowState) -> str:
        return orjson.dumps(state.to_payload()).decode("utf-8")

    def deserialize(self, data: str | bytes) -> PersistedFlowState | None:
        try:
            payload = orjson.loads(data)
        except orjson.JSONDecodeError as exc:
            LOGGER.debug("Discarding undecodable snapshot: %s", exc)
            return None
        if not isinstance(payload, dict):
            return None
        try:
            return PersistedFlowState.model_validate(payload)
        except ValidationError as exc:
            LOGGER.debug("Discarding snapshot with invalid shape: %s", exc)
            return None


class JsonBytesSerializer(JsonSerializer):
    """Same encoding as ``JsonSerializer`` for byte-oriented backends."""

    def serialize(self, state: PersistedFlowState) -> bytes:  # type: ignore[override]
        return orjson.dumps(state.to_payload())


DEFAULT_SERIALIZER = JsonSerializer()
