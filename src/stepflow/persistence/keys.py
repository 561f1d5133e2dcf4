"""Composite storage keys for flow instances and variants."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, unquote

from stepflow.constants import DEFAULT_KEY_PREFIX, DEFAULT_SEGMENT, KEY_SEPARATOR


@dataclass(frozen=True)
class StorageKey:
    """Decoded ``(flow, variant, instance)`` identity of a stored snapshot."""

    flow_id: str
    variant_id: str
    instance_id: str


def _encode(segment: str) -> str:
    return quote(segment, safe="")


@dataclass(frozen=True)
class KeySpace:
    """Maps flow identity onto ``prefix:flow:variant:instance`` keys.

    Every segment is percent-encoded, so ids that contain the separator can
    never produce the same key as another identity. Missing instance or variant
    ids fall back to ``default``.
    """

    prefix: str = DEFAULT_KEY_PREFIX

    def __post_init__(self) -> None:
        if not self.prefix:
            raise ValueError("Key prefix must be non-empty")

    def format_key(
        self,
        flow_id: str,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> str:
        if not flow_id:
            raise ValueError("flow_id must be non-empty")
        segments = (
            self.prefix,
            flow_id,
            variant_id or DEFAULT_SEGMENT,
            instance_id or DEFAULT_SEGMENT,
        )
        return KEY_SEPARATOR.join(_encode(segment) for segment in segments)

    def parse_key(self, key: str) -> StorageKey | None:
        """Decode a key produced by ``format_key``; ``None`` for foreign keys."""
        parts = key.split(KEY_SEPARATOR)
        if len(parts) != 4 or parts[0] != _encode(self.prefix):
            return None
        _, flow_id, variant_id, instance_id = (unquote(part) for part in parts)
        return StorageKey(flow_id=flow_id, variant_id=variant_id, instance_id=instance_id)

    def flow_pattern(self, flow_id: str) -> str:
        """Key prefix shared by every instance and variant of ``flow_id``."""
        return KEY_SEPARATOR.join((_encode(self.prefix), _encode(flow_id))) + KEY_SEPARATOR

    def owns(self, key: str, flow_id: str | None = None) -> bool:
        """Return whether ``key`` belongs to this key space (and flow)."""
        parsed = self.parse_key(key)
        if parsed is None:
            return False
        return flow_id is None or parsed.flow_id == flow_id

    def filter_keys(self, keys: list[str], flow_id: str | None = None) -> list[str]:
        return [key for key in keys if self.owns(key, flow_id)]
