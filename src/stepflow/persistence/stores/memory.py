"""In-process snapshot store, mainly for tests and short-lived sessions."""

from __future__ import annotations

from stepflow.constants import DEFAULT_SEGMENT
from stepflow.persistence.keys import KeySpace
from stepflow.schemas.state_models import PersistedFlowInstance, PersistedFlowState


class MemoryStore:
    """Dictionary-backed ``FlowStore``; contents vanish with the process."""

    def __init__(self, *, key_space: KeySpace | None = None) -> None:
        self.key_space = key_space or KeySpace()
        self._records: dict[str, PersistedFlowInstance] = {}

    def format_key(
        self,
        flow_id: str,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> str:
        return self.key_space.format_key(flow_id, instance_id, variant_id)

    async def get(
        self,
        flow_id: str,
        *,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> PersistedFlowState | None:
        record = self._records.get(self.format_key(flow_id, instance_id, variant_id))
        if record is None:
            return None
        return record.state.model_copy(deep=True)

    async def set(
        self,
        flow_id: str,
        state: PersistedFlowState,
        *,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> None:
        self._records[self.format_key(flow_id, instance_id, variant_id)] = (
            PersistedFlowInstance(
                flow_id=flow_id,
                instance_id=instance_id or DEFAULT_SEGMENT,
                variant_id=variant_id or DEFAULT_SEGMENT,
                state=state.model_copy(deep=True),
            )
        )

    async def remove(
        self,
        flow_id: str,
        *,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> None:
        self._records.pop(self.format_key(flow_id, instance_id, variant_id), None)

    async def remove_flow(self, flow_id: str) -> None:
        for key in self.key_space.filter_keys(list(self._records), flow_id):
            del self._records[key]

    async def remove_all(self) -> None:
        self._records.clear()

    async def list(self, flow_id: str) -> list[PersistedFlowInstance]:
        return [
            self._records[key].model_copy(deep=True)
            for key in self.key_space.filter_keys(list(self._records), flow_id)
        ]

    def __len__(self) -> int:
        return len(self._records)
