from __future__ import annotations
from typing import Optional, Protocol, runtime_checkable
from .models import PresenceState, SensorId, SensorType, StateUpdate, StateValue


@runtime_checkable
class Gateway(Protocol):
    """Connection to the bus gateway. Every call raises CommunicationError on failure."""

    gateway_id: str

    def check_presence(self, sensor_id: SensorId) -> PresenceState:
        ...

    def get_type(self, sensor_id: SensorId) -> SensorType:
        ...

    def read_decimal(self, sensor_id: SensorId, prop: str) -> float:
        ...

    def read_int(self, sensor_id: SensorId, prop: str) -> int:
        ...

    def read_bool(self, sensor_id: SensorId, prop: str) -> bool:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class UpdateSink(Protocol):
    def post_update(self, channel_id: str, value: StateValue) -> None:
        ...

    def update_presence_status(self, state: PresenceState) -> None:
        ...


@runtime_checkable
class Repository(Protocol):
    async def init(self) -> None:
        ...

    async def insert_updates(self, updates: list[StateUpdate]) -> None:
        ...

    async def query_updates(
        self, start_ts: str, end_ts: str, limit: int, sensor_id: Optional[str] = None
    ) -> list[StateUpdate]:
        ...
