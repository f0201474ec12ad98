from __future__ import annotations

from typing import Any, Mapping, Optional

from .base import SensorDevice
from ..domain.interfaces import Gateway, UpdateSink
from ..domain.models import SensorId, SensorType

COUNTER_PROPERTIES = {
    "counter0": "counters.A",
    "counter1": "counters.B",
}


class CounterSensor(SensorDevice):
    """DS2423 dual counter."""

    def __init__(
        self,
        sensor_id: SensorId,
        callback: UpdateSink,
        settings: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(sensor_id, callback, SensorType.COUNTER)

    def _configure_channels(self) -> None:
        self._require_known_channels(COUNTER_PROPERTIES)

    def _refresh(self, gateway: Gateway, forced_refresh: bool) -> None:
        enabled = self.enabled_channels
        for channel, prop in COUNTER_PROPERTIES.items():
            if channel in enabled:
                self._post_state(channel, gateway.read_int(self.sensor_id, prop), forced_refresh)
