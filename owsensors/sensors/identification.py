from __future__ import annotations

from typing import Any, Mapping, Optional

from .base import SensorDevice
from ..domain.interfaces import Gateway, UpdateSink
from ..domain.models import SensorId, SensorType


class IdentificationDevice(SensorDevice):
    """Serial-number-only chips (DS2401, iButtons). Presence is their only signal."""

    def __init__(
        self,
        sensor_id: SensorId,
        callback: UpdateSink,
        settings: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(sensor_id, callback, SensorType.IDENTIFICATION)

    def _configure_channels(self) -> None:
        self._require_known_channels(())

    def _refresh(self, gateway: Gateway, forced_refresh: bool) -> None:
        return None
