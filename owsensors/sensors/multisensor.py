from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional

from .base import SensorDevice
from ..domain.errors import CommunicationError, ConfigurationError
from ..domain.interfaces import Gateway, UpdateSink
from ..domain.models import SensorId, SensorType

logger = logging.getLogger(__name__)

CHANNEL_PROPERTIES = {
    "temperature": "temperature",
    "humidity": "humidity",
    "supplyvoltage": "VDD",
    "voltage": "VAD",
}


class MultiSensor(SensorDevice):
    """DS2438 based multisensor (temperature, humidity, two voltages)."""

    def __init__(
        self,
        sensor_id: SensorId,
        callback: UpdateSink,
        settings: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(sensor_id, callback, SensorType.MULTISENSOR)
        self._settings = dict(settings or {})
        self._humidity_offset = 0.0

    def _configure_channels(self) -> None:
        self._require_known_channels(CHANNEL_PROPERTIES)
        try:
            self._humidity_offset = float(self._settings.get("humidity_offset", 0.0))
        except (TypeError, ValueError):
            raise ConfigurationError(f"{self.sensor_id}: humidity_offset must be a number")
        if not math.isfinite(self._humidity_offset):
            raise ConfigurationError(f"{self.sensor_id}: humidity_offset must be finite")

    def _refresh(self, gateway: Gateway, forced_refresh: bool) -> None:
        enabled = self.enabled_channels
        for channel, prop in CHANNEL_PROPERTIES.items():
            if channel not in enabled:
                continue
            value = gateway.read_decimal(self.sensor_id, prop)
            if not math.isfinite(value):
                raise CommunicationError(f"{self.sensor_id}: {prop} is not a finite number: {value!r}")
            if channel == "humidity":
                value = min(100.0, max(0.0, value + self._humidity_offset))
            self._post_state(channel, value, forced_refresh)
        logger.debug("%s refreshed %d channel(s)", self.sensor_id, len(enabled))
