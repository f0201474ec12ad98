from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .base import SensorDevice
from ..domain.errors import CommunicationError, ConfigurationError
from ..domain.interfaces import Gateway, UpdateSink
from ..domain.models import SensorId, SensorType

logger = logging.getLogger(__name__)

CHANNEL_TEMPERATURE = "temperature"

RESOLUTIONS = (9, 10, 11, 12)
POR_VALUE = 85.0  # power-on reset register content, never a real reading


class TemperatureSensor(SensorDevice):
    """DS18B20 / DS18S20 / DS1822 family."""

    def __init__(
        self,
        sensor_id: SensorId,
        callback: UpdateSink,
        settings: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(sensor_id, callback, SensorType.TEMPERATURE)
        self._settings = dict(settings or {})
        self._resolution = 12
        self._ignore_por = True

    def _configure_channels(self) -> None:
        self._require_known_channels((CHANNEL_TEMPERATURE,))

        try:
            resolution = int(self._settings.get("resolution", 12))
        except (TypeError, ValueError):
            raise ConfigurationError(f"{self.sensor_id}: resolution must be an integer")
        if resolution not in RESOLUTIONS:
            raise ConfigurationError(
                f"{self.sensor_id}: resolution {resolution} not in {RESOLUTIONS}"
            )
        self._resolution = resolution
        self._ignore_por = bool(self._settings.get("ignore_por", True))

    def _refresh(self, gateway: Gateway, forced_refresh: bool) -> None:
        if CHANNEL_TEMPERATURE not in self.enabled_channels:
            return

        value = gateway.read_decimal(self.sensor_id, f"temperature{self._resolution}")
        if self._ignore_por and value == POR_VALUE:
            raise CommunicationError(f"{self.sensor_id}: power-on reset value {POR_VALUE} read")

        logger.debug("%s temperature=%.3f", self.sensor_id, value)
        self._post_state(CHANNEL_TEMPERATURE, value, forced_refresh)
