from __future__ import annotations

from typing import Any, Mapping, Optional

from .base import SensorDevice
from ..domain.errors import ConfigurationError
from ..domain.interfaces import Gateway, UpdateSink
from ..domain.models import SensorId, SensorType

CHANNEL_COUNTS = (1, 2, 8)  # DS2406 / DS2413 / DS2408

# family code -> PIO lines the chip has
FAMILY_CHANNELS = {"12": 1, "3A": 2, "29": 8}


def digital_channel(index: int) -> str:
    return f"digital{index}"


class DigitalIoSensor(SensorDevice):
    """PIO switches; each enabled digitalN channel reports the sensed level."""

    def __init__(
        self,
        sensor_id: SensorId,
        callback: UpdateSink,
        settings: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(sensor_id, callback, SensorType.SWITCH)
        self._settings = dict(settings or {})
        self._channel_count = 2
        self._inverted: frozenset[int] = frozenset()

    def _configure_channels(self) -> None:
        available = FAMILY_CHANNELS.get(self.sensor_id.family)
        count = self._settings.get("channels", available or 2)
        if isinstance(count, bool) or count not in CHANNEL_COUNTS:
            raise ConfigurationError(f"{self.sensor_id}: channels must be one of {CHANNEL_COUNTS}, got {count!r}")
        if available is not None and count > available:
            raise ConfigurationError(
                f"{self.sensor_id}: chip family {self.sensor_id.family} has {available} channel(s), got {count}"
            )

        inverted = self._settings.get("inverted", [])
        try:
            inverted_set = frozenset(int(i) for i in inverted)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{self.sensor_id}: inverted must be a list of channel indexes")
        out_of_range = [i for i in inverted_set if not 0 <= i < count]
        if out_of_range:
            raise ConfigurationError(f"{self.sensor_id}: inverted index out of range: {sorted(out_of_range)}")

        self._require_known_channels(digital_channel(i) for i in range(count))
        self._channel_count = count
        self._inverted = inverted_set

    def _refresh(self, gateway: Gateway, forced_refresh: bool) -> None:
        enabled = self.enabled_channels
        for i in range(self._channel_count):
            channel = digital_channel(i)
            if channel not in enabled:
                continue
            sensed = gateway.read_bool(self.sensor_id, f"sensed.{i}")
            self._post_state(channel, sensed != (i in self._inverted), forced_refresh)
