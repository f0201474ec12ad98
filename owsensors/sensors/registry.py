from __future__ import annotations

from typing import Any, Mapping, Optional

from .base import SensorDevice
from .counter import CounterSensor
from .digital_io import DigitalIoSensor
from .identification import IdentificationDevice
from .multisensor import MultiSensor
from .temperature import TemperatureSensor
from ..domain.errors import ConfigurationError
from ..domain.interfaces import Gateway, UpdateSink
from ..domain.models import SensorId, SensorType

DEVICE_CLASSES: dict[SensorType, type[SensorDevice]] = {
    SensorType.TEMPERATURE: TemperatureSensor,
    SensorType.SWITCH: DigitalIoSensor,
    SensorType.COUNTER: CounterSensor,
    SensorType.MULTISENSOR: MultiSensor,
    SensorType.IDENTIFICATION: IdentificationDevice,
}


class PendingDevice(SensorDevice):
    """Stand-in used while the sensor type is still unknown: presence and type lookup only."""

    def __init__(self, sensor_id: SensorId, callback: UpdateSink):
        super().__init__(sensor_id, callback)

    def _configure_channels(self) -> None:
        raise ConfigurationError(f"{self.sensor_id}: sensor type not resolved yet")

    def _refresh(self, gateway: Gateway, forced_refresh: bool) -> None:
        return None


def supported_types() -> list[SensorType]:
    return list(DEVICE_CLASSES)


def create_device(
    sensor_id: SensorId,
    sensor_type: SensorType,
    callback: UpdateSink,
    settings: Optional[Mapping[str, Any]] = None,
) -> SensorDevice:
    cls = DEVICE_CLASSES.get(sensor_type)
    if cls is None:
        raise ConfigurationError(f"{sensor_id}: unsupported sensor type {sensor_type.value}")
    return cls(sensor_id, callback, settings)
