from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from threading import Lock
from typing import Optional

from ..domain.errors import CommunicationError
from ..domain.models import PresenceState, SensorId, SensorType

logger = logging.getLogger(__name__)


@dataclass
class SimulatedSensor:
    chip: str
    present: bool = True
    properties: dict[str, str] = field(default_factory=dict)


# Property values a freshly plugged chip reports
DEFAULT_PROPERTIES: dict[str, dict[str, str]] = {
    "DS18B20": {f"temperature{r}": "21.5" for r in (9, 10, 11, 12)},
    "DS2413": {"sensed.0": "0", "sensed.1": "1"},
    "DS2406": {"sensed.0": "0"},
    "DS2408": {f"sensed.{i}": "0" for i in range(8)},
    "DS2423": {"counters.A": "0", "counters.B": "0"},
    "DS2438": {"temperature": "21.0", "humidity": "45.0", "VDD": "5.0", "VAD": "2.5"},
    "DS2401": {},
}


class SimulatedOwGateway:
    """
    In-memory bus for development and tests.
    Values are stored as text, the way a gateway returns them.
    """

    def __init__(self, gateway_id: str = "sim_gateway") -> None:
        self.gateway_id = gateway_id
        self._lock = Lock()
        self._sensors: dict[str, SimulatedSensor] = {}
        self._offline = False
        self._failure_rate = 0.0  # e.g. 0.02 to fail 2% of calls
        self.calls: Counter[str] = Counter()

    # --- simulation controls ---

    def add_sensor(self, sensor_id: SensorId, chip: str, properties: Optional[dict[str, str]] = None) -> None:
        props = dict(DEFAULT_PROPERTIES.get(chip.upper(), {}))
        props.update(properties or {})
        with self._lock:
            self._sensors[sensor_id.id] = SimulatedSensor(chip=chip.upper(), properties=props)

    def remove_sensor(self, sensor_id: SensorId) -> None:
        with self._lock:
            self._sensors.pop(sensor_id.id, None)

    def set_value(self, sensor_id: SensorId, prop: str, value: object) -> None:
        if isinstance(value, bool):
            value = "1" if value else "0"
        with self._lock:
            self._sensor(sensor_id).properties[prop] = str(value)

    def set_present(self, sensor_id: SensorId, present: bool) -> None:
        with self._lock:
            self._sensor(sensor_id).present = present

    def set_offline(self, offline: bool) -> None:
        self._offline = offline
        logger.info("simulated gateway %s offline=%s", self.gateway_id, offline)

    def set_failure_rate(self, rate: float) -> None:
        self._failure_rate = max(0.0, min(1.0, rate))

    def status(self) -> dict:
        with self._lock:
            return {
                "gateway_id": self.gateway_id,
                "offline": self._offline,
                "failure_rate": self._failure_rate,
                "sensors": {
                    sid: {"chip": s.chip, "present": s.present, "properties": dict(s.properties)}
                    for sid, s in self._sensors.items()
                },
                "calls": dict(self.calls),
            }

    # --- Gateway ---

    def check_presence(self, sensor_id: SensorId) -> PresenceState:
        self._call("check_presence")
        with self._lock:
            s = self._sensors.get(sensor_id.id)
            return PresenceState.ON if s is not None and s.present else PresenceState.OFF

    def get_type(self, sensor_id: SensorId) -> SensorType:
        self._call("get_type")
        with self._lock:
            return SensorType.from_chip(self._reachable(sensor_id).chip)

    def read_decimal(self, sensor_id: SensorId, prop: str) -> float:
        raw = self._read(sensor_id, prop)
        try:
            return float(raw)
        except ValueError:
            raise CommunicationError(f"{sensor_id}/{prop}: not a number: {raw!r}")

    def read_int(self, sensor_id: SensorId, prop: str) -> int:
        raw = self._read(sensor_id, prop)
        try:
            return int(raw)
        except ValueError:
            raise CommunicationError(f"{sensor_id}/{prop}: not an integer: {raw!r}")

    def read_bool(self, sensor_id: SensorId, prop: str) -> bool:
        raw = self._read(sensor_id, prop)
        if raw not in ("0", "1"):
            raise CommunicationError(f"{sensor_id}/{prop}: not a boolean: {raw!r}")
        return raw == "1"

    def close(self) -> None:
        return None

    def _read(self, sensor_id: SensorId, prop: str) -> str:
        self._call("read")
        with self._lock:
            props = self._reachable(sensor_id).properties
            if prop not in props:
                raise CommunicationError(f"{sensor_id}/{prop}: no such property")
            return props[prop]

    def _call(self, op: str) -> None:
        self.calls[op] += 1
        if self._offline:
            raise CommunicationError(f"gateway {self.gateway_id} unreachable")
        if self._failure_rate > 0.0 and random.random() < self._failure_rate:
            raise CommunicationError(f"gateway {self.gateway_id}: simulated timeout")

    def _sensor(self, sensor_id: SensorId) -> SimulatedSensor:
        s = self._sensors.get(sensor_id.id)
        if s is None:
            raise KeyError(f"Unknown simulated sensor {sensor_id}")
        return s

    def _reachable(self, sensor_id: SensorId) -> SimulatedSensor:
        s = self._sensors.get(sensor_id.id)
        if s is None or not s.present:
            raise CommunicationError(f"{sensor_id} not found on bus")
        return s
