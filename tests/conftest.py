import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from owsensors.domain.errors import CommunicationError
from owsensors.domain.models import PresenceState, SensorId, SensorType
from owsensors.drivers.gateway_sim import SimulatedOwGateway


class RecordingSink:
    """Update sink that remembers every notification."""

    def __init__(self) -> None:
        self.updates: List[Tuple[str, Any]] = []
        self.presence: List[PresenceState] = []

    def post_update(self, channel_id: str, value: Any) -> None:
        self.updates.append((channel_id, value))

    def update_presence_status(self, state: PresenceState) -> None:
        self.presence.append(state)


class ScriptedGateway:
    """Gateway whose answers and failures are set per test; counts every call."""

    gateway_id = "scripted"

    def __init__(self) -> None:
        self.presence: PresenceState = PresenceState.ON
        self.sensor_type: SensorType = SensorType.TEMPERATURE
        self.values: Dict[str, Any] = {}
        self.fail: Dict[str, Exception] = {}
        self.calls: Dict[str, int] = {}

    def _enter(self, op: str) -> None:
        self.calls[op] = self.calls.get(op, 0) + 1
        if op in self.fail:
            raise self.fail[op]

    def check_presence(self, sensor_id: SensorId) -> PresenceState:
        self._enter("check_presence")
        return self.presence

    def get_type(self, sensor_id: SensorId) -> SensorType:
        self._enter("get_type")
        return self.sensor_type

    def _value(self, prop: str) -> Any:
        self._enter("read")
        if prop not in self.values:
            raise CommunicationError(f"no value for {prop}")
        return self.values[prop]

    def read_decimal(self, sensor_id: SensorId, prop: str) -> float:
        return float(self._value(prop))

    def read_int(self, sensor_id: SensorId, prop: str) -> int:
        return int(self._value(prop))

    def read_bool(self, sensor_id: SensorId, prop: str) -> bool:
        return bool(self._value(prop))

    def close(self) -> None:
        pass


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture()
def temp_id() -> SensorId:
    return SensorId("28.111111111111")


@pytest.fixture()
def sim_gateway() -> SimulatedOwGateway:
    gw = SimulatedOwGateway()
    gw.add_sensor(SensorId("28.111111111111"), "DS18B20")
    gw.add_sensor(SensorId("3A.222222222222"), "DS2413")
    gw.add_sensor(SensorId("1D.333333333333"), "DS2423")
    gw.add_sensor(SensorId("26.444444444444"), "DS2438")
    gw.add_sensor(SensorId("01.555555555555"), "DS2401")
    return gw
