from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

# family.address[crc], optionally behind hub branches (1F.xxxx/main/28.xxxx)
_SENSOR_ID_RE = re.compile(
    r"^(?:[0-9A-F]{2}\.[0-9A-F]{12}(?:[0-9A-F]{2})?/(?:main|aux)/)*"
    r"([0-9A-F]{2})\.[0-9A-F]{12}(?:[0-9A-F]{2})?$"
)
_BRANCHES = ("main", "aux")

StateValue = Union[float, int, bool, str]


@dataclass(frozen=True)
class SensorId:
    """Bus address of a single sensor, e.g. ``28.111111111111``."""

    full_path: str
    family: str = field(init=False, compare=False)

    def __init__(self, path: str) -> None:
        parts = path.strip().strip("/").split("/")
        cleaned = "/".join(p.lower() if p.lower() in _BRANCHES else p.upper() for p in parts)
        m = _SENSOR_ID_RE.match(cleaned)
        if not m:
            raise ValueError(f"Invalid sensor id: {path!r}")
        object.__setattr__(self, "full_path", cleaned)
        object.__setattr__(self, "family", m.group(1))

    @property
    def id(self) -> str:
        return self.full_path.rsplit("/", 1)[-1]

    def __str__(self) -> str:
        return self.full_path


class SensorType(str, Enum):
    UNKNOWN = "UNKNOWN"
    TEMPERATURE = "TEMPERATURE"
    SWITCH = "SWITCH"
    COUNTER = "COUNTER"
    MULTISENSOR = "MULTISENSOR"
    IDENTIFICATION = "IDENTIFICATION"

    @classmethod
    def from_chip(cls, chip: str) -> SensorType:
        return _CHIP_TYPES.get(chip.strip().upper(), cls.UNKNOWN)


_CHIP_TYPES: dict[str, SensorType] = {
    "DS18B20": SensorType.TEMPERATURE,
    "DS18S20": SensorType.TEMPERATURE,
    "DS1822": SensorType.TEMPERATURE,
    "MAX31826": SensorType.TEMPERATURE,
    "DS2406": SensorType.SWITCH,
    "DS2408": SensorType.SWITCH,
    "DS2413": SensorType.SWITCH,
    "DS2423": SensorType.COUNTER,
    "DS2438": SensorType.MULTISENSOR,
    "DS2401": SensorType.IDENTIFICATION,
    "DS1420": SensorType.IDENTIFICATION,
}


class PresenceState(str, Enum):
    ON = "ON"
    OFF = "OFF"


class ConfigState(str, Enum):
    UNCONFIGURED = "UNCONFIGURED"
    CONFIGURED = "CONFIGURED"


@dataclass(frozen=True)
class PresenceResult:
    state: Optional[PresenceState] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is not None


@dataclass(frozen=True)
class StateUpdate:
    ts_utc: datetime
    sensor_id: str
    channel: str
    value: StateValue


@dataclass(frozen=True)
class SensorConfig:
    sensor_id: SensorId
    label: str = ""
    sensor_type: SensorType = SensorType.UNKNOWN  # UNKNOWN = accept whatever the gateway reports
    channels: tuple[str, ...] = ()
    settings: dict[str, Any] = field(default_factory=dict)


class ThingStatus(str, Enum):
    UNKNOWN = "UNKNOWN"
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"


class StatusDetail(str, Enum):
    NONE = "NONE"
    NOT_INITIALIZED = "NOT_INITIALIZED"
    COMMUNICATION_ERROR = "COMMUNICATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    GONE = "GONE"
