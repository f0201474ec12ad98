from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional, Union

from ..domain.models import SensorConfig, SensorId, SensorType


class SensorConfigIn(BaseModel):
    id: str
    label: str = ""
    type: SensorType = SensorType.UNKNOWN
    chip: Optional[str] = None  # simulated gateway only
    channels: List[str] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def _valid_sensor_id(cls, v: str) -> str:
        return str(SensorId(v))

    def to_config(self) -> SensorConfig:
        return SensorConfig(
            sensor_id=SensorId(self.id),
            label=self.label,
            sensor_type=self.type,
            channels=tuple(self.channels),
            settings=dict(self.settings),
        )


class SensorsFile(BaseModel):
    sensors: List[SensorConfigIn]


class ChannelToggleRequest(BaseModel):
    enabled: bool


class SimValuesRequest(BaseModel):
    values: Dict[str, Union[bool, int, float, str]]


class SimPresenceRequest(BaseModel):
    present: bool


class SimOfflineRequest(BaseModel):
    offline: bool
    failure_rate: float = Field(default=0.0, ge=0.0, le=1.0)
