from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..domain.errors import CommunicationError
from ..domain.models import PresenceState, SensorId, SensorType

logger = logging.getLogger(__name__)


@dataclass
class OwHttpConfig:
    base_url: str = "http://127.0.0.1:2121"
    timeout_s: float = 5.0
    retries: int = 1


class OwHttpGateway:
    """
    Gateway that serves sensor properties as plain text over HTTP:
    GET {base_url}/{sensor_path}/{property} -> "21.5".
    Responsible for: connection pooling, timeouts, transport retries.
    """

    def __init__(self, cfg: OwHttpConfig, transport: Optional[httpx.BaseTransport] = None):
        self.cfg = cfg
        self.gateway_id = cfg.base_url
        self._client = httpx.Client(
            base_url=cfg.base_url,
            timeout=cfg.timeout_s,
            transport=transport or httpx.HTTPTransport(retries=cfg.retries),
        )

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str) -> httpx.Response:
        try:
            return self._client.get(path)
        except httpx.HTTPError as e:
            raise CommunicationError(f"gateway {self.gateway_id} request {path} failed: {e}") from e

    def read_text(self, sensor_id: SensorId, prop: str) -> str:
        path = f"/{sensor_id.full_path}/{prop}"
        resp = self._get(path)
        if resp.status_code != 200:
            raise CommunicationError(f"gateway {self.gateway_id} GET {path}: HTTP {resp.status_code}")
        return resp.text.strip()

    def check_presence(self, sensor_id: SensorId) -> PresenceState:
        resp = self._get(f"/{sensor_id.full_path}/id")
        if resp.status_code == 200:
            return PresenceState.ON
        if resp.status_code == 404:
            return PresenceState.OFF
        raise CommunicationError(f"gateway {self.gateway_id} presence {sensor_id}: HTTP {resp.status_code}")

    def get_type(self, sensor_id: SensorId) -> SensorType:
        chip = self.read_text(sensor_id, "type")
        sensor_type = SensorType.from_chip(chip)
        if sensor_type is SensorType.UNKNOWN:
            logger.warning("sensor %s reports unsupported chip %r", sensor_id, chip)
        return sensor_type

    def read_decimal(self, sensor_id: SensorId, prop: str) -> float:
        raw = self.read_text(sensor_id, prop)
        try:
            return float(raw)
        except ValueError:
            raise CommunicationError(f"{sensor_id}/{prop}: not a number: {raw!r}")

    def read_int(self, sensor_id: SensorId, prop: str) -> int:
        raw = self.read_text(sensor_id, prop)
        try:
            return int(raw)
        except ValueError:
            raise CommunicationError(f"{sensor_id}/{prop}: not an integer: {raw!r}")

    def read_bool(self, sensor_id: SensorId, prop: str) -> bool:
        raw = self.read_text(sensor_id, prop)
        if raw not in ("0", "1"):
            raise CommunicationError(f"{sensor_id}/{prop}: not a boolean: {raw!r}")
        return raw == "1"
