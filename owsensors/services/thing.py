from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Optional

from .state_bus import StateBus
from ..domain.errors import CommunicationError, ConfigurationError
from ..domain.interfaces import Gateway
from ..domain.models import (
    PresenceState,
    SensorConfig,
    SensorType,
    StateValue,
    StatusDetail,
    ThingStatus,
)
from ..sensors.base import SensorDevice
from ..sensors.registry import PendingDevice, create_device

logger = logging.getLogger(__name__)


class SensorThing:
    """
    Owning handler for one sensor: creates the device, receives its updates
    and turns failures into an operational status.

    All device calls go through self._lock, so scheduled polls and API-triggered
    refreshes of the same sensor never overlap.
    """

    def __init__(self, config: SensorConfig, bus: StateBus) -> None:
        self.config = config
        self._bus = bus
        self._lock = Lock()
        self._device: Optional[SensorDevice] = PendingDevice(config.sensor_id, self)
        self._disposed = False

        self.status = ThingStatus.UNKNOWN
        self.status_detail = StatusDetail.NOT_INITIALIZED
        self.status_message = ""
        self.presence: Optional[PresenceState] = None
        self.states: dict[str, StateValue] = {}

    @property
    def sensor_id(self) -> str:
        return str(self.config.sensor_id)

    @property
    def device(self) -> Optional[SensorDevice]:
        return self._device

    # --- UpdateSink ---

    def post_update(self, channel_id: str, value: StateValue) -> None:
        self.states[channel_id] = value
        self._bus.publish(self.sensor_id, channel_id, value)

    def update_presence_status(self, state: PresenceState) -> None:
        self.presence = state
        self._bus.publish_presence(self.sensor_id, state)
        # ONLINE is only set by poll() once the refresh went through
        if state is not PresenceState.ON:
            self._set_status(ThingStatus.OFFLINE, StatusDetail.GONE, "sensor not present on bus")

    # --- lifecycle ---

    def initialize(self, gateway: Gateway) -> bool:
        with self._lock:
            return self._initialize(gateway)

    def poll(self, gateway: Gateway, forced: bool = False) -> bool:
        """Presence check followed by a refresh. Returns True if fresh values were read."""
        with self._lock:
            if self._disposed or self.status_detail is StatusDetail.CONFIGURATION_ERROR:
                return False
            if not self._device.is_configured and not self._initialize(gateway):
                return False

            if not self._device.check_presence(gateway):
                if self.status is not ThingStatus.OFFLINE:
                    # presence query itself failed; the reason is already in the log
                    self._set_status(ThingStatus.OFFLINE, StatusDetail.COMMUNICATION_ERROR)
                return False

            try:
                self._device.refresh(gateway, forced)
            except CommunicationError as e:
                logger.warning("refresh of %s failed: %s", self.sensor_id, e)
                self._set_status(ThingStatus.OFFLINE, StatusDetail.COMMUNICATION_ERROR, str(e))
                return False

            self._set_status(ThingStatus.ONLINE)
            return True

    def set_channel_enabled(self, channel_id: str, enabled: bool) -> None:
        """Toggle a channel and re-apply the layout; an unsupported channel is rolled back."""
        with self._lock:
            if self._disposed or not self._device.is_configured:
                raise ConfigurationError(f"{self.sensor_id}: not initialized")
            device = self._device
            was_enabled = channel_id in device.enabled_channels
            if enabled:
                device.enable_channel(channel_id)
            else:
                device.disable_channel(channel_id)
            try:
                device.configure_channels()
            except ConfigurationError:
                if was_enabled:
                    device.enable_channel(channel_id)
                else:
                    device.disable_channel(channel_id)
                device.configure_channels()
                raise
            if not enabled:
                self.states.pop(channel_id, None)

    def dispose(self) -> None:
        with self._lock:
            self._disposed = True
            self._device = None
            self._set_status(ThingStatus.UNKNOWN, StatusDetail.NOT_INITIALIZED, "disposed")

    def _initialize(self, gateway: Gateway) -> bool:
        if self._disposed:
            return False
        try:
            sensor_type = self._device.resolve_type(gateway)
        except CommunicationError as e:
            logger.warning("could not read type of %s: %s", self.sensor_id, e)
            self._set_status(ThingStatus.OFFLINE, StatusDetail.COMMUNICATION_ERROR, str(e))
            return False

        expected = self.config.sensor_type
        if expected is not SensorType.UNKNOWN and sensor_type is not expected:
            return self._configuration_failed(
                f"gateway reports {sensor_type.value}, configured as {expected.value}"
            )

        try:
            device = create_device(self.config.sensor_id, sensor_type, self, self.config.settings)
            for channel in self.config.channels:
                device.enable_channel(channel)
            device.configure_channels()
        except ConfigurationError as e:
            return self._configuration_failed(str(e))

        self._device = device
        self._set_status(ThingStatus.UNKNOWN)
        logger.info(
            "sensor %s initialized as %s, channels=%s",
            self.sensor_id, sensor_type.value, sorted(device.enabled_channels),
        )
        return True

    def _configuration_failed(self, message: str) -> bool:
        logger.error("configuration of %s failed: %s", self.sensor_id, message)
        self._set_status(ThingStatus.OFFLINE, StatusDetail.CONFIGURATION_ERROR, message)
        return False

    def _set_status(
        self,
        status: ThingStatus,
        detail: StatusDetail = StatusDetail.NONE,
        message: str = "",
    ) -> None:
        if (status, detail) != (self.status, self.status_detail):
            logger.info("sensor %s status %s/%s %s", self.sensor_id, status.value, detail.value, message)
        self.status = status
        self.status_detail = detail
        self.status_message = message

    def snapshot(self) -> dict[str, Any]:
        device = self._device
        return {
            "sensor_id": self.sensor_id,
            "label": self.config.label,
            "sensor_type": device.sensor_type.value if device else SensorType.UNKNOWN.value,
            "configured": bool(device and device.is_configured),
            "channels": sorted(device.enabled_channels) if device else [],
            "status": self.status.value,
            "status_detail": self.status_detail.value,
            "status_message": self.status_message,
            "presence": self.presence.value if self.presence else None,
            "states": dict(self.states),
        }
