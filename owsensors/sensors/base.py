from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable

from ..domain.errors import CommunicationError, ConfigurationError, NotConfiguredError
from ..domain.interfaces import Gateway, UpdateSink
from ..domain.models import (
    ConfigState,
    PresenceResult,
    PresenceState,
    SensorId,
    SensorType,
    StateValue,
)

logger = logging.getLogger(__name__)


class SensorDevice(ABC):
    """
    One physical sensor on the bus.

    Owns its address, cached type, configuration state and enabled channels.
    The callback is owned by the handler that created the device and outlives it.
    Not thread-safe: the owner serializes calls on a single instance.
    """

    def __init__(
        self,
        sensor_id: SensorId,
        callback: UpdateSink,
        sensor_type: SensorType = SensorType.UNKNOWN,
    ) -> None:
        self._sensor_id = sensor_id
        self._callback = callback
        self._sensor_type = sensor_type
        self._config_state = ConfigState.UNCONFIGURED
        self._enabled_channels: set[str] = set()
        self._last_posted: dict[str, StateValue] = {}

    # --- variant hooks ---

    @abstractmethod
    def _configure_channels(self) -> None:
        """Validate settings and channel layout. Raise ConfigurationError if invalid."""
        ...

    @abstractmethod
    def _refresh(self, gateway: Gateway, forced_refresh: bool) -> None:
        """Read enabled channels through the gateway and post them via _post_state."""
        ...

    # --- lifecycle ---

    def configure_channels(self) -> None:
        self._config_state = ConfigState.UNCONFIGURED
        self._configure_channels()
        self._config_state = ConfigState.CONFIGURED
        self._last_posted.clear()

    def refresh(self, gateway: Gateway, forced_refresh: bool) -> None:
        """
        Pull enabled channel values and forward them to the callback.
        forced_refresh=True posts every value even if unchanged.
        Raises CommunicationError; NotConfiguredError before configure_channels().
        """
        if self._config_state is not ConfigState.CONFIGURED:
            raise NotConfiguredError(f"{self._sensor_id} refreshed before channels were configured")
        self._refresh(gateway, forced_refresh)

    @property
    def is_configured(self) -> bool:
        return self._config_state is ConfigState.CONFIGURED

    @property
    def config_state(self) -> ConfigState:
        return self._config_state

    # --- channels ---

    def enable_channel(self, channel_id: str) -> None:
        self._enabled_channels.add(channel_id)

    def disable_channel(self, channel_id: str) -> None:
        self._enabled_channels.discard(channel_id)
        self._last_posted.pop(channel_id, None)

    @property
    def enabled_channels(self) -> frozenset[str]:
        return frozenset(self._enabled_channels)

    def _require_known_channels(self, known: Iterable[str]) -> None:
        unknown = self._enabled_channels.difference(known)
        if unknown:
            raise ConfigurationError(
                f"{self._sensor_id}: unsupported channel(s) {', '.join(sorted(unknown))}"
            )

    def _post_state(self, channel_id: str, value: StateValue, forced: bool) -> None:
        if not forced and channel_id in self._last_posted and self._last_posted[channel_id] == value:
            return
        self._last_posted[channel_id] = value
        self._callback.post_update(channel_id, value)

    # --- identity / type ---

    @property
    def sensor_id(self) -> SensorId:
        return self._sensor_id

    @property
    def sensor_type(self) -> SensorType:
        """Cached type, UNKNOWN until resolve_type() succeeds."""
        return self._sensor_type

    def resolve_type(self, gateway: Gateway) -> SensorType:
        if self._sensor_type is SensorType.UNKNOWN:
            # a failed query raises before assignment, so the cache stays UNKNOWN
            self._sensor_type = gateway.get_type(self._sensor_id)
            logger.debug("sensor %s resolved to type %s", self._sensor_id, self._sensor_type.value)
        return self._sensor_type

    # --- presence ---

    def _query_presence(self, gateway: Gateway) -> PresenceResult:
        try:
            return PresenceResult(state=gateway.check_presence(self._sensor_id))
        except CommunicationError as e:
            return PresenceResult(error=str(e))
        except Exception as e:
            logger.warning("unexpected gateway failure checking %s", self._sensor_id, exc_info=True)
            return PresenceResult(error=f"{type(e).__name__}: {e}")

    def check_presence(self, gateway: Gateway) -> bool:
        """
        Query presence and forward it to the callback.
        Gateway failures are logged and reported as absent; nothing is raised or forwarded.
        """
        result = self._query_presence(gateway)
        if not result.ok:
            logger.debug(
                "error refreshing presence %s on gateway %s: %s",
                self._sensor_id,
                getattr(gateway, "gateway_id", "?"),
                result.error,
            )
            return False
        self._callback.update_presence_status(result.state)
        return result.state is PresenceState.ON

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._sensor_id}, type={self._sensor_type.value}, {self._config_state.value})"
