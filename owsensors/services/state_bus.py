from __future__ import annotations

import logging
from collections import deque
from threading import Lock
from typing import Optional

from ..core.timeutil import now_utc
from ..domain.models import PresenceState, StateUpdate, StateValue

logger = logging.getLogger(__name__)

PRESENCE_CHANNEL = "present"


class StateBus:
    """
    Latest value per (sensor, channel) plus a queue of not-yet-persisted updates.
    Written from executor threads by the poller, read from the event loop.
    """

    def __init__(self, max_pending: int = 10_000) -> None:
        self._lock = Lock()
        self._latest: dict[tuple[str, str], StateUpdate] = {}
        self._pending: deque[StateUpdate] = deque(maxlen=max_pending)

    def publish(self, sensor_id: str, channel: str, value: StateValue) -> StateUpdate:
        update = StateUpdate(ts_utc=now_utc(), sensor_id=sensor_id, channel=channel, value=value)
        with self._lock:
            self._latest[(sensor_id, channel)] = update
            self._pending.append(update)
        logger.debug("state %s/%s = %r", sensor_id, channel, value)
        return update

    def publish_presence(self, sensor_id: str, state: PresenceState) -> StateUpdate:
        return self.publish(sensor_id, PRESENCE_CHANNEL, state.value)

    def latest(self, sensor_id: Optional[str] = None) -> list[StateUpdate]:
        with self._lock:
            updates = list(self._latest.values())
        if sensor_id is not None:
            updates = [u for u in updates if u.sensor_id == sensor_id]
        return sorted(updates, key=lambda u: (u.sensor_id, u.channel))

    def drain(self) -> list[StateUpdate]:
        with self._lock:
            out = list(self._pending)
            self._pending.clear()
        return out

    def requeue(self, updates: list[StateUpdate]) -> None:
        """Put a drained batch back in front of anything published since."""
        if not updates:
            return
        with self._lock:
            merged = list(updates) + list(self._pending)
            self._pending.clear()
            # maxlen keeps the newest entries
            self._pending.extend(merged)
