from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .state_bus import StateBus
from .thing import SensorThing
from ..core.config import settings
from ..core.timeutil import now_utc
from ..domain.interfaces import Gateway, Repository
from ..domain.models import SensorId, ThingStatus


logger = logging.getLogger(__name__)


@dataclass
class LiveState:
    cycles: int = 0
    last_cycle_utc: Optional[datetime] = None
    last_cycle_forced: bool = False
    things_total: int = 0
    things_online: int = 0
    last_error: Optional[str] = None


class PollerService:
    """
    Drives every SensorThing on a fixed interval. Gateway calls are blocking,
    so each thing is polled in the default executor, one after another.
    """

    def __init__(
        self,
        things: list[SensorThing],
        gateway: Gateway,
        bus: StateBus,
        repo: Repository,
        poll_seconds: Optional[float] = None,
        forced_refresh_cycles: Optional[int] = None,
    ) -> None:
        self._things = {t.sensor_id: t for t in things}
        self._gateway = gateway
        self._bus = bus
        self._repo = repo
        self._poll_seconds = settings.poll_seconds if poll_seconds is None else poll_seconds
        self._forced_every = settings.forced_refresh_cycles if forced_refresh_cycles is None else forced_refresh_cycles

        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        self._force_next = True
        self.live = LiveState(things_total=len(self._things))

    @property
    def gateway(self) -> Gateway:
        return self._gateway

    def things(self) -> list[SensorThing]:
        return list(self._things.values())

    def get_thing(self, sensor_id: str) -> Optional[SensorThing]:
        try:
            return self._things.get(str(SensorId(sensor_id)))
        except ValueError:
            return None

    def request_forced_refresh(self) -> None:
        self._force_next = True

    async def start(self) -> None:
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name="poller_loop")

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            await self._task
            self._task = None
        for thing in self._things.values():
            thing.dispose()

    async def poll_thing(self, thing: SensorThing, forced: bool) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, thing.poll, self._gateway, forced)

    async def run_cycle(self) -> None:
        forced = self._force_next or (
            self._forced_every > 0 and self.live.cycles % self._forced_every == 0
        )
        self._force_next = False

        for thing in self._things.values():
            try:
                await self.poll_thing(thing, forced)
            except Exception as e:
                # one broken sensor must not abort the cycle
                self.live.last_error = f"{thing.sensor_id}: {e}"
                logger.exception("Polling %s failed: %s", thing.sensor_id, e)

        batch = self._bus.drain()
        try:
            await self._repo.insert_updates(batch)
        except Exception as e:
            # kept for the next cycle, unchanged values are not re-sent
            self._bus.requeue(batch)
            self.live.last_error = f"persist: {e}"
            logger.exception("Persisting %d state update(s) failed: %s", len(batch), e)

        self.live.cycles += 1
        self.live.last_cycle_utc = now_utc()
        self.live.last_cycle_forced = forced
        self.live.things_online = sum(1 for t in self._things.values() if t.status is ThingStatus.ONLINE)
        logger.debug(
            "Poll cycle %d done (forced=%s, online=%d/%d)",
            self.live.cycles, forced, self.live.things_online, self.live.things_total,
        )

    async def _run(self) -> None:
        logger.info(
            "Poller loop started (poll_seconds=%s forced_refresh_cycles=%s things=%d)",
            self._poll_seconds,
            self._forced_every,
            len(self._things),
        )

        while not self._stop.is_set():
            await self.run_cycle()

            # sleep with cancellation awareness
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._poll_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Poller loop stopped")
