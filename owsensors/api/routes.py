from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..core.config import settings
from ..core.timeutil import now_utc
from ..domain.errors import ConfigurationError
from ..domain.models import SensorId
from ..drivers.gateway_sim import SimulatedOwGateway
from ..services.poller import PollerService
from ..services.thing import SensorThing
from ..storage.sqlite_repo import SQLiteRepository
from .schemas import (
    ChannelToggleRequest,
    SimOfflineRequest,
    SimPresenceRequest,
    SimValuesRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependency getters ---
# Placeholders; main.py points them at the real objects via app.dependency_overrides.
def get_poller() -> PollerService:  # overridden in main
    raise RuntimeError("Poller dependency not configured")

def get_repo() -> SQLiteRepository:  # overridden in main
    raise RuntimeError("Repo dependency not configured")

def get_sim_gateway() -> SimulatedOwGateway:  # overridden in main
    raise RuntimeError("Simulated gateway dependency not configured")


def _thing_or_404(poller: PollerService, sensor_id: str) -> SensorThing:
    thing = poller.get_thing(sensor_id)
    if thing is None:
        raise HTTPException(status_code=404, detail=f"Unknown sensor: {sensor_id}")
    return thing


def _sensor_id_or_400(raw: str) -> SensorId:
    try:
        return SensorId(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/live")
async def get_live(poller: PollerService = Depends(get_poller)):
    live = poller.live
    return {
        "app": settings.app_name,
        "gateway": poller.gateway.gateway_id,
        "cycles": live.cycles,
        "last_cycle_utc": live.last_cycle_utc.isoformat() if live.last_cycle_utc else None,
        "last_cycle_forced": live.last_cycle_forced,
        "things_total": live.things_total,
        "things_online": live.things_online,
        "last_error": live.last_error,
    }


@router.get("/things")
async def list_things(poller: PollerService = Depends(get_poller)):
    return {"things": [t.snapshot() for t in poller.things()]}


@router.post("/refresh")
async def refresh_all(poller: PollerService = Depends(get_poller)):
    poller.request_forced_refresh()
    return {"ok": True}


@router.post("/things/{sensor_id:path}/refresh")
async def refresh_thing(sensor_id: str, poller: PollerService = Depends(get_poller)):
    thing = _thing_or_404(poller, sensor_id)
    ok = await poller.poll_thing(thing, forced=True)
    return {"ok": ok, "thing": thing.snapshot()}


@router.put("/things/{sensor_id:path}/channels/{channel}")
async def toggle_channel(
    sensor_id: str,
    channel: str,
    req: ChannelToggleRequest,
    poller: PollerService = Depends(get_poller),
):
    thing = _thing_or_404(poller, sensor_id)
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, thing.set_channel_enabled, channel, req.enabled)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "thing": thing.snapshot()}


@router.get("/things/{sensor_id:path}")
async def get_thing(sensor_id: str, poller: PollerService = Depends(get_poller)):
    return _thing_or_404(poller, sensor_id).snapshot()


@router.get("/history")
async def history(
    minutes: int = 60,
    limit: int = 5000,
    sensor_id: Optional[str] = None,
    repo: SQLiteRepository = Depends(get_repo),
):
    end = now_utc()
    start = end - timedelta(minutes=max(1, minutes))
    sid = str(_sensor_id_or_400(sensor_id)) if sensor_id else None
    rows = await repo.query_updates(start.isoformat(), end.isoformat(), limit=min(limit, 20000), sensor_id=sid)
    return {
        "start_utc": start.isoformat(),
        "end_utc": end.isoformat(),
        "rows": [
            {"ts_utc": u.ts_utc.isoformat(), "sensor_id": u.sensor_id, "channel": u.channel, "value": u.value}
            for u in rows
        ],
    }


@router.get("/gateway/discover")
async def discover_gateways():
    from ..services.mdns_discovery import discover_gateways
    gateways = await discover_gateways(timeout=3.0)
    return {"gateways": gateways}


# --- Simulation endpoints ---
@router.get("/sim/status")
async def sim_status(gw: SimulatedOwGateway = Depends(get_sim_gateway)):
    return gw.status()


@router.post("/sim/sensors/{sensor_id:path}/values")
async def sim_set_values(
    sensor_id: str,
    req: SimValuesRequest,
    gw: SimulatedOwGateway = Depends(get_sim_gateway),
):
    sid = _sensor_id_or_400(sensor_id)
    try:
        for prop, value in req.values.items():
            gw.set_value(sid, prop, value)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"ok": True, "values": req.values}


@router.post("/sim/sensors/{sensor_id:path}/presence")
async def sim_set_presence(
    sensor_id: str,
    req: SimPresenceRequest,
    gw: SimulatedOwGateway = Depends(get_sim_gateway),
):
    sid = _sensor_id_or_400(sensor_id)
    try:
        gw.set_present(sid, req.present)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"ok": True, "present": req.present}


@router.post("/sim/offline")
async def sim_set_offline(req: SimOfflineRequest, gw: SimulatedOwGateway = Depends(get_sim_gateway)):
    gw.set_offline(req.offline)
    gw.set_failure_rate(req.failure_rate)
    return {"ok": True, "offline": req.offline, "failure_rate": req.failure_rate}
