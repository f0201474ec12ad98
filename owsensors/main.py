from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from pydantic import ValidationError

from .core.config import settings
from .core.log import configure_logging

from .api.routes import router as api_router
import owsensors.api.routes as routes_module
from .api.schemas import SensorConfigIn, SensorsFile

from .domain.interfaces import Gateway
from .domain.models import SensorId, SensorType
from .drivers.gateway_sim import SimulatedOwGateway
from .drivers.owhttp_gateway import OwHttpConfig, OwHttpGateway
from .services.poller import PollerService
from .services.state_bus import StateBus
from .services.thing import SensorThing
from .storage.sqlite_repo import SQLiteRepository


logger = logging.getLogger(__name__)

DEFAULT_SENSORS_FILE = Path(__file__).resolve().parent / "config" / "sensors.json"


def _load_sensor_configs() -> list[SensorConfigIn]:
    path = Path(settings.sensors_file) if settings.sensors_file else DEFAULT_SENSORS_FILE
    try:
        return SensorsFile.model_validate(json.loads(path.read_text())).sensors
    except (OSError, ValueError, ValidationError) as e:
        logger.warning("Failed to load %s, using a single simulated sensor: %s", path, e)
        return [
            SensorConfigIn(
                id="28.111111111111",
                label="Temperature",
                type=SensorType.TEMPERATURE,
                chip="DS18B20",
                channels=["temperature"],
            ),
        ]


sensor_configs = _load_sensor_configs()
sim_gateway: SimulatedOwGateway | None = None


def build_gateway() -> Gateway:
    global sim_gateway

    if settings.gateway_mode.lower() == "http":
        sim_gateway = None
        return OwHttpGateway(
            OwHttpConfig(
                base_url=settings.gateway_url,
                timeout_s=settings.gateway_timeout_s,
                retries=settings.gateway_retries,
            )
        )

    # default to sim, populated from the configured sensors
    sim_gateway = SimulatedOwGateway()
    for cfg in sensor_configs:
        if cfg.chip:
            sim_gateway.add_sensor(SensorId(cfg.id), cfg.chip)
    return sim_gateway


def build_things(bus: StateBus) -> list[SensorThing]:
    return [SensorThing(cfg.to_config(), bus) for cfg in sensor_configs]


# --- Singletons ---
# gateway and things are created per lifespan, the poller disposes them on stop
bus = StateBus()
repo = SQLiteRepository(settings.sqlite_path)
poller: PollerService | None = None


def get_poller() -> PollerService:
    assert poller is not None
    return poller


def get_repo() -> SQLiteRepository:
    return repo


def get_sim_gateway() -> SimulatedOwGateway:
    if sim_gateway is None:
        raise RuntimeError("Simulated gateway not available (gateway_mode is not 'sim').")
    return sim_gateway


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info(
        "Starting %s (gateway=%s, sensors=%d)",
        settings.app_name, settings.gateway_mode, len(sensor_configs),
    )

    await repo.init()

    global poller
    gateway = build_gateway()
    poller = PollerService(things=build_things(bus), gateway=gateway, bus=bus, repo=repo)
    await poller.start()

    try:
        yield
    finally:
        await poller.stop()
        gateway.close()

        logger.info("Shutdown complete")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Make the dependency functions in routes resolve to the real ones
app.dependency_overrides[routes_module.get_poller] = get_poller
app.dependency_overrides[routes_module.get_repo] = get_repo
app.dependency_overrides[routes_module.get_sim_gateway] = get_sim_gateway

app.include_router(api_router, prefix="/api")
