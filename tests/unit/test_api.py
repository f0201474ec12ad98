import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import owsensors.api.routes as routes
from owsensors.domain.models import SensorConfig, SensorId, SensorType
from owsensors.services.poller import PollerService
from owsensors.services.state_bus import StateBus
from owsensors.services.thing import SensorThing
from owsensors.storage.sqlite_repo import SQLiteRepository


@pytest.fixture()
def api(sim_gateway, tmp_path):
    bus = StateBus()
    things = [
        SensorThing(
            SensorConfig(SensorId("28.111111111111"), label="Living room",
                         sensor_type=SensorType.TEMPERATURE, channels=("temperature",)),
            bus,
        ),
        SensorThing(SensorConfig(SensorId("3A.222222222222"), channels=("digital0",)), bus),
    ]
    repo = SQLiteRepository(str(tmp_path / "api.db"))
    asyncio.run(repo.init())
    poller = PollerService(things=things, gateway=sim_gateway, bus=bus, repo=repo, poll_seconds=60)

    app = FastAPI()
    app.dependency_overrides[routes.get_poller] = lambda: poller
    app.dependency_overrides[routes.get_repo] = lambda: repo
    app.dependency_overrides[routes.get_sim_gateway] = lambda: sim_gateway
    app.include_router(routes.router, prefix="/api")
    with TestClient(app) as client:
        yield client, poller


def test_things_list_before_first_poll(api):
    client, _ = api
    body = client.get("/api/things").json()
    assert [t["sensor_id"] for t in body["things"]] == ["28.111111111111", "3A.222222222222"]
    assert all(t["status_detail"] == "NOT_INITIALIZED" for t in body["things"])


def test_refresh_thing_reports_values(api):
    client, _ = api
    body = client.post("/api/things/28.111111111111/refresh").json()
    assert body["ok"] is True
    assert body["thing"]["status"] == "ONLINE"
    assert body["thing"]["states"] == {"temperature": 21.5}

    single = client.get("/api/things/28.111111111111").json()
    assert single["label"] == "Living room"
    assert single["sensor_type"] == "TEMPERATURE"


def test_unknown_thing_is_404(api):
    client, _ = api
    assert client.get("/api/things/28.999999999999").status_code == 404
    assert client.post("/api/things/28.999999999999/refresh").status_code == 404


def test_sim_value_change_shows_up_after_refresh(api):
    client, _ = api
    r = client.post("/api/sim/sensors/28.111111111111/values", json={"values": {"temperature12": 19.0}})
    assert r.status_code == 200
    body = client.post("/api/things/28.111111111111/refresh").json()
    assert body["thing"]["states"]["temperature"] == 19.0


def test_sim_presence_off_marks_thing_gone(api):
    client, _ = api
    client.post("/api/sim/sensors/28.111111111111/presence", json={"present": False})
    body = client.post("/api/things/28.111111111111/refresh").json()
    assert body["ok"] is False
    assert body["thing"]["status_detail"] == "GONE"
    assert body["thing"]["presence"] == "OFF"


def test_sim_endpoints_validate_ids(api):
    client, _ = api
    assert client.post("/api/sim/sensors/garbage/presence", json={"present": True}).status_code == 400
    assert client.post("/api/sim/sensors/28.999999999999/presence", json={"present": True}).status_code == 404


def test_sim_offline_turns_refresh_into_communication_error(api):
    client, _ = api
    client.post("/api/things/28.111111111111/refresh")
    client.post("/api/sim/offline", json={"offline": True})
    body = client.post("/api/things/28.111111111111/refresh").json()
    assert body["thing"]["status"] == "OFFLINE"
    assert body["thing"]["status_detail"] == "COMMUNICATION_ERROR"


def test_toggle_channel(api):
    client, _ = api
    client.post("/api/things/3A.222222222222/refresh")

    r = client.put("/api/things/3A.222222222222/channels/digital1", json={"enabled": True})
    assert r.status_code == 200
    assert r.json()["thing"]["channels"] == ["digital0", "digital1"]

    r = client.put("/api/things/3A.222222222222/channels/digital5", json={"enabled": True})
    assert r.status_code == 400


def test_live_and_forced_refresh_request(api):
    client, poller = api
    poller._force_next = False
    assert client.post("/api/refresh").json() == {"ok": True}
    assert poller._force_next is True

    live = client.get("/api/live").json()
    assert live["gateway"] == "sim_gateway"
    assert live["things_total"] == 2


def test_history_after_cycle(api):
    client, poller = api
    client.portal.call(poller.run_cycle)

    rows = client.get("/api/history", params={"sensor_id": "28.111111111111"}).json()["rows"]
    assert {(r["channel"], r["value"]) for r in rows} == {("present", "ON"), ("temperature", 21.5)}
    assert client.get("/api/history", params={"sensor_id": "bogus"}).status_code == 400
