import logging

import pytest

from owsensors.domain.errors import ConfigurationError
from owsensors.domain.models import (
    PresenceState,
    SensorConfig,
    SensorId,
    SensorType,
    StatusDetail,
    ThingStatus,
)
from owsensors.sensors.temperature import TemperatureSensor
from owsensors.services.state_bus import PRESENCE_CHANNEL, StateBus
from owsensors.services.thing import SensorThing

TEMP = SensorId("28.111111111111")


def _thing(bus, **kwargs):
    cfg = dict(sensor_id=TEMP, label="Living room", sensor_type=SensorType.TEMPERATURE, channels=("temperature",))
    cfg.update(kwargs)
    return SensorThing(SensorConfig(**cfg), bus)


def test_first_poll_initializes_and_reports(sim_gateway):
    bus = StateBus()
    thing = _thing(bus)

    assert thing.poll(sim_gateway, forced=True) is True
    assert isinstance(thing.device, TemperatureSensor)
    assert thing.status is ThingStatus.ONLINE
    assert thing.states == {"temperature": 21.5}
    assert thing.presence is PresenceState.ON

    channels = {(u.channel, u.value) for u in bus.drain()}
    assert channels == {(PRESENCE_CHANNEL, "ON"), ("temperature", 21.5)}


def test_type_is_queried_once_across_polls(sim_gateway):
    thing = _thing(StateBus(), sensor_type=SensorType.UNKNOWN)
    thing.poll(sim_gateway)
    thing.poll(sim_gateway)
    assert sim_gateway.calls["get_type"] == 1


def test_type_mismatch_is_a_configuration_error(sim_gateway):
    thing = _thing(StateBus(), sensor_type=SensorType.COUNTER)

    assert thing.poll(sim_gateway) is False
    assert thing.status is ThingStatus.OFFLINE
    assert thing.status_detail is StatusDetail.CONFIGURATION_ERROR
    # configuration errors are not retried every cycle
    assert thing.poll(sim_gateway) is False
    assert sim_gateway.calls["get_type"] == 1


def test_invalid_settings_surface_as_configuration_error(sim_gateway):
    thing = _thing(StateBus(), settings={"resolution": 7})
    assert thing.poll(sim_gateway) is False
    assert thing.status_detail is StatusDetail.CONFIGURATION_ERROR
    assert "resolution" in thing.status_message


def test_gateway_outage_during_initialize_is_retried(sim_gateway):
    thing = _thing(StateBus())
    sim_gateway.set_offline(True)

    assert thing.poll(sim_gateway) is False
    assert thing.status_detail is StatusDetail.COMMUNICATION_ERROR

    sim_gateway.set_offline(False)
    assert thing.poll(sim_gateway) is True
    assert thing.status is ThingStatus.ONLINE


def test_absent_sensor_goes_offline_gone(sim_gateway):
    thing = _thing(StateBus())
    thing.poll(sim_gateway)
    sim_gateway.set_present(TEMP, False)

    assert thing.poll(sim_gateway) is False
    assert thing.status is ThingStatus.OFFLINE
    assert thing.status_detail is StatusDetail.GONE
    assert thing.presence is PresenceState.OFF


def test_presence_failure_goes_offline_without_presence_update(sim_gateway):
    bus = StateBus()
    thing = _thing(bus)
    thing.poll(sim_gateway)
    bus.drain()

    sim_gateway.set_offline(True)
    assert thing.poll(sim_gateway) is False
    assert thing.status_detail is StatusDetail.COMMUNICATION_ERROR
    assert bus.drain() == []


def test_refresh_failure_sets_communication_error(sim_gateway):
    thing = _thing(StateBus())
    thing.poll(sim_gateway)
    sim_gateway.set_value(TEMP, "temperature12", "garbage")

    assert thing.poll(sim_gateway) is False
    assert thing.status is ThingStatus.OFFLINE
    assert thing.status_detail is StatusDetail.COMMUNICATION_ERROR
    assert "not a number" in thing.status_message


def test_unforced_poll_does_not_republish_unchanged_values(sim_gateway):
    bus = StateBus()
    thing = _thing(bus)
    thing.poll(sim_gateway, forced=True)
    bus.drain()

    thing.poll(sim_gateway, forced=False)
    assert [u.channel for u in bus.drain()] == [PRESENCE_CHANNEL]


def test_set_channel_enabled_rolls_back_unknown_channel(sim_gateway):
    thing = _thing(StateBus())
    thing.poll(sim_gateway)

    with pytest.raises(ConfigurationError):
        thing.set_channel_enabled("humidity", True)
    assert thing.device.enabled_channels == frozenset({"temperature"})
    assert thing.device.is_configured

    thing.set_channel_enabled("temperature", False)
    assert thing.device.enabled_channels == frozenset()
    assert "temperature" not in thing.states


def test_dispose_drops_device(sim_gateway):
    thing = _thing(StateBus())
    thing.poll(sim_gateway)
    thing.dispose()

    assert thing.device is None
    assert thing.poll(sim_gateway) is False
    assert thing.snapshot()["configured"] is False


def test_repeated_refresh_failures_do_not_flap_status(sim_gateway, caplog):
    thing = _thing(StateBus())
    thing.poll(sim_gateway)
    sim_gateway.set_value(TEMP, "temperature12", "garbage")
    thing.poll(sim_gateway)
    assert thing.status_detail is StatusDetail.COMMUNICATION_ERROR

    caplog.clear()
    with caplog.at_level(logging.INFO, logger="owsensors.services.thing"):
        for _ in range(3):
            assert thing.poll(sim_gateway) is False
            assert thing.status is ThingStatus.OFFLINE

    assert not [r for r in caplog.records if " status " in r.getMessage()]
    assert thing.presence is PresenceState.ON

    sim_gateway.set_value(TEMP, "temperature12", "20.0")
    assert thing.poll(sim_gateway) is True
    assert thing.status is ThingStatus.ONLINE
    assert thing.status_message == ""
