"""Tests for the live status aggregator and cold-room alerts."""

import httpx
import pytest

from thermobnb.domain.thermostat.alerts import find_cold_rooms
from thermobnb.domain.thermostat.status import StatusAggregator, index_room_status
from thermobnb.models_netatmo import NetatmoCallLog, TemperatureAlertSetting

from .conftest import add_mapping, add_room, add_token, add_user, mock_client


def _room_status(room_id, measured, setpoint=20.0, mode="home", power=0):
    return {
        "id": room_id,
        "therm_measured_temperature": measured,
        "therm_setpoint_temperature": setpoint,
        "therm_setpoint_mode": mode,
        "heating_power_request": power,
    }


def _homestatus_handler(rooms_by_home: dict, failing_homes=(), seen=None):
    def handler(request):
        home_id = request.url.params["home_id"]
        if seen is not None:
            seen.append(home_id)
        if home_id in failing_homes:
            return httpx.Response(500, text="home unreachable")
        return httpx.Response(
            200, json={"status": "ok", "body": {"home": {"id": home_id, "rooms": rooms_by_home.get(home_id, [])}}}
        )

    return handler


@pytest.fixture
def two_room_home(db_session):
    add_user(db_session, "owner-1")
    add_token(db_session, "owner-1")
    studio = add_room(db_session, "owner-1", "101", "Studio")
    loft = add_room(db_session, "owner-1", "102", "Loft")
    add_mapping(db_session, "owner-1", studio, "home-1", "nr-1", label="Studio radiator")
    add_mapping(db_session, "owner-1", loft, "home-1", "nr-2")
    return studio, loft


async def _aggregate(db_session, config, handler, owner_id=None):
    async with mock_client(handler) as client:
        return await StatusAggregator(db_session, config, client=client).aggregate_status(owner_id)


async def test_rooms_of_one_home_cost_one_call(db_session, config, two_room_home):
    studio, loft = two_room_home
    seen = []
    handler = _homestatus_handler(
        {"home-1": [_room_status("nr-1", 19.5, 20.0, "manual", 50), _room_status("nr-2", 17.0)]},
        seen=seen,
    )

    items = await _aggregate(db_session, config, handler)

    assert seen == ["home-1"]
    by_room = {item.netatmo_room_id: item for item in items}
    assert by_room["nr-1"].therm_measured_temperature == 19.5
    assert by_room["nr-1"].therm_setpoint_mode == "manual"
    assert by_room["nr-1"].heating_power_request == 50
    assert by_room["nr-1"].room_name == "Studio"
    assert by_room["nr-1"].external_room_id == "101"
    assert by_room["nr-1"].label == "Studio radiator"
    assert by_room["nr-2"].therm_measured_temperature == 17.0
    assert all(item.error is None for item in items)
    # every Netatmo call is audited
    assert db_session.query(NetatmoCallLog).count() == 1


async def test_failing_home_marks_only_its_rooms(db_session, config, two_room_home):
    chalet = add_room(db_session, "owner-1", "103", "Chalet")
    add_mapping(db_session, "owner-1", chalet, "home-2", "nr-3")
    handler = _homestatus_handler({"home-2": [_room_status("nr-3", 21.0)]}, failing_homes={"home-1"})

    items = await _aggregate(db_session, config, handler)

    by_room = {item.netatmo_room_id: item for item in items}
    assert len(items) == 3
    assert "home unreachable" in by_room["nr-1"].error
    assert "home unreachable" in by_room["nr-2"].error
    assert by_room["nr-1"].therm_measured_temperature is None
    assert by_room["nr-3"].error is None
    assert by_room["nr-3"].therm_measured_temperature == 21.0


async def test_room_missing_from_payload_has_null_readings(db_session, config, two_room_home):
    handler = _homestatus_handler({"home-1": [_room_status("nr-1", 19.5)]})

    items = await _aggregate(db_session, config, handler)

    missing = next(item for item in items if item.netatmo_room_id == "nr-2")
    assert missing.error is None
    assert missing.therm_measured_temperature is None
    assert missing.therm_setpoint_temperature is None
    assert missing.therm_setpoint_mode is None
    assert missing.heating_power_request is None


async def test_owner_without_netatmo_link_gets_error_items(db_session, config):
    add_user(db_session, "owner-2")
    room = add_room(db_session, "owner-2", "201", "Cabin")
    add_mapping(db_session, "owner-2", room, "home-9", "nr-9")
    seen = []

    items = await _aggregate(db_session, config, _homestatus_handler({}, seen=seen))

    assert seen == []
    assert len(items) == 1
    assert "not connected" in items[0].error


async def test_status_for_one_owner(db_session, config, two_room_home):
    add_user(db_session, "owner-2")
    add_token(db_session, "owner-2")
    room = add_room(db_session, "owner-2", "201", "Cabin")
    add_mapping(db_session, "owner-2", room, "home-9", "nr-9")
    seen = []

    items = await _aggregate(db_session, config, _homestatus_handler({}, seen=seen), owner_id="owner-2")

    assert seen == ["home-9"]
    assert [item.user_id for item in items] == ["owner-2"]


def test_index_accepts_rooms_at_body_level():
    payload = {"body": {"rooms": [{"id": 12, "therm_measured_temperature": 18.2, "heating_power_request": True}]}}

    indexed = index_room_status(payload)

    assert indexed["12"]["therm_measured_temperature"] == 18.2
    assert indexed["12"]["heating_power_request"] is None


# ---------------------------------------------------------------------------
# Cold-room alerts
# ---------------------------------------------------------------------------


async def test_cold_rooms_use_default_and_custom_thresholds(db_session, config, two_room_home):
    studio, loft = two_room_home
    db_session.add(TemperatureAlertSetting(user_room_id=loft.id, threshold=18.0))
    db_session.commit()
    handler = _homestatus_handler({"home-1": [_room_status("nr-1", 15.0), _room_status("nr-2", 17.0)]})

    async with mock_client(handler) as client:
        alerts = await find_cold_rooms(db_session, StatusAggregator(db_session, config, client=client))

    # Studio at 15.0 is above the default 14; Loft at 17.0 is below its own 18
    assert [(a.room_name, a.measured, a.threshold) for a in alerts] == [("Loft", 17.0, 18.0)]


async def test_unreachable_homes_raise_no_alerts(db_session, config, two_room_home):
    handler = _homestatus_handler({}, failing_homes={"home-1"})

    async with mock_client(handler) as client:
        alerts = await find_cold_rooms(db_session, StatusAggregator(db_session, config, client=client))

    assert alerts == []


async def test_missing_reading_raises_no_alert(db_session, config, two_room_home):
    handler = _homestatus_handler({"home-1": [_room_status("nr-1", 9.0), _room_status("nr-2", None)]})

    async with mock_client(handler) as client:
        alerts = await find_cold_rooms(db_session, StatusAggregator(db_session, config, client=client))

    assert [(a.netatmo_room_id, a.threshold) for a in alerts] == [("nr-1", 14.0)]
