"""Tests for heating scenarios and the clock / date helpers they rely on."""

from datetime import datetime, time
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from thermobnb.domain.thermostat.scenario import (
    DEFAULT_ARRIVAL_TEMP,
    DEFAULT_PREHEAT_MINUTES,
    DEFAULT_STOP_TIME,
    PREHEAT_ABSOLUTE,
    PREHEAT_RELATIVE,
    HeatingScenario,
    resolve_scenario,
)
from thermobnb.utils.timeutils import parse_booking_datetime, parse_clock

from .conftest import add_scenario, add_user

PARIS = ZoneInfo("Europe/Paris")


def _row(**overrides):
    fields = {
        "arrival_preheat_mode": None,
        "arrival_preheat_minutes": None,
        "heat_start_time": None,
        "arrival_temp": None,
        "stop_time": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_owner_without_scenario_gets_defaults(db_session):
    add_user(db_session, "owner-1")

    scenario = resolve_scenario(db_session, "owner-1")

    assert scenario == HeatingScenario.default()
    assert scenario.preheat_mode == PREHEAT_RELATIVE
    assert scenario.preheat_minutes == DEFAULT_PREHEAT_MINUTES == 240
    assert scenario.arrival_temp == DEFAULT_ARRIVAL_TEMP == 20.0
    assert scenario.stop_time == DEFAULT_STOP_TIME == time(11, 0)


def test_stored_scenario_is_used(db_session):
    add_user(db_session, "owner-1")
    add_scenario(
        db_session,
        "owner-1",
        arrival_preheat_mode="absolute",
        arrival_preheat_minutes=90,
        heat_start_time="14:00",
        arrival_temp=21.5,
        stop_time="10:30",
    )

    scenario = resolve_scenario(db_session, "owner-1")

    assert scenario.preheat_mode == PREHEAT_ABSOLUTE
    assert scenario.preheat_minutes == 90
    assert scenario.heat_start_time == time(14, 0)
    assert scenario.arrival_temp == 21.5
    assert scenario.stop_time == time(10, 30)


def test_unreadable_fields_fall_back_one_by_one():
    scenario = HeatingScenario.from_row(
        _row(
            arrival_preheat_mode="sometimes",
            arrival_preheat_minutes="soon",
            arrival_temp="21",
            stop_time="noon",
        )
    )

    assert scenario.preheat_mode == PREHEAT_RELATIVE
    assert scenario.preheat_minutes == DEFAULT_PREHEAT_MINUTES
    assert scenario.heat_start_time is None
    assert scenario.arrival_temp == 21.0
    assert scenario.stop_time == DEFAULT_STOP_TIME


def test_boolean_values_are_not_numbers():
    scenario = HeatingScenario.from_row(_row(arrival_preheat_minutes=True, arrival_temp=False))

    assert scenario.preheat_minutes == DEFAULT_PREHEAT_MINUTES
    assert scenario.arrival_temp == DEFAULT_ARRIVAL_TEMP


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_parse_clock():
    assert parse_clock("14:30") == time(14, 30)
    assert parse_clock("07:05:59") == time(7, 5)
    assert parse_clock("14") == time(14, 0)
    assert parse_clock("25:00") is None
    assert parse_clock("later", default=time(11, 0)) == time(11, 0)
    assert parse_clock("  ", default=time(11, 0)) == time(11, 0)


def test_parse_booking_datetime_formats():
    assert parse_booking_datetime("2026-10-20", PARIS) == datetime(2026, 10, 20, tzinfo=PARIS)
    assert parse_booking_datetime("2026-10-20 16:00:00", PARIS) == datetime(2026, 10, 20, 16, 0, tzinfo=PARIS)
    # 14:00 UTC is 16:00 in Paris before the October DST change
    parsed = parse_booking_datetime("2026-10-20T14:00:00Z", PARIS)
    assert (parsed.hour, parsed.utcoffset().total_seconds()) == (16, 7200)
    assert parse_booking_datetime("", PARIS) is None
    assert parse_booking_datetime("not a date", PARIS) is None
