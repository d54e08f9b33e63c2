"""Tests for the scheduled ARQ jobs."""

import json

import httpx
import pytest

from thermobnb import worker
from thermobnb.models_netatmo import ThermostatSchedule
from thermobnb.services.booking_client import BookingClient

from .conftest import CRON_SECRET, add_mapping, add_room, add_token, add_user, mock_client


@pytest.fixture
def seen():
    return []


@pytest.fixture
def patched_worker(monkeypatch, db_session, config, seen):
    add_user(db_session, "owner-1")
    add_token(db_session, "owner-1")
    room = add_room(db_session, "owner-1", "101", "Studio")
    add_mapping(db_session, "owner-1", room, "home-1", "nr-1")

    def handler(request):
        seen.append(request)
        if request.url.host == "booking.test":
            assert json.loads(request.content)["id_room"] == "101"
            return httpx.Response(200, json={"data": []})
        return httpx.Response(
            200, json={"body": {"home": {"rooms": [{"id": "nr-1", "therm_measured_temperature": 11.0}]}}}
        )

    client = mock_client(handler)

    class _StatusAggregator(worker.StatusAggregator):
        def __init__(self, db, config):
            super().__init__(db, config, client=client)

    monkeypatch.setattr(worker, "SessionLocal", lambda: db_session)
    monkeypatch.setattr(worker, "get_config", lambda: config)
    monkeypatch.setattr(
        worker, "BookingClient", lambda config, authorization: BookingClient(config, authorization, client=client)
    )
    monkeypatch.setattr(worker, "StatusAggregator", _StatusAggregator)
    return worker


async def test_auto_plan_task_runs_a_sweep(patched_worker, db_session, seen):
    payload = await patched_worker.auto_plan_task({"job_id": "job-1"})

    assert payload["isCron"] is True
    assert payload["processedForUsers"] == {"owner-1": 0}
    assert seen[0].headers["Authorization"] == f"Bearer {CRON_SECRET}"
    assert db_session.query(ThermostatSchedule).count() == 0


async def test_temperature_alerts_task(patched_worker):
    result = await patched_worker.temperature_alerts_task({})

    assert result["count"] == 1
    assert result["alerts"][0]["measured"] == 11.0


def test_cron_schedule():
    jobs = {job.coroutine.__name__: job for job in worker.WorkerSettings.cron_jobs}

    assert set(jobs) == {"auto_plan_task", "temperature_alerts_task"}
    assert jobs["auto_plan_task"].minute == 0
    assert jobs["auto_plan_task"].hour is None
    assert (jobs["temperature_alerts_task"].hour, jobs["temperature_alerts_task"].minute) == (7, 0)
