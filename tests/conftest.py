"""Shared fixtures for the ThermoBnB tests."""

import os

# Must be set before thermobnb.database creates its module-level engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import timedelta  # noqa: E402
from typing import Callable, Optional  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from thermobnb import models, models_netatmo  # noqa: E402, F401
from thermobnb.config import Config  # noqa: E402
from thermobnb.database import Base, build_engine  # noqa: E402
from thermobnb.models import User, UserRoom  # noqa: E402
from thermobnb.models_netatmo import (  # noqa: E402
    NetatmoThermostat,
    NetatmoToken,
    ThermostatScenario,
)
from thermobnb.utils.timeutils import utcnow  # noqa: E402

NETATMO_URL = "https://netatmo.test"
BOOKING_URL = "https://booking.test/proxy"
IDENTITY_URL = "https://identity.test"
CRON_SECRET = "cron-secret"


@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def config() -> Config:
    return Config(
        database_url="sqlite://",
        cron_secret=CRON_SECRET,
        netatmo_client_id="client-id",
        netatmo_client_secret="client-secret",
        netatmo_api_url=NETATMO_URL,
        booking_proxy_url=BOOKING_URL,
        identity_url=IDENTITY_URL,
        identity_api_key="anon-key",
        timezone="Europe/Paris",
    )


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose every request is answered by `handler`."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------


def add_user(db, user_id: str, role: str = "owner") -> User:
    user = User(id=user_id, email=f"{user_id}@example.com", role=role)
    db.add(user)
    db.commit()
    return user


def add_room(db, user_id: str, room_id: str, room_name: str) -> UserRoom:
    room = UserRoom(user_id=user_id, room_id=room_id, room_name=room_name)
    db.add(room)
    db.commit()
    return room


def add_mapping(
    db,
    user_id: str,
    room: Optional[UserRoom],
    home_id: str,
    netatmo_room_id: Optional[str],
    label: Optional[str] = None,
) -> NetatmoThermostat:
    mapping = NetatmoThermostat(
        user_id=user_id,
        user_room_id=room.id if room else None,
        home_id=home_id,
        module_id=f"module-{netatmo_room_id}",
        netatmo_room_id=netatmo_room_id,
        netatmo_room_name=f"Netatmo {netatmo_room_id}",
        label=label,
    )
    db.add(mapping)
    db.commit()
    return mapping


def add_token(
    db,
    user_id: str,
    expires_in: timedelta = timedelta(hours=1),
    access_token: str = "access-1",
    refresh_token: str = "refresh-1",
) -> NetatmoToken:
    token = NetatmoToken(
        user_id=user_id,
        access_token=access_token,
        refresh_token=refresh_token,
        scope="read_thermostat write_thermostat",
        expires_at=utcnow() + expires_in,
    )
    db.add(token)
    db.commit()
    return token


def add_scenario(db, user_id: str, **fields) -> ThermostatScenario:
    scenario = ThermostatScenario(user_id=user_id, **fields)
    db.add(scenario)
    db.commit()
    return scenario
