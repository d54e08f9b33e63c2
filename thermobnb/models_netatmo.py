"""
Netatmo Integration Models
OAuth tokens, thermostat-to-room mappings, heating scenarios and planned schedules
"""
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_id


class NetatmoToken(Base):
    __tablename__ = "netatmo_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, unique=True)

    # OAuth tokens (encrypted when NETATMO_TOKEN_ENCRYPTION_KEY is set)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    scope = Column(String(255), nullable=True)
    expires_at = Column(DateTime, nullable=False)  # naive UTC

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")


class NetatmoThermostat(Base):
    """Links a user room to a Netatmo home / room / device triple"""

    __tablename__ = "netatmo_thermostats"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    user_room_id = Column(String(36), ForeignKey("user_rooms.id"), nullable=True)
    home_id = Column(String(64), nullable=False)
    device_id = Column(String(64), nullable=True)
    module_id = Column(String(64), nullable=True)
    netatmo_room_id = Column(String(64), nullable=True)
    netatmo_room_name = Column(String(255), nullable=True)
    label = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user_room = relationship("UserRoom")


class ThermostatScenario(Base):
    """Per-owner heating policy applied to every reservation"""

    __tablename__ = "thermostat_scenarios"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, unique=True)
    arrival_preheat_mode = Column(String(20), nullable=True)  # relative, absolute
    arrival_preheat_minutes = Column(Integer, nullable=True)
    heat_start_time = Column(String(5), nullable=True)  # HH:MM, used in absolute mode
    arrival_temp = Column(Float, nullable=True)
    stop_time = Column(String(5), nullable=True)  # HH:MM

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ThermostatSchedule(Base):
    """Planned heat / stop instruction, executed later by a separate agent"""

    __tablename__ = "thermostat_schedules"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "netatmo_room_id", "type", "start_time", name="uq_thermostat_schedule_event"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    user_room_id = Column(String(36), ForeignKey("user_rooms.id"), nullable=True)
    home_id = Column(String(64), nullable=False)
    netatmo_room_id = Column(String(64), nullable=False)
    module_id = Column(String(64), nullable=True)
    type = Column(String(10), nullable=False)  # heat, stop
    mode = Column(String(10), nullable=False)  # manual, home
    temp = Column(Float, nullable=True)
    start_time = Column(DateTime, nullable=False)  # naive UTC
    end_time = Column(DateTime, nullable=True)  # naive UTC
    status = Column(String(20), nullable=False, default="pending")  # pending, executed, error
    error = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())


class NetatmoCallLog(Base):
    """Audit trail of every call made to the Netatmo API"""

    __tablename__ = "netatmo_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=True, index=True)
    endpoint = Column(String(64), nullable=False)
    params = Column(JSON, nullable=True)
    response_status = Column(Integer, nullable=True)
    body_preview = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class TemperatureAlertSetting(Base):
    __tablename__ = "temperature_alert_settings"

    id = Column(Integer, primary_key=True, index=True)
    user_room_id = Column(String(36), ForeignKey("user_rooms.id"), nullable=False, unique=True)
    threshold = Column(Float, nullable=False, default=14.0)
