"""Thermostat repository - Database operations for the thermostat domain"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import User, UserRoom
from ...models_netatmo import (
    NetatmoCallLog,
    NetatmoThermostat,
    TemperatureAlertSetting,
    ThermostatSchedule,
    ThermostatScenario,
)

logger = logging.getLogger(__name__)


class ThermostatRepository:
    """Repository for thermostat database operations"""

    @staticmethod
    def get_user(db: Session, user_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_scenario(db: Session, user_id: str) -> Optional[ThermostatScenario]:
        return db.query(ThermostatScenario).filter(ThermostatScenario.user_id == user_id).first()

    @staticmethod
    def get_rooms(db: Session, user_id: str) -> list[UserRoom]:
        return db.query(UserRoom).filter(UserRoom.user_id == user_id).order_by(UserRoom.room_name).all()

    @staticmethod
    def get_rooms_by_ids(db: Session, room_ids: list[str]) -> dict[str, UserRoom]:
        if not room_ids:
            return {}
        rooms = db.query(UserRoom).filter(UserRoom.id.in_(room_ids)).all()
        return {room.id: room for room in rooms}

    @staticmethod
    def get_mappings(db: Session, user_id: str) -> list[NetatmoThermostat]:
        """An owner's mappings, oldest first"""
        return (
            db.query(NetatmoThermostat)
            .filter(NetatmoThermostat.user_id == user_id)
            .order_by(NetatmoThermostat.created_at.asc(), NetatmoThermostat.id.asc())
            .all()
        )

    @staticmethod
    def get_all_mappings(db: Session, user_id: Optional[str] = None) -> list[NetatmoThermostat]:
        """Every mapping (optionally for one owner), most recently updated first"""
        query = db.query(NetatmoThermostat)
        if user_id:
            query = query.filter(NetatmoThermostat.user_id == user_id)
        return query.order_by(NetatmoThermostat.updated_at.desc()).all()

    @staticmethod
    def get_owner_ids_with_mappings(db: Session) -> list[str]:
        rows = (
            db.query(NetatmoThermostat.user_id)
            .filter(NetatmoThermostat.user_id.isnot(None))
            .distinct()
            .all()
        )
        return sorted(row[0] for row in rows)

    @staticmethod
    def schedule_exists(
        db: Session, user_id: str, netatmo_room_id: str, event_type: str, start_time: datetime
    ) -> bool:
        """Exact match on the idempotency key (owner, Netatmo room, type, start time)"""
        return (
            db.query(ThermostatSchedule.id)
            .filter(
                ThermostatSchedule.user_id == user_id,
                ThermostatSchedule.netatmo_room_id == netatmo_room_id,
                ThermostatSchedule.type == event_type,
                ThermostatSchedule.start_time == start_time,
            )
            .first()
            is not None
        )

    @staticmethod
    def insert_schedule(db: Session, **fields) -> bool:
        """
        Insert a pending schedule row.

        Returns False when the unique key already exists, so a concurrent
        planner run is treated as having inserted it.
        """
        schedule = ThermostatSchedule(status="pending", **fields)
        db.add(schedule)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(
                f"ℹ️ Schedule {fields.get('type')} for room {fields.get('netatmo_room_id')} "
                f"at {fields.get('start_time')} already exists"
            )
            return False
        return True

    @staticmethod
    def get_schedules(db: Session, user_id: str) -> list[ThermostatSchedule]:
        return (
            db.query(ThermostatSchedule)
            .filter(ThermostatSchedule.user_id == user_id)
            .order_by(ThermostatSchedule.start_time.asc())
            .all()
        )

    @staticmethod
    def get_alert_thresholds(db: Session) -> dict[str, float]:
        rows = db.query(TemperatureAlertSetting).all()
        return {row.user_room_id: row.threshold for row in rows if row.threshold is not None}

    @staticmethod
    def log_netatmo_call(
        db: Session,
        user_id: Optional[str],
        endpoint: str,
        params: dict,
        response_status: Optional[int],
        body_preview: str,
        error: Optional[str],
    ) -> None:
        db.add(
            NetatmoCallLog(
                user_id=user_id,
                endpoint=endpoint,
                params=params,
                response_status=response_status,
                body_preview=body_preview,
                error=error,
            )
        )
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def call_logger(db: Session, user_id: Optional[str]):
        """Gateway audit callback writing one netatmo_logs row per call"""

        def log_call(endpoint, params, status, preview, error):
            ThermostatRepository.log_netatmo_call(db, user_id, endpoint, params, status, preview, error)

        return log_call
