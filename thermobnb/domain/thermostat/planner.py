"""
Thermostat schedule planner

Turns each owner's upcoming reservations into pending heat / stop schedule
rows. Planning is idempotent: a row is only inserted when no row exists with
the same owner, Netatmo room, type and start time, and the database enforces
the same key with a unique constraint.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ...auth import InvocationContext, owner_ids_for
from ...config import Config
from ...exceptions import UpstreamError
from ...models import UserRoom
from ...models_netatmo import NetatmoThermostat
from ...services.booking_client import BookingClient, Reservation, in_window
from ...utils.timeutils import to_naive_utc
from .repository import ThermostatRepository
from .scenario import PREHEAT_ABSOLUTE, HeatingScenario, resolve_scenario

logger = logging.getLogger(__name__)

MIN_PREHEAT_MINUTES = 5


@dataclass(frozen=True)
class Scheduled:
    inserted: int


@dataclass(frozen=True)
class Skipped:
    reason: str


@dataclass(frozen=True)
class Failed:
    error: str


RoomOutcome = Union[Scheduled, Skipped, Failed]


@dataclass
class OwnerPlan:
    inserted: int = 0
    errors: list[str] = field(default_factory=list)
    rooms: dict[str, RoomOutcome] = field(default_factory=dict)


@dataclass
class PlanResult:
    is_cron: bool
    processed_for_users: dict[str, int] = field(default_factory=dict)
    errors_for_users: dict[str, list[str]] = field(default_factory=dict)
    outcomes: dict[str, dict[str, RoomOutcome]] = field(default_factory=dict)

    def record(self, owner_id: str, plan: OwnerPlan) -> None:
        self.processed_for_users[owner_id] = plan.inserted
        if plan.errors:
            self.errors_for_users[owner_id] = list(plan.errors)
        self.outcomes[owner_id] = dict(plan.rooms)

    def to_payload(self) -> dict:
        return {
            "ok": True,
            "isCron": self.is_cron,
            "processedForUsers": self.processed_for_users,
            "errorsForUsers": self.errors_for_users,
        }


def compute_heat_start(check_in: datetime, scenario: HeatingScenario) -> datetime:
    """
    When heating starts for an arrival.

    Absolute mode: the scenario's clock time on the arrival date, whatever the
    arrival hour. Relative mode (or absolute without a clock time): arrival
    minus the preheat duration, never less than MIN_PREHEAT_MINUTES.
    """
    if scenario.preheat_mode == PREHEAT_ABSOLUTE and scenario.heat_start_time is not None:
        return check_in.replace(
            hour=scenario.heat_start_time.hour,
            minute=scenario.heat_start_time.minute,
            second=0,
            microsecond=0,
        )

    lead = timedelta(minutes=max(MIN_PREHEAT_MINUTES, scenario.preheat_minutes))
    if check_in.tzinfo is None:
        return check_in - lead
    # Elapsed-time arithmetic, correct across DST changes
    return (check_in.astimezone(timezone.utc) - lead).astimezone(check_in.tzinfo)


def compute_stop_time(check_out: datetime, scenario: HeatingScenario) -> datetime:
    """The scenario's stop clock time on the departure date"""
    return check_out.replace(
        hour=scenario.stop_time.hour,
        minute=scenario.stop_time.minute,
        second=0,
        microsecond=0,
    )


class SchedulePlanner:
    """Reconciles reservations with heating scenarios into schedule rows"""

    def __init__(
        self,
        db: Session,
        config: Config,
        booking: BookingClient,
        now: Optional[datetime] = None,
    ):
        self.db = db
        self.config = config
        self.booking = booking
        self.tz = ZoneInfo(config.timezone)
        self.now = now
        self.repo = ThermostatRepository()

    async def run(self, context: InvocationContext) -> PlanResult:
        """Plan every owner covered by the invocation; one owner's failure never stops the others"""
        owner_ids = owner_ids_for(context, self.db)
        result = PlanResult(is_cron=context.is_cron)
        logger.info(f"🗓️ Planning thermostat schedules for {len(owner_ids)} owner(s)")

        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def plan_guarded(owner_id: str) -> None:
            async with semaphore:
                result.record(owner_id, await self.plan_owner(owner_id))

        await asyncio.gather(*(plan_guarded(owner_id) for owner_id in owner_ids))

        total = sum(result.processed_for_users.values())
        logger.info(
            f"📊 Planning complete: {total} schedule(s) inserted, "
            f"{len(result.errors_for_users)} owner(s) with errors"
        )
        return result

    async def plan_owner(self, owner_id: str) -> OwnerPlan:
        plan = OwnerPlan()
        try:
            scenario = resolve_scenario(self.db, owner_id)
            rooms = self.repo.get_rooms(self.db, owner_id)
            # A room mapped more than once uses its oldest mapping
            mappings = {}
            for mapping in self.repo.get_mappings(self.db, owner_id):
                mappings.setdefault(mapping.user_room_id, mapping)

            for room in rooms:
                outcome = await self.plan_room(owner_id, room, mappings.get(room.id), scenario)
                plan.rooms[room.id] = outcome
                if isinstance(outcome, Scheduled):
                    plan.inserted += outcome.inserted
                elif isinstance(outcome, Failed):
                    plan.errors.append(outcome.error)
        except Exception as e:
            logger.error(f"❌ Planning failed for owner {owner_id}: {type(e).__name__}: {e}")
            self.db.rollback()
            plan.errors.append(str(e))
        return plan

    async def plan_room(
        self,
        owner_id: str,
        room: UserRoom,
        mapping: Optional[NetatmoThermostat],
        scenario: HeatingScenario,
    ) -> RoomOutcome:
        if mapping is None:
            return Skipped("no thermostat mapped")
        if not mapping.netatmo_room_id:
            return Skipped("thermostat mapping has no Netatmo room")

        try:
            reservations = await self.booking.fetch_reservations(room.room_id)
        except UpstreamError as e:
            logger.warning(f"⚠️ Booking fetch failed for room {room.room_id}: {e}")
            return Failed(f"Booking error for room {room.room_id}: {e.body_excerpt or e}")

        now = self.now or datetime.now(self.tz)
        upcoming = in_window(reservations, now, self.tz, self.config.lookahead_days)

        inserted = 0
        for reservation in upcoming:
            inserted += self._plan_reservation(owner_id, room, mapping, scenario, reservation)
        return Scheduled(inserted)

    def _plan_reservation(
        self,
        owner_id: str,
        room: UserRoom,
        mapping: NetatmoThermostat,
        scenario: HeatingScenario,
        reservation: Reservation,
    ) -> int:
        heat_start = compute_heat_start(reservation.check_in, scenario)
        stop = compute_stop_time(reservation.check_out, scenario)

        if heat_start > reservation.check_in or heat_start >= stop:
            logger.warning(
                f"⚠️ Heat start {heat_start.isoformat()} for reservation {reservation.id} "
                f"is after arrival or stop time; keeping it as configured"
            )

        heat_start_utc = to_naive_utc(heat_start)
        stop_utc = to_naive_utc(stop)
        common = {
            "user_id": owner_id,
            "user_room_id": room.id,
            "home_id": mapping.home_id,
            "netatmo_room_id": mapping.netatmo_room_id,
            "module_id": mapping.module_id,
        }

        inserted = 0
        if not self.repo.schedule_exists(self.db, owner_id, mapping.netatmo_room_id, "heat", heat_start_utc):
            if self.repo.insert_schedule(
                self.db,
                **common,
                type="heat",
                mode="manual",
                temp=scenario.arrival_temp,
                start_time=heat_start_utc,
                end_time=stop_utc,
            ):
                inserted += 1

        if not self.repo.schedule_exists(self.db, owner_id, mapping.netatmo_room_id, "stop", stop_utc):
            if self.repo.insert_schedule(
                self.db,
                **common,
                type="stop",
                mode="home",
                temp=None,
                start_time=stop_utc,
                end_time=None,
            ):
                inserted += 1

        if inserted:
            logger.info(
                f"✅ Planned {inserted} event(s) for reservation {reservation.id} "
                f"in room {mapping.netatmo_room_id} (owner {owner_id})"
            )
        return inserted
