"""Heating scenario - per-owner preheat / stop policy with its defaults"""

from dataclasses import dataclass
from datetime import time
from typing import Optional

from sqlalchemy.orm import Session

from ...utils.timeutils import parse_clock
from .repository import ThermostatRepository

PREHEAT_RELATIVE = "relative"
PREHEAT_ABSOLUTE = "absolute"

DEFAULT_PREHEAT_MINUTES = 240
DEFAULT_ARRIVAL_TEMP = 20.0
DEFAULT_STOP_TIME = time(11, 0)


@dataclass(frozen=True)
class HeatingScenario:
    preheat_mode: str
    preheat_minutes: int
    heat_start_time: Optional[time]
    arrival_temp: float
    stop_time: time

    @classmethod
    def default(cls) -> "HeatingScenario":
        """Policy applied to owners who never saved a scenario"""
        return cls(
            preheat_mode=PREHEAT_RELATIVE,
            preheat_minutes=DEFAULT_PREHEAT_MINUTES,
            heat_start_time=None,
            arrival_temp=DEFAULT_ARRIVAL_TEMP,
            stop_time=DEFAULT_STOP_TIME,
        )

    @classmethod
    def from_row(cls, row) -> "HeatingScenario":
        """Coerce a stored scenario, falling back to defaults field by field"""
        default = cls.default()
        if row is None:
            return default

        mode = row.arrival_preheat_mode
        if mode not in (PREHEAT_RELATIVE, PREHEAT_ABSOLUTE):
            mode = default.preheat_mode

        return cls(
            preheat_mode=mode,
            preheat_minutes=_coerce_int(row.arrival_preheat_minutes, default.preheat_minutes),
            heat_start_time=parse_clock(row.heat_start_time),
            arrival_temp=_coerce_float(row.arrival_temp, default.arrival_temp),
            stop_time=parse_clock(row.stop_time, default.stop_time),
        )


def resolve_scenario(db: Session, owner_id: str) -> HeatingScenario:
    return HeatingScenario.from_row(ThermostatRepository.get_scenario(db, owner_id))


def _coerce_int(value, default: int) -> int:
    if isinstance(value, bool) or value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _coerce_float(value, default: float) -> float:
    if isinstance(value, bool) or value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
