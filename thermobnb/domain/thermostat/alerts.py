"""Cold-room alerts: mapped rooms measuring below their alert threshold"""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy.orm import Session

from .repository import ThermostatRepository
from .status import StatusAggregator

logger = logging.getLogger(__name__)

DEFAULT_ALERT_THRESHOLD = 14.0


@dataclass
class TemperatureAlert:
    user_id: str
    user_room_id: Optional[str]
    room_name: Optional[str]
    home_id: str
    netatmo_room_id: str
    measured: float
    threshold: float

    def to_dict(self) -> dict:
        return asdict(self)


async def find_cold_rooms(db: Session, aggregator: StatusAggregator) -> list[TemperatureAlert]:
    """Rooms whose measured temperature is below threshold; unreachable homes are ignored"""
    thresholds = ThermostatRepository.get_alert_thresholds(db)
    items = await aggregator.aggregate_status()

    alerts = []
    for item in items:
        if item.error or not item.netatmo_room_id:
            continue
        measured = item.therm_measured_temperature
        if not isinstance(measured, (int, float)) or isinstance(measured, bool):
            continue
        threshold = thresholds.get(item.user_room_id, DEFAULT_ALERT_THRESHOLD)
        if measured < threshold:
            alerts.append(
                TemperatureAlert(
                    user_id=item.user_id,
                    user_room_id=item.user_room_id,
                    room_name=item.room_name or item.user_room_id,
                    home_id=item.home_id,
                    netatmo_room_id=item.netatmo_room_id,
                    measured=float(measured),
                    threshold=threshold,
                )
            )

    if alerts:
        logger.warning(f"🥶 {len(alerts)} room(s) below their temperature threshold")
    return alerts
