"""
Booking engine client
Fetches reservations per room through the booking proxy
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import httpx

from ..config import Config
from ..exceptions import UpstreamError
from ..utils.timeutils import parse_booking_datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    id: str
    room_id: str
    guest_name: str
    check_in: datetime  # aware, local timezone
    check_out: datetime  # aware, local timezone
    channel: Optional[str] = None


class BookingClient:
    """Booking proxy client, authenticated with the caller's credentials"""

    def __init__(self, config: Config, authorization: str, client: Optional[httpx.AsyncClient] = None):
        self.url = config.booking_proxy_url
        self.timeout = config.http_timeout
        self.tz = ZoneInfo(config.timezone)
        self.authorization = authorization
        self.client = client

    async def fetch_reservations(self, room_id: str) -> list[Reservation]:
        """
        All reservations the booking engine knows for a room.

        Raises:
            UpstreamError: non-2xx, timeout or unreadable body
        """
        body = {"action": "get_reservations_for_room", "id_room": room_id}
        headers = {"Authorization": self.authorization, "Content-Type": "application/json"}

        try:
            if self.client is not None:
                response = await self.client.post(self.url, json=body, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamError(None, str(e) or type(e).__name__, service="booking") from e

        if not response.is_success:
            raise UpstreamError(response.status_code, response.text[:200], service="booking")

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(response.status_code, "invalid JSON from booking proxy", service="booking") from e

        rows = payload.get("data") if isinstance(payload, dict) else None
        if rows is not None and not isinstance(rows, list):
            raise UpstreamError(response.status_code, "unexpected booking payload", service="booking")

        reservations = []
        for row in rows or []:
            if not isinstance(row, dict):
                logger.warning(f"⚠️ Skipping malformed reservation entry on room {room_id}: {row!r}")
                continue
            reservation = self._parse(room_id, row)
            if reservation:
                reservations.append(reservation)
        return reservations

    def _parse(self, room_id: str, row: dict) -> Optional[Reservation]:
        check_in = parse_booking_datetime(row.get("arrival"), self.tz)
        check_out = parse_booking_datetime(row.get("departure"), self.tz)
        if check_in is None or check_out is None:
            logger.warning(
                f"⚠️ Skipping reservation {row.get('id_reservation')} on room {room_id}: unreadable dates"
            )
            return None
        return Reservation(
            id=str(row.get("id_reservation")),
            room_id=str(room_id),
            guest_name=row.get("label") or "N/A",
            check_in=check_in,
            check_out=check_out,
            channel=row.get("cod_channel"),
        )


def start_of_day(now: datetime, tz: ZoneInfo) -> datetime:
    local = now.astimezone(tz) if now.tzinfo else now.replace(tzinfo=tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def in_window(reservations: list[Reservation], now: datetime, tz: ZoneInfo, days: int = 7) -> list[Reservation]:
    """Reservations arriving between local midnight today and midnight `days` later, both inclusive"""
    window_start = start_of_day(now, tz)
    window_end = window_start + timedelta(days=days)
    return [r for r in reservations if window_start <= r.check_in <= window_end]
