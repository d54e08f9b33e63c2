"""
Live thermostat status for operators

Mappings are grouped by (owner, Netatmo home) so that each home costs exactly
one homestatus call. A failing home marks its own rooms with an error and
leaves every other home untouched.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

import httpx
from sqlalchemy.orm import Session

from ...config import Config
from ...models_netatmo import NetatmoThermostat
from ...services.netatmo_gateway import NetatmoGateway
from ...services.token_store import TokenStore
from .repository import ThermostatRepository

logger = logging.getLogger(__name__)


@dataclass
class StatusItem:
    user_id: str
    home_id: str
    user_room_id: Optional[str]
    room_name: Optional[str]
    external_room_id: Optional[str]
    netatmo_room_id: Optional[str]
    label: Optional[str]
    therm_measured_temperature: Optional[float] = None
    therm_setpoint_temperature: Optional[float] = None
    therm_setpoint_mode: Optional[str] = None
    heating_power_request: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def rooms_block(payload: dict) -> list[dict]:
    """Room statuses from a homestatus payload (body.home.rooms, or body.rooms)"""
    body = payload.get("body") or {}
    home = body.get("home") or {}
    return home.get("rooms") or body.get("rooms") or []


def index_room_status(payload: dict) -> dict[str, dict[str, Any]]:
    by_id = {}
    for room in rooms_block(payload):
        if room.get("id") is None:
            continue
        power = room.get("heating_power_request")
        by_id[str(room["id"])] = {
            "therm_measured_temperature": room.get("therm_measured_temperature"),
            "therm_setpoint_temperature": room.get("therm_setpoint_temperature"),
            "therm_setpoint_mode": room.get("therm_setpoint_mode"),
            "heating_power_request": power if isinstance(power, (int, float)) and not isinstance(power, bool) else None,
        }
    return by_id


class StatusAggregator:
    """Merges Netatmo live status onto the thermostat mappings"""

    def __init__(self, db: Session, config: Config, client: Optional[httpx.AsyncClient] = None):
        self.db = db
        self.config = config
        self.client = client
        self.repo = ThermostatRepository()

    def group_by_home(self, mappings: list[NetatmoThermostat]) -> dict[tuple[str, str], list[NetatmoThermostat]]:
        groups: dict[tuple[str, str], list[NetatmoThermostat]] = {}
        for mapping in mappings:
            groups.setdefault((mapping.user_id, mapping.home_id), []).append(mapping)
        return groups

    async def aggregate_status(self, owner_id: Optional[str] = None) -> list[StatusItem]:
        """Status of every mapped room, or of one owner's rooms"""
        mappings = self.repo.get_all_mappings(self.db, owner_id)
        user_rooms = self.repo.get_rooms_by_ids(
            self.db, sorted({m.user_room_id for m in mappings if m.user_room_id})
        )
        groups = self.group_by_home(mappings)
        logger.info(f"🌡️ Reading status for {len(mappings)} room(s) across {len(groups)} home(s)")

        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def read_guarded(key, rooms):
            async with semaphore:
                return await self._read_group(key[0], key[1], rooms, user_rooms)

        results = await asyncio.gather(*(read_guarded(key, rooms) for key, rooms in groups.items()))
        return [item for group_items in results for item in group_items]

    async def _read_group(self, user_id: str, home_id: str, rooms: list[NetatmoThermostat], user_rooms: dict) -> list[StatusItem]:
        try:
            token_store = TokenStore(self.db, self.config, client=self.client)
            access_token = await token_store.access_token_for(user_id)
            gateway = NetatmoGateway(
                self.config, client=self.client, call_logger=self.repo.call_logger(self.db, user_id)
            )
            payload = await gateway.read_home_status(access_token, home_id)
        except Exception as e:
            logger.warning(f"⚠️ Status unavailable for home {home_id} (owner {user_id}): {e}")
            message = str(e) or type(e).__name__
            return [self._item(user_id, home_id, mapping, user_rooms, error=message) for mapping in rooms]

        by_id = index_room_status(payload)
        items = []
        for mapping in rooms:
            status = by_id.get(str(mapping.netatmo_room_id)) if mapping.netatmo_room_id else None
            items.append(self._item(user_id, home_id, mapping, user_rooms, **(status or {})))
        return items

    def _item(self, user_id: str, home_id: str, mapping: NetatmoThermostat, user_rooms: dict, **fields) -> StatusItem:
        user_room = user_rooms.get(mapping.user_room_id) if mapping.user_room_id else None
        return StatusItem(
            user_id=user_id,
            home_id=home_id,
            user_room_id=mapping.user_room_id,
            room_name=(user_room.room_name if user_room else None) or mapping.netatmo_room_name,
            external_room_id=user_room.room_id if user_room else None,
            netatmo_room_id=mapping.netatmo_room_id,
            label=mapping.label,
            **fields,
        )
