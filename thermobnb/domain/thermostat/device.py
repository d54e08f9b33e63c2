"""
Owner-scoped Netatmo calls

Refreshes the owner's token when needed, then forwards one call to the
gateway. Every call is written to the Netatmo call log.
"""

import logging
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ...config import Config
from ...services.netatmo_gateway import NetatmoGateway
from ...services.token_store import TokenStore
from .repository import ThermostatRepository
from .schemas import NetatmoProxyRequest

logger = logging.getLogger(__name__)


async def call_netatmo(
    db: Session,
    config: Config,
    owner_id: str,
    request: NetatmoProxyRequest,
    client: Optional[httpx.AsyncClient] = None,
) -> dict:
    """
    Run `request.endpoint` for an owner and return the Netatmo payload.

    Raises:
        NotConnected: the owner never linked Netatmo
        TokenRefreshFailed: the stored token could not be refreshed
        UpstreamError: Netatmo answered with an error or not at all
        ValueError: parameters missing for the endpoint
    """
    access_token = await TokenStore(db, config, client=client).access_token_for(owner_id)
    gateway = NetatmoGateway(config, client=client, call_logger=ThermostatRepository.call_logger(db, owner_id))
    logger.info(f"🌡️ Netatmo {request.endpoint} for owner {owner_id}")

    if request.endpoint == "homestatus":
        return await gateway.read_home_status(access_token, request.home_id)
    if request.endpoint == "setroomthermpoint":
        return await gateway.set_room_setpoint(
            access_token,
            request.home_id,
            request.room_id,
            request.mode,
            temp=request.temp,
            end_time=request.endtime,
        )
    if request.endpoint == "getstationsdata":
        return await gateway.read_legacy_weather_station(access_token, request.device_id)
    if request.endpoint == "getroommeasure":
        return await gateway.read_room_measure(
            access_token,
            request.home_id,
            request.room_id,
            request.scale,
            request.measure_type,
            date_begin=request.date_begin,
            date_end=request.date_end,
            limit=request.limit,
        )
    return await gateway.read_homes_data(access_token, request.home_id)
