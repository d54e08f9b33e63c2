"""Thermostat router - FastAPI endpoints for planning, operator status and Netatmo calls"""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ...auth import InvocationContext, Sweep, get_current_admin, resolve_invocation
from ...config import Config, get_config
from ...database import get_db
from ...models import User
from ...services.booking_client import BookingClient
from .alerts import find_cold_rooms
from .device import call_netatmo
from .planner import SchedulePlanner
from .schemas import AutoPlanResponse, NetatmoProxyRequest, StatusResponse, TemperatureAlertsResponse
from .status import StatusAggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/thermostat", tags=["Thermostat"])


def get_outbound_client(request: Request) -> Optional[httpx.AsyncClient]:
    """The app-wide HTTP client opened by the lifespan; None lets each call open its own"""
    return getattr(request.app.state, "http_client", None)


@router.post("/auto-plan", response_model=AutoPlanResponse)
async def auto_plan(
    context: InvocationContext = Depends(resolve_invocation),
    db: Session = Depends(get_db),
    config: Config = Depends(get_config),
    client: Optional[httpx.AsyncClient] = Depends(get_outbound_client),
):
    """Plan heat / stop schedules for upcoming reservations (cron: every owner)"""
    booking = BookingClient(config, context.authorization, client=client)
    planner = SchedulePlanner(db, config, booking)
    result = await planner.run(context)
    return result.to_payload()


@router.post("/netatmo")
async def netatmo_proxy(
    payload: NetatmoProxyRequest,
    context: InvocationContext = Depends(resolve_invocation),
    db: Session = Depends(get_db),
    config: Config = Depends(get_config),
    client: Optional[httpx.AsyncClient] = Depends(get_outbound_client),
):
    """Call Netatmo on behalf of the caller (cron: on behalf of `user_id`)"""
    if isinstance(context, Sweep):
        if not payload.user_id:
            raise HTTPException(status_code=400, detail="Missing user_id for cron mode")
        owner_id = payload.user_id
    else:
        owner_id = context.owner_id

    try:
        return await call_netatmo(db, config, owner_id, payload, client=client)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/admin/status", response_model=StatusResponse)
async def admin_thermostat_status(
    user_id: Optional[str] = Query(None),
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    config: Config = Depends(get_config),
    client: Optional[httpx.AsyncClient] = Depends(get_outbound_client),
):
    """Live status of every mapped thermostat, optionally for one owner"""
    logger.info(f"📋 Thermostat status requested by admin {admin.id}")
    aggregator = StatusAggregator(db, config, client=client)
    items = await aggregator.aggregate_status(user_id)
    return {"items": [item.to_dict() for item in items]}


@router.post("/admin/temperature-alerts", response_model=TemperatureAlertsResponse)
async def admin_temperature_alerts(
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    config: Config = Depends(get_config),
    client: Optional[httpx.AsyncClient] = Depends(get_outbound_client),
):
    """Rooms currently colder than their alert threshold"""
    alerts = await find_cold_rooms(db, StatusAggregator(db, config, client=client))
    return {"count": len(alerts), "alerts": [alert.to_dict() for alert in alerts]}
