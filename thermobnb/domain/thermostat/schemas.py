"""Thermostat domain schemas - Pydantic models for responses"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


class AutoPlanResponse(BaseModel):
    """Planner result, keys as consumed by the dashboard"""

    ok: bool
    isCron: bool
    processedForUsers: dict[str, int]
    errorsForUsers: dict[str, list[str]]


class StatusItemResponse(BaseModel):
    user_id: str
    home_id: str
    user_room_id: Optional[str] = None
    room_name: Optional[str] = None
    external_room_id: Optional[str] = None
    netatmo_room_id: Optional[str] = None
    label: Optional[str] = None
    therm_measured_temperature: Optional[float] = None
    therm_setpoint_temperature: Optional[float] = None
    therm_setpoint_mode: Optional[str] = None
    heating_power_request: Optional[float] = None
    error: Optional[str] = None


class StatusResponse(BaseModel):
    items: list[StatusItemResponse]


class TemperatureAlertResponse(BaseModel):
    user_id: str
    user_room_id: Optional[str] = None
    room_name: Optional[str] = None
    home_id: str
    netatmo_room_id: str
    measured: float
    threshold: float


class TemperatureAlertsResponse(BaseModel):
    count: int
    alerts: list[TemperatureAlertResponse]


NetatmoEndpoint = Literal["homesdata", "homestatus", "setroomthermpoint", "getstationsdata", "getroommeasure"]


class NetatmoProxyRequest(BaseModel):
    """One Netatmo call made with the owner's stored token"""

    endpoint: NetatmoEndpoint = "homesdata"
    user_id: Optional[str] = None  # required for cron calls
    home_id: Optional[str] = None
    room_id: Optional[str] = None
    device_id: Optional[str] = None
    mode: Optional[str] = None
    temp: Optional[float] = None
    endtime: Optional[int] = None
    scale: Optional[str] = None
    measure_type: Optional[Union[str, list[str]]] = Field(None, alias="type")
    date_begin: Optional[int] = None
    date_end: Optional[int] = None
    limit: Optional[int] = None
