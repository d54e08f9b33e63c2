"""
Netatmo Energy API Gateway
Thin authenticated adapter over the vendor home API; no caching, no retries
"""
import logging
from datetime import datetime
from typing import Any, Callable, Optional, Union

import httpx

from ..config import Config
from ..exceptions import UpstreamError

logger = logging.getLogger(__name__)

BODY_PREVIEW_LIMIT = 500

# (endpoint, params, response_status, body_preview, error)
CallLogger = Callable[[str, dict, Optional[int], str, Optional[str]], None]


class NetatmoGateway:
    """Netatmo home API client; every call takes the caller's access token"""

    def __init__(
        self,
        config: Config,
        client: Optional[httpx.AsyncClient] = None,
        call_logger: Optional[CallLogger] = None,
    ):
        self.base_url = config.netatmo_api_url.rstrip("/")
        self.timeout = config.http_timeout
        self.client = client
        self.call_logger = call_logger

    async def read_homes_data(self, access_token: str, home_id: Optional[str] = None) -> dict:
        """Homes topology (rooms, modules, schedules), optionally for one home"""
        params = {"home_id": home_id} if home_id else {}
        return await self._request(access_token, "GET", "homesdata", params=params)

    async def read_home_status(self, access_token: str, home_id: str) -> dict:
        """Live status of every room and module in a home"""
        if not home_id:
            raise ValueError("home_id is required for homestatus")
        return await self._request(access_token, "GET", "homestatus", params={"home_id": home_id})

    async def set_room_setpoint(
        self,
        access_token: str,
        home_id: str,
        room_id: str,
        mode: str,
        temp: Optional[float] = None,
        end_time: Union[datetime, int, None] = None,
    ) -> dict:
        """
        Change a room's setpoint.

        Args:
            mode: "manual" (requires temp), "home" (back to schedule), "max", ...
            end_time: when a manual setpoint expires; a datetime (aware or naive
                UTC) or epoch seconds
        """
        if not home_id or not room_id or not mode:
            raise ValueError("home_id, room_id and mode are required")
        if mode == "manual" and not isinstance(temp, (int, float)):
            raise ValueError("temp is required and must be a number for manual mode")

        form: dict[str, Any] = {"home_id": home_id, "room_id": room_id, "mode": mode}
        if mode == "manual":
            form["temp"] = str(temp)
        if end_time is not None:
            form["endtime"] = str(_epoch_seconds(end_time))
        return await self._request(access_token, "POST", "setroomthermpoint", data=form)

    async def read_legacy_weather_station(self, access_token: str, device_id: Optional[str] = None) -> dict:
        """Weather station data, kept for accounts linked before the Energy API"""
        params = {"device_id": device_id} if device_id else {}
        return await self._request(access_token, "GET", "getstationsdata", params=params)

    async def read_room_measure(
        self,
        access_token: str,
        home_id: str,
        room_id: str,
        scale: str,
        measure_types: Union[str, list[str]],
        date_begin: Optional[int] = None,
        date_end: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> dict:
        """Historical measurements of a room (temperature, setpoint...)"""
        if not home_id or not room_id or not scale or not measure_types:
            raise ValueError("home_id, room_id, scale and type are required")
        params: dict[str, Any] = {
            "home_id": home_id,
            "room_id": room_id,
            "scale": scale,
            "type": ",".join(measure_types) if isinstance(measure_types, list) else measure_types,
        }
        if date_begin is not None:
            params["date_begin"] = str(date_begin)
        if date_end is not None:
            params["date_end"] = str(date_end)
        if limit is not None:
            params["limit"] = str(min(max(limit, 1), 1024))
        return await self._request(access_token, "GET", "getroommeasure", params=params)

    async def _request(
        self,
        access_token: str,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        data: Optional[dict] = None,
    ) -> dict:
        url = f"{self.base_url}/api/{endpoint}"
        headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
        log_params = {**(params or {}), **(data or {})}

        try:
            if self.client is not None:
                response = await self.client.request(
                    method, url, params=params, data=data, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, params=params, data=data, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"❌ Netatmo {endpoint} request failed: {type(e).__name__}: {e}")
            self._log_call(endpoint, log_params, None, "", str(e) or type(e).__name__)
            raise UpstreamError(None, str(e) or type(e).__name__) from e

        preview = response.text[:BODY_PREVIEW_LIMIT] if response.text else ""

        if not response.is_success:
            logger.warning(f"⚠️ Netatmo {endpoint} returned HTTP {response.status_code}")
            self._log_call(endpoint, log_params, response.status_code, preview, preview)
            raise UpstreamError(response.status_code, preview)

        self._log_call(endpoint, log_params, response.status_code, preview, None)

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(response.status_code, "invalid JSON from Netatmo") from e
        if not isinstance(payload, dict):
            raise UpstreamError(response.status_code, "unexpected Netatmo payload")
        return payload

    def _log_call(self, endpoint: str, params: dict, status: Optional[int], preview: str, error: Optional[str]):
        if not self.call_logger:
            return
        try:
            self.call_logger(endpoint, params, status, preview, error)
        except Exception as e:
            # Audit logging never fails the call
            logger.warning(f"⚠️ Netatmo call log failed for {endpoint}: {e}")


def _epoch_seconds(value: Union[datetime, int]) -> int:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return int((value - datetime(1970, 1, 1)).total_seconds())
        return int(value.timestamp())
    return int(value)
