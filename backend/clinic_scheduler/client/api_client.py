"""Async HTTP client for the scheduler API, used by the calendar editor and scripts."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from clinic_scheduler.client.reference_cache import ReferenceDataCache

logger = logging.getLogger(__name__)


class ApiClientError(Exception):
    """Non-success envelope or transport failure"""
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class ClinicApiClient:

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ReferenceDataCache] = None,
    ):
        self.token = token
        self.cache = cache if cache is not None else ReferenceDataCache()
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {str(e)}")
            raise ApiClientError(0, str(e))
        if response.status_code >= 400:
            message = response.text
            try:
                body = response.json()
                message = body.get("message") or body.get("error") or message
            except ValueError:
                pass
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise ApiClientError(response.status_code, message)
        return response

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        body = (await self._send(method, path, **kwargs)).json()
        if not body.get("success", False):
            raise ApiClientError(200, body.get("message") or "Respuesta sin éxito")
        return body.get("data")

    # ====== Auth ======
    async def login(self, identifier: str, password: str) -> dict:
        data = await self._request("POST", "/api/auth/login", json={"identifier": identifier, "password": password})
        self.token = data["token"]
        return data["user"]

    async def me(self) -> dict:
        return await self._request("GET", "/api/auth/me")

    # ====== Reference data (cached) ======
    async def specialties(self) -> List[dict]:
        return await self.cache.get("specialties", lambda: self._request("GET", "/api/specialties"))

    async def offices(self) -> List[dict]:
        return await self.cache.get("offices", lambda: self._request("GET", "/api/offices"))

    async def doctors(self) -> List[dict]:
        return await self.cache.get("doctors", lambda: self._request("GET", "/api/doctors"))

    async def time_slots(self, month_id: int) -> List[dict]:
        return await self.cache.get(
            f"time-slots:{month_id}", lambda: self._request("GET", f"/api/time-slots/month/{month_id}")
        )

    async def create_time_slot(self, month_id: int, name: str, start_time: str, end_time: str, color: str = "#3B82F6") -> dict:
        data = await self._request(
            "POST",
            "/api/time-slots",
            json={"month_id": month_id, "name": name, "start_time": start_time, "end_time": end_time, "color": color},
        )
        self.cache.invalidate(f"time-slots:{month_id}")
        return data

    # ====== Calendar ======
    async def get_month(self, month_id: int) -> dict:
        return await self._request("GET", f"/api/calendar/months/{month_id}")

    async def update_month(self, month_id: int, theme_config: Optional[dict] = None, status: Optional[str] = None) -> dict:
        payload = {}
        if theme_config is not None:
            payload["theme_config"] = theme_config
        if status is not None:
            payload["status"] = status
        return await self._request("PUT", f"/api/calendar/months/{month_id}", json=payload)

    async def put_day(self, month_id: int, day: int, time_slot_ids: List[int], notes: Optional[str] = None) -> dict:
        return await self._request(
            "PUT", f"/api/days/{month_id}/{day}", json={"time_slot_ids": list(time_slot_ids), "notes": notes}
        )

    # ====== Reports ======
    def _report_params(self, month: str, specialty_id=None, service_id=None, doctor_id=None) -> dict:
        params = {"month": month, "specialty_id": specialty_id, "service_id": service_id, "doctor_id": doctor_id}
        return {k: v for k, v in params.items() if v is not None}

    async def monthly_report(self, month: str, **filters) -> bytes:
        """The xlsx bytes; a month without shifts raises ApiClientError(404)."""
        response = await self._send("GET", "/api/reports/monthly-schedule", params=self._report_params(month, **filters))
        return response.content

    async def monthly_report_preview(self, month: str, **filters) -> List[dict]:
        return await self._request(
            "GET", "/api/reports/monthly-schedule/preview", params=self._report_params(month, **filters)
        )
