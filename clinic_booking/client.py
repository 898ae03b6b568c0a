"""Async store client for the clinic records REST service.
Assumes OAuth2 client-credentials flow.
"""
from __future__ import annotations
import logging
import time
from datetime import date

import httpx

from .errors import Conflict, StoreError
from .models import Appointment, Doctor, Patient

logger = logging.getLogger(__name__)


class HttpStore:
    """Store backed by the records service. One short-lived client per call."""

    def __init__(
        self,
        base_url: str,
        token_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        timeout: float = 15,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url or f"{self.base_url}/oauth2/token"
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self._token_cache: dict[str, float | str | None] = {"token": None, "exp": 0.0}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(http2=True, timeout=self.timeout)

    async def _get_token(self) -> str:
        """Fetch and cache bearer token until 5 minutes before it expires."""
        now = time.time()
        if self._token_cache["token"] and now < self._token_cache["exp"]:
            return self._token_cache["token"]  # type: ignore

        async with self._client() as client:
            resp = await client.post(
                self.token_url,
                data={"grant_type": "client_credentials"},
                auth=(self.client_id or "", self.client_secret or ""),
            )
            resp.raise_for_status()
            data = resp.json()
        token = data["access_token"]
        # default expires_in 3600 seconds = 1 hour
        self._token_cache.update(token=token, exp=now + data.get("expires_in", 3600) - 300)
        return token

    async def _request(self, method: str, path: str, allow: tuple[int, ...] = (404,), **kwargs) -> httpx.Response:
        """Send an authorized request. Statuses in ``allow`` are returned unraised."""
        try:
            headers = {"Authorization": f"Bearer {await self._get_token()}", "Accept": "application/json"}
            async with self._client() as client:
                resp = await client.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
            if resp.status_code not in allow:
                resp.raise_for_status()
            return resp
        except httpx.HTTPError as e:
            logger.error("Records service %s %s failed (%s: %s)", method, path, type(e).__name__, e)
            raise StoreError() from e

    async def _get_one(self, path: str) -> dict | None:
        resp = await self._request("GET", path)
        if resp.status_code == 404:
            return None
        return resp.json()

    async def _get_appointments(self, params: dict) -> list[Appointment]:
        resp = await self._request("GET", "/appointments", allow=(), params=params)
        rows = [Appointment.model_validate(item) for item in resp.json()]
        return sorted(rows, key=lambda a: a.appointment_date)

    async def find_patient(self, patient_id: int) -> Patient | None:
        payload = await self._get_one(f"/patients/{patient_id}")
        return Patient.model_validate(payload) if payload else None

    async def find_doctor(self, doctor_id: int) -> Doctor | None:
        payload = await self._get_one(f"/doctors/{doctor_id}")
        return Doctor.model_validate(payload) if payload else None

    async def list_doctors(self) -> list[Doctor]:
        resp = await self._request("GET", "/doctors", allow=())
        doctors = [Doctor.model_validate(item) for item in resp.json()]
        return sorted(doctors, key=lambda d: d.id)

    async def is_doctor_available(self, doctor_id: int, appointment_date: date) -> bool:
        """True when the doctor has nothing booked on that date."""
        params = {"doctor_id": doctor_id, "date": appointment_date.isoformat()}
        resp = await self._request("GET", "/appointments", allow=(), params=params)
        return not resp.json()

    async def insert_appointment(self, patient_id: int, doctor_id: int, appointment_date: date) -> Appointment:
        body = {
            "patient_id": patient_id,
            "doctor_id": doctor_id,
            "appointment_date": appointment_date.isoformat(),
        }
        resp = await self._request("POST", "/appointments", allow=(409,), json=body)
        if resp.status_code == 409:
            # backend unique constraint on (doctor_id, appointment_date)
            raise Conflict()
        return Appointment.model_validate(resp.json())

    async def delete_appointment(self, appointment_id: int) -> bool:
        resp = await self._request("DELETE", f"/appointments/{appointment_id}")
        return resp.status_code != 404

    async def find_appointment(self, appointment_id: int) -> Appointment | None:
        payload = await self._get_one(f"/appointments/{appointment_id}")
        return Appointment.model_validate(payload) if payload else None

    async def list_appointments_by_patient(self, patient_id: int) -> list[Appointment]:
        return await self._get_appointments({"patient_id": patient_id})

    async def list_appointments_by_doctor(self, doctor_id: int) -> list[Appointment]:
        return await self._get_appointments({"doctor_id": doctor_id})
