"""Booking service: the object the API layer talks to.

Owns the store, the appointment-list cache, the coordinator and the batch
pool. Build one per process (or per test) and call ``shutdown`` once on the
way out.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Awaitable, Callable, Iterable, TypeVar

from .cache import AvailabilityCache, SubjectKind
from .client import HttpStore
from .config import Settings
from .coordinator import BookingCoordinator, store_errors
from .models import Appointment, Doctor, Patient
from .pool import DEFAULT_GRACE_SECONDS, BatchWorkPool
from .store import InMemoryStore, Store

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BookingService:
    def __init__(
        self,
        store: Store,
        cache: AvailabilityCache | None = None,
        pool: BatchWorkPool | None = None,
        today: Callable[[], date] = date.today,
        shutdown_grace: float = DEFAULT_GRACE_SECONDS,
    ):
        self.store = store
        self.cache = cache if cache is not None else AvailabilityCache()
        self.pool = pool if pool is not None else BatchWorkPool()
        self.coordinator = BookingCoordinator(store, self.cache, today=today)
        self._today = today
        self._shutdown_grace = shutdown_grace
        self._shut_down = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "BookingService":
        if settings.offline_mode:
            logger.info("OFFLINE_MODE: using in-memory demo store")
            store: Store = demo_store()
        else:
            store = HttpStore(
                settings.store_url,
                token_url=settings.token_url,
                client_id=settings.client_id,
                client_secret=settings.client_secret,
                timeout=settings.store_timeout_seconds,
            )
        return cls(
            store,
            cache=AvailabilityCache(ttl=settings.cache_ttl_seconds),
            pool=BatchWorkPool(max_workers=settings.batch_workers),
            shutdown_grace=settings.shutdown_grace_seconds,
        )

    # Writes -----------------------------------------------------------------

    async def book(self, patient_id: int, doctor_id: int, appointment_date: date) -> Appointment:
        return await self.coordinator.book(patient_id, doctor_id, appointment_date)

    async def cancel(self, appointment_id: int, patient_id: int) -> bool:
        return await self.coordinator.cancel(appointment_id, patient_id)

    # Reads ------------------------------------------------------------------

    async def _read(self, operation: str, call: Awaitable[T]) -> T:
        async with store_errors(operation):
            return await call

    async def list_for_patient(self, patient_id: int) -> list[Appointment]:
        return await self._read("list_for_patient", self.cache.get_or_load(
            SubjectKind.PATIENT, patient_id,
            lambda: self.store.list_appointments_by_patient(patient_id),
        ))

    async def list_for_doctor(self, doctor_id: int) -> list[Appointment]:
        return await self._read("list_for_doctor", self.cache.get_or_load(
            SubjectKind.DOCTOR, doctor_id,
            lambda: self.store.list_appointments_by_doctor(doctor_id),
        ))

    async def list_past_for_patient(self, patient_id: int) -> list[Appointment]:
        """Appointments before today, most recent first."""
        today = self._today()
        appointments = await self.list_for_patient(patient_id)
        return sorted(
            (a for a in appointments if a.appointment_date < today),
            key=lambda a: a.appointment_date,
            reverse=True,
        )

    async def list_doctors(self, specialization: str | None = None) -> list[Doctor]:
        doctors = await self._read("list_doctors", self.store.list_doctors())
        if specialization:
            needle = specialization.lower()
            return [d for d in doctors if needle in d.specialization.lower()]
        return doctors

    async def is_available(self, doctor_id: int, appointment_date: date) -> bool:
        return await self._read("is_available", self.store.is_doctor_available(doctor_id, appointment_date))

    # Batches ----------------------------------------------------------------

    async def prefetch_appointments(self, patient_ids: Iterable[int]) -> dict[int, list[Appointment]]:
        """Fetch each patient's list straight from the store. Failed ids are left out."""
        result = await self.pool.run_all(patient_ids, self.store.list_appointments_by_patient)
        return result.values

    async def check_availability(self, doctor_ids: Iterable[int], appointment_date: date) -> dict[int, bool]:
        """Availability per doctor on one date. A failed lookup counts as not available."""
        result = await self.pool.run_all(
            doctor_ids,
            lambda doctor_id: self.store.is_doctor_available(doctor_id, appointment_date),
        )
        availability = dict(result.values)
        for doctor_id in result.failures:
            availability[doctor_id] = False
        return availability

    # Lifecycle --------------------------------------------------------------

    async def shutdown(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("Draining batch pool (grace=%.1fs)", self._shutdown_grace)
        await self.pool.shutdown(grace=self._shutdown_grace)


def demo_store() -> InMemoryStore:
    """Small fixed roster for OFFLINE_MODE."""
    store = InMemoryStore()
    store.add_doctor(Doctor(id=1, name="Dr. Asha Mehta", specialization="Cardiology"))
    store.add_doctor(Doctor(id=2, name="Dr. Rahul Verma", specialization="Dermatology"))
    store.add_doctor(Doctor(id=3, name="Dr. Priya Nair", specialization="Pediatrics"))
    store.add_patient(Patient(id=1, name="John Doe", age=42, gender="M"))
    store.add_patient(Patient(id=2, name="Jane Roe", age=35, gender="F"))
    return store
