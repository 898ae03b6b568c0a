"""Booking / cancellation critical sections.

All ``book`` and ``cancel`` calls go through one ``asyncio.Lock``. That is a
single global serialization point: booking traffic is human-paced, and one
lock makes "at most one appointment per doctor per date" trivially hold.
If throughput ever matters, move to one lock per (doctor_id, date) key, or
lean on a unique constraint in the store and treat its rejection as a
Conflict (HttpStore already maps a 409 on insert that way).
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Callable

from .cache import AvailabilityCache
from .errors import BookingError, Conflict, Forbidden, InvalidInput, InvalidState, NotFound, StoreError
from .models import Appointment
from .store import Store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def store_errors(operation: str):
    """Let typed booking errors through; anything else from the store becomes StoreError."""
    try:
        yield
    except BookingError:
        raise
    except Exception as e:
        logger.error("Store failure during %s (%s: %s)", operation, type(e).__name__, e)
        raise StoreError() from e


class BookingCoordinator:
    """The only writer of appointments."""

    def __init__(self, store: Store, cache: AvailabilityCache, today: Callable[[], date] = date.today):
        self._store = store
        self._cache = cache
        self._today = today
        self._lock = asyncio.Lock()

    async def book(self, patient_id: int, doctor_id: int, appointment_date: date) -> Appointment:
        """
        Book ``doctor_id`` for ``patient_id`` on ``appointment_date``.

        Checks, in order: patient exists, doctor exists, date is not before
        today, doctor has nothing that day. The availability check and the
        insert run under the lock, so of two racing requests for the same
        doctor and day exactly one wins and the other gets Conflict.
        """
        async with self._lock, store_errors("book"):
            if await self._store.find_patient(patient_id) is None:
                raise NotFound("Patient not found")
            if await self._store.find_doctor(doctor_id) is None:
                raise NotFound("Doctor not found")
            if appointment_date < self._today():
                logger.info("Rejected booking in the past: doctor=%s date=%s", doctor_id, appointment_date)
                raise InvalidInput("Cannot book appointment in the past")
            if not await self._store.is_doctor_available(doctor_id, appointment_date):
                logger.info("Doctor %s already booked on %s", doctor_id, appointment_date)
                raise Conflict()

            appointment = await self._store.insert_appointment(patient_id, doctor_id, appointment_date)
            self._cache.invalidate_all()

        logger.info(
            "Booked appointment %s: patient=%s doctor=%s date=%s",
            appointment.id, patient_id, doctor_id, appointment_date,
        )
        return appointment

    async def cancel(self, appointment_id: int, requesting_patient_id: int) -> bool:
        """Delete the requester's own upcoming appointment.

        Returns False only if the row disappeared between lookup and delete.
        """
        async with self._lock, store_errors("cancel"):
            appointment = await self._store.find_appointment(appointment_id)
            if appointment is None:
                raise NotFound("Appointment not found")
            if appointment.patient_id != requesting_patient_id:
                logger.info(
                    "Patient %s tried to cancel appointment %s owned by patient %s",
                    requesting_patient_id, appointment_id, appointment.patient_id,
                )
                raise Forbidden()
            if appointment.appointment_date < self._today():
                raise InvalidState()

            removed = await self._store.delete_appointment(appointment_id)
            if removed:
                self._cache.invalidate_all()

        logger.info("Cancel appointment %s by patient %s: removed=%s", appointment_id, requesting_patient_id, removed)
        return removed
