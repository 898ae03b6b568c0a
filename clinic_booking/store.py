"""Persistence interface consumed by the booking core, plus an in-memory backend.

The in-memory store is what OFFLINE_MODE runs on and what the tests use.
It deliberately does not enforce one-appointment-per-doctor-per-day; that is
the coordinator's job.
"""
from __future__ import annotations

import asyncio
import itertools
from datetime import date
from typing import Protocol

from .models import Appointment, Doctor, Patient


class Store(Protocol):
    async def find_patient(self, patient_id: int) -> Patient | None: ...

    async def find_doctor(self, doctor_id: int) -> Doctor | None: ...

    async def list_doctors(self) -> list[Doctor]: ...

    async def is_doctor_available(self, doctor_id: int, appointment_date: date) -> bool: ...

    async def insert_appointment(self, patient_id: int, doctor_id: int, appointment_date: date) -> Appointment: ...

    async def delete_appointment(self, appointment_id: int) -> bool: ...

    async def find_appointment(self, appointment_id: int) -> Appointment | None: ...

    async def list_appointments_by_patient(self, patient_id: int) -> list[Appointment]: ...

    async def list_appointments_by_doctor(self, doctor_id: int) -> list[Appointment]: ...


class InMemoryStore:
    """Dict-backed store. ``latency`` is awaited before every operation."""

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self.patients: dict[int, Patient] = {}
        self.doctors: dict[int, Doctor] = {}
        self.appointments: dict[int, Appointment] = {}
        self.insert_calls = 0
        self._ids = itertools.count(1)

    def add_patient(self, patient: Patient) -> Patient:
        self.patients[patient.id] = patient
        return patient

    def add_doctor(self, doctor: Doctor) -> Doctor:
        self.doctors[doctor.id] = doctor
        return doctor

    async def _pause(self) -> None:
        # always yield so concurrent callers interleave between steps
        await asyncio.sleep(self.latency)

    def _joined(self, appt: Appointment) -> Appointment:
        patient = self.patients.get(appt.patient_id)
        doctor = self.doctors.get(appt.doctor_id)
        return appt.model_copy(update={
            "patient_name": patient.name if patient else None,
            "doctor_name": doctor.name if doctor else None,
            "doctor_specialization": doctor.specialization if doctor else None,
        })

    async def find_patient(self, patient_id: int) -> Patient | None:
        await self._pause()
        return self.patients.get(patient_id)

    async def find_doctor(self, doctor_id: int) -> Doctor | None:
        await self._pause()
        return self.doctors.get(doctor_id)

    async def list_doctors(self) -> list[Doctor]:
        await self._pause()
        return [self.doctors[k] for k in sorted(self.doctors)]

    async def is_doctor_available(self, doctor_id: int, appointment_date: date) -> bool:
        await self._pause()
        return not any(
            a.doctor_id == doctor_id and a.appointment_date == appointment_date
            for a in self.appointments.values()
        )

    async def insert_appointment(self, patient_id: int, doctor_id: int, appointment_date: date) -> Appointment:
        await self._pause()
        self.insert_calls += 1
        appt = Appointment(
            id=next(self._ids),
            patient_id=patient_id,
            doctor_id=doctor_id,
            appointment_date=appointment_date,
        )
        self.appointments[appt.id] = appt
        return appt

    async def delete_appointment(self, appointment_id: int) -> bool:
        await self._pause()
        return self.appointments.pop(appointment_id, None) is not None

    async def find_appointment(self, appointment_id: int) -> Appointment | None:
        await self._pause()
        appt = self.appointments.get(appointment_id)
        return self._joined(appt) if appt else None

    async def list_appointments_by_patient(self, patient_id: int) -> list[Appointment]:
        await self._pause()
        rows = [a for a in self.appointments.values() if a.patient_id == patient_id]
        return [self._joined(a) for a in sorted(rows, key=lambda a: a.appointment_date)]

    async def list_appointments_by_doctor(self, doctor_id: int) -> list[Appointment]:
        await self._pause()
        rows = [a for a in self.appointments.values() if a.doctor_id == doctor_id]
        return [self._joined(a) for a in sorted(rows, key=lambda a: a.appointment_date)]
