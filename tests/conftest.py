from datetime import date

import pytest

from clinic_booking.cache import AvailabilityCache
from clinic_booking.models import Doctor, Patient
from clinic_booking.service import BookingService
from clinic_booking.store import InMemoryStore

TODAY = date(2026, 10, 17)
FUTURE = date(2030, 1, 10)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store() -> InMemoryStore:
    s = InMemoryStore()
    s.add_patient(Patient(id=1, name="John Doe", age=42, gender="M"))
    s.add_patient(Patient(id=2, name="Jane Roe", age=35, gender="F"))
    s.add_doctor(Doctor(id=5, name="Dr. Asha Mehta", specialization="Cardiology"))
    s.add_doctor(Doctor(id=6, name="Dr. Rahul Verma", specialization="Dermatology"))
    return s


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store, clock) -> BookingService:
    return BookingService(store, cache=AvailabilityCache(clock=clock), today=lambda: TODAY)
