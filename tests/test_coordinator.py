import asyncio
from datetime import date, timedelta

import pytest

from clinic_booking.cache import AvailabilityCache, SubjectKind
from clinic_booking.coordinator import BookingCoordinator
from clinic_booking.errors import Conflict, Forbidden, InvalidInput, InvalidState, NotFound, StoreError
from clinic_booking.models import Appointment

from conftest import FUTURE, TODAY


def _coordinator(store, cache=None):
    return BookingCoordinator(store, cache if cache is not None else AvailabilityCache(), today=lambda: TODAY)


@pytest.mark.asyncio
async def test_book_assigns_id_and_persists(store):
    appt = await _coordinator(store).book(1, 5, FUTURE)
    assert isinstance(appt, Appointment)
    assert appt.id is not None
    assert store.appointments[appt.id].doctor_id == 5


@pytest.mark.asyncio
async def test_book_today_is_allowed(store):
    appt = await _coordinator(store).book(1, 5, TODAY)
    assert appt.appointment_date == TODAY


@pytest.mark.asyncio
async def test_book_unknown_patient(store):
    with pytest.raises(NotFound) as exc:
        await _coordinator(store).book(99, 5, FUTURE)
    assert exc.value.message == "Patient not found"


@pytest.mark.asyncio
async def test_book_unknown_doctor(store):
    with pytest.raises(NotFound) as exc:
        await _coordinator(store).book(1, 99, FUTURE)
    assert exc.value.message == "Doctor not found"


@pytest.mark.asyncio
async def test_book_in_the_past_never_inserts(store):
    with pytest.raises(InvalidInput):
        await _coordinator(store).book(1, 5, TODAY - timedelta(days=1))
    assert store.insert_calls == 0


@pytest.mark.asyncio
async def test_second_booking_same_doctor_and_day_conflicts(store):
    coordinator = _coordinator(store)
    await coordinator.book(1, 5, FUTURE)
    with pytest.raises(Conflict):
        await coordinator.book(2, 5, FUTURE)
    # other doctor, or other day, is fine
    await coordinator.book(2, 6, FUTURE)
    await coordinator.book(2, 5, FUTURE + timedelta(days=1))


@pytest.mark.asyncio
async def test_concurrent_bookings_exactly_one_wins(store):
    store.latency = 0.001
    coordinator = _coordinator(store)

    outcomes = await asyncio.gather(
        coordinator.book(1, 5, FUTURE),
        coordinator.book(2, 5, FUTURE),
        return_exceptions=True,
    )

    booked = [o for o in outcomes if isinstance(o, Appointment)]
    conflicts = [o for o in outcomes if isinstance(o, Conflict)]
    assert len(booked) == 1
    assert len(conflicts) == 1
    assert store.insert_calls == 1


@pytest.mark.asyncio
async def test_many_concurrent_bookings_leave_one_row_per_doctor_day(store):
    coordinator = _coordinator(store)
    calls = [coordinator.book(1 + i % 2, 5 + i % 2, FUTURE) for i in range(10)]
    await asyncio.gather(*calls, return_exceptions=True)

    rows = [(a.doctor_id, a.appointment_date) for a in store.appointments.values()]
    assert sorted(rows) == [(5, FUTURE), (6, FUTURE)]


@pytest.mark.asyncio
async def test_cancel_own_appointment(store):
    coordinator = _coordinator(store)
    appt = await coordinator.book(1, 5, FUTURE)
    assert await coordinator.cancel(appt.id, 1) is True
    assert appt.id not in store.appointments


@pytest.mark.asyncio
async def test_cancel_missing_appointment(store):
    with pytest.raises(NotFound):
        await _coordinator(store).cancel(404, 1)


@pytest.mark.asyncio
async def test_cancel_by_other_patient_is_forbidden_and_keeps_row(store):
    coordinator = _coordinator(store)
    appt = await coordinator.book(1, 5, FUTURE)
    with pytest.raises(Forbidden):
        await coordinator.cancel(appt.id, 2)
    assert appt.id in store.appointments


@pytest.mark.asyncio
async def test_cancel_past_appointment(store):
    past = Appointment(id=77, patient_id=1, doctor_id=5, appointment_date=date(2020, 3, 1))
    store.appointments[77] = past
    with pytest.raises(InvalidState):
        await _coordinator(store).cancel(77, 1)
    assert 77 in store.appointments


@pytest.mark.asyncio
async def test_cancel_reports_false_when_row_already_gone(store, monkeypatch):
    coordinator = _coordinator(store)
    appt = await coordinator.book(1, 5, FUTURE)

    async def already_deleted(appointment_id):
        return False

    monkeypatch.setattr(store, "delete_appointment", already_deleted)
    assert await coordinator.cancel(appt.id, 1) is False


@pytest.mark.asyncio
async def test_mutations_invalidate_cache_only_on_success(store):
    cache = AvailabilityCache()
    coordinator = _coordinator(store, cache)

    async def seed():
        await cache.get_or_load(SubjectKind.DOCTOR, 5, lambda: store.list_appointments_by_doctor(5))
        assert len(cache) == 1

    await seed()
    appt = await coordinator.book(1, 5, FUTURE)
    assert len(cache) == 0

    await seed()
    with pytest.raises(Conflict):
        await coordinator.book(2, 5, FUTURE)
    with pytest.raises(Forbidden):
        await coordinator.cancel(appt.id, 2)
    assert len(cache) == 1

    await coordinator.cancel(appt.id, 1)
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_store_failure_becomes_store_error(store, monkeypatch):
    async def broken(doctor_id, appointment_date):
        raise ConnectionError("db socket closed")

    monkeypatch.setattr(store, "is_doctor_available", broken)
    with pytest.raises(StoreError) as exc:
        await _coordinator(store).book(1, 5, FUTURE)
    assert "socket" not in exc.value.message
    assert isinstance(exc.value.__cause__, ConnectionError)
