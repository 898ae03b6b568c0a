"""HTTP surface over the booking service.

Run with ``uvicorn clinic_booking.api:create_app --factory``.
"""
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings, load_settings, setup_logging
from .errors import BookingError
from .models import (
    Appointment,
    AvailabilityBatchRequest,
    AvailabilityResponse,
    BookRequest,
    CancelRequest,
    CancelResponse,
    Doctor,
    PrefetchRequest,
)
from .service import BookingService

# HTTPBearer scheme so Swagger-UI can attach the Authorization header globally
auth_scheme = HTTPBearer(auto_error=False)


def verify_key(request: Request, credentials: HTTPAuthorizationCredentials = Depends(auth_scheme)):
    """Validate Bearer token provided via Authorization header"""
    api_key = request.app.state.settings.api_key
    if credentials is None or credentials.scheme.lower() != "bearer" or credentials.credentials != api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_service(request: Request) -> BookingService:
    return request.app.state.service


router = APIRouter(dependencies=[Depends(verify_key)])

# Booking ------------------------------------------------------------------

@router.post("/appointments", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def book_appt(req: BookRequest, service: BookingService = Depends(get_service)):
    """Book a doctor for a patient on a date."""
    return await service.book(req.patient_id, req.doctor_id, req.appointment_date)

@router.post("/cancel", response_model=CancelResponse)
async def cancel(req: CancelRequest, service: BookingService = Depends(get_service)):
    """Cancel one of the requesting patient's upcoming appointments."""
    cancelled = await service.cancel(req.appointment_id, req.patient_id)
    return CancelResponse(appointment_id=req.appointment_id, cancelled=cancelled)

# Read-only endpoints

@router.get("/patients/{patient_id}/appointments", response_model=list[Appointment])
async def patient_appointments(
    patient_id: int,
    past: bool = Query(False, description="Only appointments before today, most recent first"),
    service: BookingService = Depends(get_service),
):
    if past:
        return await service.list_past_for_patient(patient_id)
    return await service.list_for_patient(patient_id)

@router.get("/doctors", response_model=list[Doctor])
async def doctors(
    specialization: Optional[str] = Query(None, description="Case-insensitive substring filter"),
    service: BookingService = Depends(get_service),
):
    return await service.list_doctors(specialization)

@router.get("/doctors/{doctor_id}/appointments", response_model=list[Appointment])
async def doctor_appointments(doctor_id: int, service: BookingService = Depends(get_service)):
    return await service.list_for_doctor(doctor_id)

@router.get("/doctors/{doctor_id}/availability", response_model=AvailabilityResponse)
async def doctor_availability(
    doctor_id: int,
    appt_date: date = Query(..., alias="date", description="YYYY-MM-DD"),
    service: BookingService = Depends(get_service),
):
    available = await service.is_available(doctor_id, appt_date)
    return AvailabilityResponse(doctor_id=doctor_id, appointment_date=appt_date, available=available)

# Batch endpoints

@router.post("/availability/batch", response_model=dict[int, bool])
async def availability_batch(req: AvailabilityBatchRequest, service: BookingService = Depends(get_service)):
    """Availability of several doctors on one date; failed lookups report false."""
    return await service.check_availability(req.doctor_ids, req.appointment_date)

@router.post("/appointments/prefetch", response_model=dict[int, list[Appointment]])
async def prefetch(req: PrefetchRequest, service: BookingService = Depends(get_service)):
    """Appointment lists for several patients; ids whose lookup failed are omitted."""
    return await service.prefetch_appointments(req.patient_ids)


async def booking_error_handler(request: Request, exc: BookingError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(settings: Optional[Settings] = None, service: Optional[BookingService] = None) -> FastAPI:
    """Build the API. An injected service is used as-is, otherwise one is built from settings on startup."""
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if service is None:
            app.state.service = BookingService.from_settings(settings)
        try:
            yield
        finally:
            await app.state.service.shutdown()

    app = FastAPI(title="Clinic Booking Service", lifespan=lifespan)
    app.state.settings = settings
    if service is not None:
        app.state.service = service
    app.add_exception_handler(BookingError, booking_error_handler)
    app.include_router(router)
    return app
