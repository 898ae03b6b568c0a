from datetime import date

from pydantic import BaseModel, ConfigDict, Field

class Patient(BaseModel):
    id: int
    name: str
    age: int | None = None
    gender: str | None = None

class Doctor(BaseModel):
    id: int
    name: str
    specialization: str = ""

class Appointment(BaseModel):
    """One booked day with a doctor. Display fields are only filled on joined reads."""
    model_config = ConfigDict(frozen=True)

    id: int | None = None  # assigned by the store
    patient_id: int
    doctor_id: int
    appointment_date: date
    patient_name: str | None = None
    doctor_name: str | None = None
    doctor_specialization: str | None = None

class BookRequest(BaseModel):
    patient_id: int
    doctor_id: int
    appointment_date: date = Field(alias="date")  # YYYY-MM-DD

    model_config = {
        "populate_by_name": True
    }

class CancelRequest(BaseModel):
    appointment_id: int
    patient_id: int

class CancelResponse(BaseModel):
    appointment_id: int
    cancelled: bool

class AvailabilityResponse(BaseModel):
    doctor_id: int
    appointment_date: date
    available: bool

class AvailabilityBatchRequest(BaseModel):
    doctor_ids: list[int]
    appointment_date: date = Field(alias="date")  # YYYY-MM-DD

    model_config = {
        "populate_by_name": True
    }

class PrefetchRequest(BaseModel):
    patient_ids: list[int]
