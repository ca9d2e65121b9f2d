from typing import List, Optional
from pydantic import BaseModel, Field

# --- Incoming tool requests ---

class CheckAvailabilityRequest(BaseModel):
    date: str  # YYYY-MM-DD, local to the tenant
    duration_minutes: int = 30
    timezone: Optional[str] = None

class BookAppointmentRequest(BaseModel):
    start_time: str
    end_time: str
    timezone: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    title: Optional[str] = None
    notes: Optional[str] = None
    idempotency_key: Optional[str] = None

class CancelAppointmentRequest(BaseModel):
    appointment_id: int
    idempotency_key: Optional[str] = None

class RescheduleAppointmentRequest(BaseModel):
    appointment_id: int
    new_start_time: str
    new_end_time: str
    timezone: Optional[str] = None
    idempotency_key: Optional[str] = None

class FindAppointmentRequest(BaseModel):
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    limit: int = Field(default=10, gt=0)


# --- Outgoing tool responses ---
# These are also what the idempotency ledger stores and replays.

class SlotOut(BaseModel):
    start_time: str
    end_time: str

class CheckAvailabilityResponse(BaseModel):
    slots: List[SlotOut]

class BookAppointmentResponse(BaseModel):
    appointment_id: int
    external_event_id: Optional[str] = None
    start_time: str
    end_time: str

class CancelAppointmentResponse(BaseModel):
    cancelled_appointment_id: int

class RescheduleAppointmentResponse(BaseModel):
    old_appointment_id: int
    new_appointment_id: int
    new_external_event_id: Optional[str] = None
