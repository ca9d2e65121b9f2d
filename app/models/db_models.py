from typing import Optional
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, model_validator


class AppointmentStatus(str, Enum):
    BOOKED = "booked"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class BusinessRules(BaseModel):
    timezone: str
    allow_weekends: bool = False
    start_hour: int = Field(default=9, ge=0, lt=24)
    end_hour: int = Field(default=17, ge=0, lt=24)
    lunch_start_hour: Optional[int] = Field(default=12, ge=0, lt=24)
    lunch_end_hour: Optional[int] = Field(default=13, ge=0, lt=24)
    step_minutes: int = Field(default=15, gt=0)

    @model_validator(mode="after")
    def check_windows(self):
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be greater than start_hour")
        if (self.lunch_start_hour is None) != (self.lunch_end_hour is None):
            raise ValueError("lunch window needs both lunch_start_hour and lunch_end_hour")
        if self.lunch_start_hour is not None and self.lunch_end_hour <= self.lunch_start_hour:
            raise ValueError("lunch_end_hour must be greater than lunch_start_hour")
        return self

    @property
    def has_lunch(self) -> bool:
        return self.lunch_start_hour is not None


class CustomerInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class Appointment(BaseModel):
    id: Optional[int] = None  # assigned by the store
    tenant_id: str
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    start_time: datetime
    end_time: datetime
    timezone: str
    status: AppointmentStatus = AppointmentStatus.BOOKED
    external_event_id: Optional[str] = None
    title: str = "Appointment"
    notes: Optional[str] = None
    previous_appointment_id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status == AppointmentStatus.BOOKED

    def to_row(self) -> dict:
        row = self.model_dump(exclude={"id"})
        row["status"] = self.status.value
        return row


class Slot(BaseModel):
    start_time: datetime
    end_time: datetime
