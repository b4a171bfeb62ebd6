from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, Literal
from datetime import date, datetime
import enum

AppointmentStatusName = Literal["scheduled", "confirmed", "completed", "cancelled", "no_show"]


class AppointmentCreate(BaseModel):
    patient_name: str = Field(min_length=1, max_length=200)
    patient_phone: Optional[str] = Field(None, max_length=20)
    patient_email: Optional[EmailStr] = None
    specialty_id: int = Field(ge=1)
    doctor_id: int = Field(ge=1)
    office_id: int = Field(ge=1)
    time_slot_id: int = Field(ge=1)
    appointment_date: date
    notes: Optional[str] = None
    status: AppointmentStatusName = "scheduled"


class AppointmentUpdate(BaseModel):
    patient_name: Optional[str] = Field(None, min_length=1, max_length=200)
    patient_phone: Optional[str] = Field(None, max_length=20)
    patient_email: Optional[EmailStr] = None
    specialty_id: Optional[int] = Field(None, ge=1)
    doctor_id: Optional[int] = Field(None, ge=1)
    office_id: Optional[int] = Field(None, ge=1)
    time_slot_id: Optional[int] = Field(None, ge=1)
    appointment_date: Optional[date] = None
    notes: Optional[str] = None
    status: Optional[AppointmentStatusName] = None


class AppointmentItem(BaseModel):
    id: int
    patient_name: str
    patient_phone: Optional[str] = None
    patient_email: Optional[str] = None
    specialty_id: int
    doctor_id: int
    office_id: int
    time_slot_id: int
    appointment_date: date
    notes: Optional[str] = None
    status: AppointmentStatusName
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, value):
        return value.value if isinstance(value, enum.Enum) else value

    class Config:
        from_attributes = True


class CalendarEvent(BaseModel):
    id: int
    title: str
    start: str
    end: str
    status: AppointmentStatusName
    doctor_id: int
    office_id: int
