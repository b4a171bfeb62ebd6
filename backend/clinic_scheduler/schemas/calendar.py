from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal, Union
from datetime import datetime, time
import re

from clinic_scheduler.core.datetime_utils import parse_hhmm, format_hhmm

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")

MonthStatus = Literal["draft", "published"]


def _check_color(value):
    if value is not None and not _COLOR_RE.match(value):
        raise ValueError("El color debe tener formato #RRGGBB")
    return value


def _check_time(value):
    if value is None or isinstance(value, time):
        return value
    return parse_hhmm(value)


# ====== Months ======
class MonthCreate(BaseModel):
    doctor_id: int = Field(ge=1)
    specialty_id: Optional[int] = Field(None, ge=1)
    section_id: Optional[int] = Field(None, ge=1, description="defaults to the doctor's section")
    year: int = Field(ge=2024, le=2030)
    month: int = Field(ge=1, le=12)
    theme_config: Optional[dict] = None


class MonthUpdate(BaseModel):
    status: Optional[MonthStatus] = None
    theme_config: Optional[dict] = None


# ====== Time slots ======
class TimeSlotBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    start_time: time = Field(description="HH:MM")
    end_time: time = Field(description="HH:MM; earlier than start_time for overnight shifts")
    color: str = Field("#3B82F6", description="#RRGGBB")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_times(cls, value):
        return _check_time(value)

    @field_validator("color")
    @classmethod
    def check_color(cls, value):
        return _check_color(value)


class TimeSlotCreate(TimeSlotBase):
    month_id: int = Field(ge=1)


class TimeSlotUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    color: Optional[str] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_times(cls, value):
        return _check_time(value)

    @field_validator("color")
    @classmethod
    def check_color(cls, value):
        return _check_color(value)


class TimeSlotValidate(BaseModel):
    month_id: int = Field(ge=1)
    start_time: time
    end_time: time
    exclude_id: Optional[int] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_times(cls, value):
        return _check_time(value)


class TimeSlotItem(BaseModel):
    id: int
    month_id: int
    name: str
    start_time: str
    end_time: str
    color: str
    overnight: bool = False

    @classmethod
    def from_slot(cls, slot) -> "TimeSlotItem":
        return cls(
            id=slot.id,
            month_id=slot.month_id,
            name=slot.name,
            start_time=format_hhmm(slot.start_time),
            end_time=format_hhmm(slot.end_time),
            color=slot.color,
            overnight=slot.end_time < slot.start_time,
        )


# ====== Days ======
class DayUpdate(BaseModel):
    time_slot_ids: List[int] = Field(default_factory=list, alias="timeSlotIds")
    notes: Optional[str] = None

    class Config:
        populate_by_name = True


class DayItem(BaseModel):
    id: int
    month_id: int
    day: int
    time_slot_ids: List[int]
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class MonthItem(BaseModel):
    id: int
    doctor_id: int
    doctor_name: Optional[str] = None
    specialty_id: Optional[int] = None
    specialty_name: Optional[str] = None
    section_id: Optional[int] = None
    section_name: Optional[str] = None
    year: int
    month: int
    status: MonthStatus
    theme_config: Optional[dict] = None
    published_at: Optional[datetime] = None
    published_by: Optional[int] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    time_slots: Optional[List[TimeSlotItem]] = None
    days: Optional[List[DayItem]] = None


# ====== Whole-month save ======
class ScheduleSlotIn(TimeSlotBase):
    key: Optional[Union[int, str]] = Field(None, description="client-side reference used by shifts[].slot_keys; defaults to the list index")


class ScheduleShiftIn(BaseModel):
    day: int = Field(ge=1, le=31)
    slot_keys: List[Union[int, str]] = Field(default_factory=list)
    notes: Optional[str] = None


class ScheduleSave(BaseModel):
    doctor_id: int = Field(ge=1)
    specialty_id: Optional[int] = Field(None, ge=1)
    section_id: Optional[int] = Field(None, ge=1)
    month: str = Field(description="YYYY-MM")
    theme_config: Optional[dict] = None
    time_slots: List[ScheduleSlotIn] = Field(default_factory=list)
    shifts: List[ScheduleShiftIn] = Field(default_factory=list)


# ====== Change requests ======
class ChangeRequestCreate(BaseModel):
    month_id: int = Field(ge=1)
    day: int = Field(ge=1, le=31)
    time_slot_id: Optional[int] = Field(None, ge=1)
    message: str = Field(min_length=1, max_length=2000)


class ChangeRequestReview(BaseModel):
    status: Literal["approved", "rejected", "merged"]
    review_notes: Optional[str] = None


class ChangeRequestItem(BaseModel):
    id: int
    month_id: int
    requested_by: Optional[int] = None
    day: int
    time_slot_id: Optional[int] = None
    message: str
    status: str
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
