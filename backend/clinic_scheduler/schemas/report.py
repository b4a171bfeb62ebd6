from pydantic import BaseModel, Field, field_validator
from typing import Optional

from clinic_scheduler.core.datetime_utils import parse_year_month


class MonthlyReportQuery(BaseModel):
    """Filters of the monthly shift report; blank strings count as absent."""
    month: str = Field(description="YYYY-MM")
    specialty_id: Optional[int] = Field(None, ge=1)
    service_id: Optional[int] = Field(None, ge=1, description="section id")
    doctor_id: Optional[int] = Field(None, ge=1)

    @field_validator("specialty_id", "service_id", "doctor_id", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("month")
    @classmethod
    def check_month(cls, value):
        parse_year_month(value)
        return value

    @property
    def year_month(self):
        return parse_year_month(self.month)


class ReportRowItem(BaseModel):
    doctor_id: int
    first_name: str
    last_name: str
    doc_type: Optional[str] = None
    doc_number: Optional[str] = None
    profession: str
    license: Optional[str] = None
    specialty_id: Optional[int] = None
    specialty_name: Optional[str] = None
    section_id: Optional[int] = None
    section_name: Optional[str] = None
    display_day: int
    first_start: str
    last_end: str
    spills_next_day: bool
    day_hours: float
    total_hours: float
