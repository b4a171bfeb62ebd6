# Import every model so SQLAlchemy sees the whole schema; Base comes first
from clinic_scheduler.db.base import Base
from .user import User, UserRole
from .section import Section, UserSection
from .specialty import Specialty
from .doctor import Doctor, doctor_specialties
from .month import Month
from .time_slot import TimeSlot
from .month_day import MonthDay
from .change_request import ChangeRequest
from .office import Office
from .appointment import Appointment, AppointmentStatus
from .audit_log import AuditLog
from .clinic_settings import ClinicSettings

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Section",
    "UserSection",
    "Specialty",
    "Doctor",
    "doctor_specialties",
    "Month",
    "TimeSlot",
    "MonthDay",
    "ChangeRequest",
    "Office",
    "Appointment",
    "AppointmentStatus",
    "AuditLog",
    "ClinicSettings",
]
