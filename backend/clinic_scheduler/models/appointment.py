from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive
import enum


class AppointmentStatus(enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses that no longer occupy a doctor/office slot
RELEASED_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)


class Appointment(Base):
    """Patient appointment pinned to doctor + office + time slot + date"""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_name = Column(String(200), nullable=False)
    patient_phone = Column(String(20), nullable=True)
    patient_email = Column(String(255), nullable=True)
    specialty_id = Column(Integer, ForeignKey("sgh_specialties.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("sgh_doctors.id"), nullable=False, index=True)
    office_id = Column(Integer, ForeignKey("offices.id"), nullable=False, index=True)
    time_slot_id = Column(Integer, ForeignKey("sgh_time_slots.id"), nullable=False)
    appointment_date = Column(Date, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    status = Column(
        Enum(
            AppointmentStatus,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            name="appointment_status",
            native_enum=False,
        ),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    created_by = Column(Integer, ForeignKey("sgh_users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=get_now_naive)
    updated_at = Column(DateTime, default=get_now_naive, onupdate=get_now_naive)

    doctor = relationship("Doctor")
    office = relationship("Office")
    specialty = relationship("Specialty")
    time_slot = relationship("TimeSlot")
