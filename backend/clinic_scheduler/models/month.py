from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive


MONTH_STATUSES = ("draft", "published")


class Month(Base):
    """Per-doctor, per-specialty scheduling period owning slots and days"""
    __tablename__ = "sgh_months"
    __table_args__ = (
        UniqueConstraint("doctor_id", "specialty_id", "year", "month", name="uq_month_doctor_specialty"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_month_range"),
        CheckConstraint("year BETWEEN 2024 AND 2030", name="ck_year_range"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    doctor_id = Column(Integer, ForeignKey("sgh_doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    specialty_id = Column(Integer, ForeignKey("sgh_specialties.id", ondelete="SET NULL"), nullable=True)
    section_id = Column(Integer, ForeignKey("sgh_sections.id", ondelete="SET NULL"), nullable=True, comment="defaults to the doctor's section")
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="draft", comment="draft / published")
    theme_config = Column(JSON, nullable=True, comment="calendar colours and fonts")
    published_at = Column(DateTime, nullable=True)
    published_by = Column(Integer, ForeignKey("sgh_users.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(Integer, ForeignKey("sgh_users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=get_now_naive)
    updated_at = Column(DateTime, default=get_now_naive, onupdate=get_now_naive)

    doctor = relationship("Doctor", back_populates="months")
    specialty = relationship("Specialty")
    section = relationship("Section")
    time_slots = relationship(
        "TimeSlot", back_populates="month", cascade="all, delete-orphan", passive_deletes=True, order_by="TimeSlot.start_time"
    )
    days = relationship(
        "MonthDay", back_populates="month", cascade="all, delete-orphan", passive_deletes=True, order_by="MonthDay.day"
    )
