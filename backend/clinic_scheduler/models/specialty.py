from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive


class Specialty(Base):
    """Medical specialty, optionally attached to a section"""
    __tablename__ = "sgh_specialties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    section_id = Column(Integer, ForeignKey("sgh_sections.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=get_now_naive)
    updated_at = Column(DateTime, default=get_now_naive, onupdate=get_now_naive)

    section = relationship("Section", back_populates="specialties")
    doctors = relationship("Doctor", secondary="sgh_doctor_specialties", back_populates="specialties")
