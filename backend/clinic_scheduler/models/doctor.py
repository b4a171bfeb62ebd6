from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive


# Doctor <-> specialty link table
doctor_specialties = Table(
    "sgh_doctor_specialties",
    Base.metadata,
    Column("doctor_id", Integer, ForeignKey("sgh_doctors.id", ondelete="CASCADE"), primary_key=True),
    Column("specialty_id", Integer, ForeignKey("sgh_specialties.id", ondelete="CASCADE"), primary_key=True),
)


class Doctor(Base):
    """Doctor identity, license and section"""
    __tablename__ = "sgh_doctors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("sgh_users.id", ondelete="SET NULL"), nullable=True, unique=True, comment="linked login, if any")
    section_id = Column(Integer, ForeignKey("sgh_sections.id", ondelete="RESTRICT"), nullable=False)
    name = Column(String(200), nullable=False, comment="full name, given names first")
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(20), nullable=True)
    license = Column(String(50), unique=True, nullable=False, comment="colegiatura number")
    doc_type = Column(String(20), nullable=True, comment="identity document type (DNI, CE...)")
    doc_number = Column(String(30), nullable=True)
    profession = Column(String(50), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=get_now_naive)
    updated_at = Column(DateTime, default=get_now_naive, onupdate=get_now_naive)

    user = relationship("User", back_populates="doctor")
    section = relationship("Section", back_populates="doctors")
    specialties = relationship(
        "Specialty", secondary=doctor_specialties, back_populates="doctors", order_by="Specialty.name"
    )
    months = relationship("Month", back_populates="doctor")
