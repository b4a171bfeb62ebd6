from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive


class Section(Base):
    """Organizational grouping of specialties (the report's "Servicio")"""
    __tablename__ = "sgh_sections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, comment="section name, e.g. Pediatría")
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=get_now_naive)
    updated_at = Column(DateTime, default=get_now_naive, onupdate=get_now_naive)

    doctors = relationship("Doctor", back_populates="section", passive_deletes=True)
    specialties = relationship("Specialty", back_populates="section", passive_deletes=True)
    user_links = relationship("UserSection", back_populates="section", passive_deletes=True)


class UserSection(Base):
    """User membership in a section; a chief (jefe) or a plain member"""
    __tablename__ = "sgh_user_sections"
    __table_args__ = (UniqueConstraint("user_id", "section_id", name="uq_user_section"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("sgh_users.id", ondelete="CASCADE"), nullable=False)
    section_id = Column(Integer, ForeignKey("sgh_sections.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False, default="member", comment="jefe / member")
    assigned_at = Column(DateTime, default=get_now_naive)

    user = relationship("User", back_populates="section_links")
    section = relationship("Section", back_populates="user_links")
