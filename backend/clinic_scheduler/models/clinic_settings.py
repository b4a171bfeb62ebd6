from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive


# Defaults used on first read and by PUT /settings/reset
DEFAULT_CLINIC_SETTINGS = {
    "clinic_name": "TUASUSALUD",
    "logo_url": None,
    "background_color": "#FFFFFF",
    "accent_color": "#3B82F6",
    "header_color": "#1E3A8A",
    "font_family": "Inter",
    "doctor_photo_size": 120,
    "doctor_name_size": 24,
    "specialty_size": 18,
    "clinic_logo_size": 80,
}


class ClinicSettings(Base):
    """Singleton row with the clinic branding used by printed calendars"""
    __tablename__ = "sgh_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    clinic_name = Column(String(200), nullable=False, default=DEFAULT_CLINIC_SETTINGS["clinic_name"])
    logo_url = Column(String(500), nullable=True)
    background_color = Column(String(7), nullable=False, default=DEFAULT_CLINIC_SETTINGS["background_color"])
    accent_color = Column(String(7), nullable=False, default=DEFAULT_CLINIC_SETTINGS["accent_color"])
    header_color = Column(String(7), nullable=False, default=DEFAULT_CLINIC_SETTINGS["header_color"])
    font_family = Column(String(100), nullable=False, default=DEFAULT_CLINIC_SETTINGS["font_family"])
    doctor_photo_size = Column(Integer, nullable=False, default=DEFAULT_CLINIC_SETTINGS["doctor_photo_size"])
    doctor_name_size = Column(Integer, nullable=False, default=DEFAULT_CLINIC_SETTINGS["doctor_name_size"])
    specialty_size = Column(Integer, nullable=False, default=DEFAULT_CLINIC_SETTINGS["specialty_size"])
    clinic_logo_size = Column(Integer, nullable=False, default=DEFAULT_CLINIC_SETTINGS["clinic_logo_size"])
    updated_by = Column(Integer, ForeignKey("sgh_users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, default=get_now_naive, onupdate=get_now_naive)
