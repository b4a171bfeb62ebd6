from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

_COLOR = r"^#[0-9A-Fa-f]{6}$"


class ClinicSettingsUpdate(BaseModel):
    clinic_name: Optional[str] = Field(None, min_length=1, max_length=200)
    logo_url: Optional[str] = Field(None, max_length=500)
    background_color: Optional[str] = Field(None, pattern=_COLOR)
    accent_color: Optional[str] = Field(None, pattern=_COLOR)
    header_color: Optional[str] = Field(None, pattern=_COLOR)
    font_family: Optional[str] = Field(None, max_length=100)
    doctor_photo_size: Optional[int] = Field(None, ge=16, le=600)
    doctor_name_size: Optional[int] = Field(None, ge=8, le=96)
    specialty_size: Optional[int] = Field(None, ge=8, le=96)
    clinic_logo_size: Optional[int] = Field(None, ge=16, le=600)


class ClinicSettingsImport(ClinicSettingsUpdate):
    # a settings file must carry at least these
    clinic_name: str = Field(min_length=1, max_length=200)
    background_color: str = Field(pattern=_COLOR)
    accent_color: str = Field(pattern=_COLOR)


class ClinicSettingsItem(BaseModel):
    clinic_name: str
    logo_url: Optional[str] = None
    background_color: str
    accent_color: str
    header_color: str
    font_family: str
    doctor_photo_size: int
    doctor_name_size: int
    specialty_size: int
    clinic_logo_size: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
