from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List

from clinic_scheduler.schemas.specialty import SpecialtyItem


class DoctorCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200, description="full name, given names first")
    email: EmailStr
    license: str = Field(min_length=1, max_length=50, description="colegiatura number")
    section_id: int = Field(ge=1, description="section")
    phone: Optional[str] = Field(None, max_length=20)
    doc_type: Optional[str] = Field(None, max_length=20)
    doc_number: Optional[str] = Field(None, max_length=30)
    profession: Optional[str] = Field(None, max_length=50)
    avatar_url: Optional[str] = Field(None, max_length=500)
    user_id: Optional[int] = Field(None, ge=1, description="linked login")
    specialty_ids: List[int] = Field(default_factory=list, description="specialties")


class DoctorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    license: Optional[str] = Field(None, min_length=1, max_length=50)
    section_id: Optional[int] = Field(None, ge=1)
    phone: Optional[str] = Field(None, max_length=20)
    doc_type: Optional[str] = Field(None, max_length=20)
    doc_number: Optional[str] = Field(None, max_length=30)
    profession: Optional[str] = Field(None, max_length=50)
    avatar_url: Optional[str] = Field(None, max_length=500)
    user_id: Optional[int] = Field(None, ge=1)
    # None leaves the set untouched, a list replaces it
    specialty_ids: Optional[List[int]] = None


class DoctorItem(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    license: str
    doc_type: Optional[str] = None
    doc_number: Optional[str] = None
    profession: Optional[str] = None
    avatar_url: Optional[str] = None
    user_id: Optional[int] = None
    section_id: int
    section_name: Optional[str] = None
    is_active: bool
    specialties: List[SpecialtyItem] = []
