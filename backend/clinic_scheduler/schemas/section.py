from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class SectionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100, description="section name")
    description: Optional[str] = Field(None, description="description")


class SectionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class SectionItem(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    doctor_count: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
