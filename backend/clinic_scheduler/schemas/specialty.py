from pydantic import BaseModel, Field
from typing import Optional


class SpecialtyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100, description="specialty name")
    description: Optional[str] = None
    section_id: Optional[int] = Field(None, ge=1, description="owning section")


class SpecialtyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    section_id: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class SpecialtyItem(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    section_id: Optional[int] = None
    is_active: bool

    class Config:
        from_attributes = True
