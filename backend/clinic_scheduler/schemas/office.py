from pydantic import BaseModel, Field
from typing import Optional


class OfficeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class OfficeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    is_active: Optional[bool] = None


class OfficeItem(BaseModel):
    id: int
    name: str
    is_active: bool

    class Config:
        from_attributes = True
