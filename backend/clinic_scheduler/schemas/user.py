from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, Literal
from datetime import datetime
import enum

RoleName = Literal["admin", "gerencia", "jefe", "doctor"]


def _enum_value(value):
    return value.value if isinstance(value, enum.Enum) else value


# Login
class LoginRequest(BaseModel):
    identifier: str = Field(min_length=1, max_length=255, description="username or email")
    password: str = Field(min_length=1, max_length=128, description="password")


# Authenticated principal used by every route
class CurrentUser(BaseModel):
    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    role: RoleName
    is_active: bool = True
    section_id: Optional[int] = None
    section_name: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def role_value(cls, value):
        return _enum_value(value)

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class LoginUser(BaseModel):
    id: int
    username: str
    email: str
    name: str
    role: RoleName
    section_id: Optional[int] = None
    section_name: Optional[str] = None


class LoginResponse(BaseModel):
    user: LoginUser
    token: str
    expiresIn: int


# User management (admin)
class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=50, description="login name")
    email: EmailStr = Field(description="login email")
    password: str = Field(min_length=6, max_length=128, description="at least 6 characters")
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    role: RoleName = Field(description="admin / gerencia / jefe / doctor")
    section_id: Optional[int] = Field(None, ge=1, description="section to join")


class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6, max_length=128)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    role: Optional[RoleName] = None
    is_active: Optional[bool] = None
    section_id: Optional[int] = Field(None, ge=1)


class UserItem(BaseModel):
    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: RoleName
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    section_id: Optional[int] = None
    section_name: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def role_value(cls, value):
        return _enum_value(value)

    class Config:
        from_attributes = True
