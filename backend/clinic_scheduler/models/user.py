from sqlalchemy import Column, Integer, String, Boolean, Enum, DateTime
from sqlalchemy.orm import relationship
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive
import enum


# User roles
class UserRole(enum.Enum):
    ADMIN = "admin"          # full access
    GERENCIA = "gerencia"    # management, read + reports
    JEFE = "jefe"            # section chief, manages calendars
    DOCTOR = "doctor"        # own calendar only


class User(Base):
    """Staff accounts that can sign in to the scheduler"""
    __tablename__ = "sgh_users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False, comment="login name")
    email = Column(String(255), unique=True, index=True, nullable=False, comment="login email")
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(
        Enum(
            UserRole,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            name="sgh_user_role",
            native_enum=False,
        ),
        nullable=False,
        default=UserRole.DOCTOR,
        comment="admin / gerencia / jefe / doctor",
    )
    is_active = Column(Boolean, default=True, nullable=False, comment="soft-delete flag")
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=get_now_naive)
    updated_at = Column(DateTime, default=get_now_naive, onupdate=get_now_naive)

    section_links = relationship(
        "UserSection", back_populates="user", cascade="all, delete-orphan", order_by="UserSection.assigned_at"
    )
    doctor = relationship("Doctor", back_populates="user", uselist=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def parse_user_role(value: str) -> UserRole:
    """Map a role string (any case) onto UserRole.

    Raises ValueError for unknown roles so callers can answer 400.
    """
    for member in UserRole:
        if value == member.value:
            return member
    try:
        return UserRole[(value or "").upper()]
    except KeyError:
        raise ValueError(f"Rol inválido: {value}")
