from sqlalchemy import Column, Integer, String, Boolean, DateTime
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive


class Office(Base):
    """Consulting room appointments are booked into"""
    __tablename__ = "offices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=get_now_naive)
