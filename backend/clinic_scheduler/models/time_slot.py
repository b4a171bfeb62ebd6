from sqlalchemy import Column, Integer, String, Time, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive


class TimeSlot(Base):
    """Named shift interval of one month; end < start means it crosses midnight"""
    __tablename__ = "sgh_time_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    month_id = Column(Integer, ForeignKey("sgh_months.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    color = Column(String(7), nullable=False, default="#3B82F6", comment="#RRGGBB")
    created_at = Column(DateTime, default=get_now_naive)

    month = relationship("Month", back_populates="time_slots")
