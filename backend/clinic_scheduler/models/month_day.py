from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, JSON, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive


class MonthDay(Base):
    """Slots assigned to one day of a month, in assignment order"""
    __tablename__ = "sgh_month_days"
    __table_args__ = (
        UniqueConstraint("month_id", "day", name="uq_month_day"),
        CheckConstraint("day BETWEEN 1 AND 31", name="ck_day_range"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    month_id = Column(Integer, ForeignKey("sgh_months.id", ondelete="CASCADE"), nullable=False, index=True)
    day = Column(Integer, nullable=False)
    time_slot_ids = Column(JSON, nullable=False, default=list, comment="ordered sgh_time_slots ids")
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=get_now_naive, onupdate=get_now_naive)

    month = relationship("Month", back_populates="days")
