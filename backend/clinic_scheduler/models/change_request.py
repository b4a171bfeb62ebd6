from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive


CHANGE_REQUEST_STATUSES = ("pending", "approved", "rejected", "merged")


class ChangeRequest(Base):
    """A doctor's request to change one day of a published calendar"""
    __tablename__ = "sgh_change_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    month_id = Column(Integer, ForeignKey("sgh_months.id", ondelete="CASCADE"), nullable=False, index=True)
    requested_by = Column(Integer, ForeignKey("sgh_users.id", ondelete="SET NULL"), nullable=True)
    day = Column(Integer, nullable=False)
    time_slot_id = Column(Integer, ForeignKey("sgh_time_slots.id", ondelete="SET NULL"), nullable=True)
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    reviewed_by = Column(Integer, ForeignKey("sgh_users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=get_now_naive)

    month = relationship("Month")
