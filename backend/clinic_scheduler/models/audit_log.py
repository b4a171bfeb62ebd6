from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from clinic_scheduler.db.base import Base
from clinic_scheduler.core.datetime_utils import get_now_naive


class AuditLog(Base):
    """Row-level change history written by the admin routes"""
    __tablename__ = "sgh_audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_name = Column(String(50), nullable=False, index=True)
    record_id = Column(Integer, nullable=False, index=True)
    action = Column(String(10), nullable=False, comment="INSERT / UPDATE / DELETE")
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    changed_by = Column(Integer, ForeignKey("sgh_users.id", ondelete="SET NULL"), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=get_now_naive, index=True)
