from pydantic import BaseModel
from typing import Optional, Any
from datetime import datetime


class AuditLogItem(BaseModel):
    id: int
    table_name: str
    record_id: int
    action: str
    old_values: Optional[Any] = None
    new_values: Optional[Any] = None
    changed_by: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
