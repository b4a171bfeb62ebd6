"""Row-level audit trail for the admin routes."""
import enum
import logging
from datetime import date, datetime, time
from typing import Iterable, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def _json_value(value):
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def snapshot(obj, exclude: Iterable[str] = ("hashed_password",)) -> dict:
    """JSON-safe dict of the mapped columns of ``obj``."""
    skip = set(exclude)
    return {
        column.key: _json_value(getattr(obj, column.key))
        for column in obj.__table__.columns
        if column.key not in skip
    }


async def record_audit(
    db: AsyncSession,
    table_name: str,
    record_id: int,
    action: str,
    user_id: Optional[int],
    request: Optional[Request] = None,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
) -> None:
    """Stage an audit row in the caller's transaction."""
    db.add(
        AuditLog(
            table_name=table_name,
            record_id=record_id,
            action=action,
            old_values=old_values,
            new_values=new_values,
            changed_by=user_id,
            ip_address=request.client.host if request is not None and request.client else None,
            user_agent=(request.headers.get("user-agent") or "")[:500] if request is not None else None,
        )
    )
    logger.debug(f"audit {action} {table_name}#{record_id} by {user_id}")
