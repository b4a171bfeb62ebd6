from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional
import logging

from clinic_scheduler.api.auth import require_admin
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.audit_log import AuditLog
from clinic_scheduler.schemas.audit import AuditLogItem
from clinic_scheduler.schemas.response import ResponseModel, PageResponse
from clinic_scheduler.schemas.user import CurrentUser

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=ResponseModel[PageResponse[AuditLogItem]])
async def list_audit_log(
    table_name: Optional[str] = None,
    record_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Newest changes first"""
    stmt = select(AuditLog)
    if table_name:
        stmt = stmt.where(AuditLog.table_name == table_name)
    if record_id is not None:
        stmt = stmt.where(AuditLog.record_id == record_id)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    result = await db.execute(
        stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = [AuditLogItem.model_validate(a) for a in result.scalars().all()]
    return ResponseModel(data=PageResponse(items=items, total=total, page=page, page_size=page_size))
