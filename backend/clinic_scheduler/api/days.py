from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List
import logging

from clinic_scheduler.api.auth import get_current_user, require_section_chief
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.month_day import MonthDay
from clinic_scheduler.schemas.calendar import DayUpdate, DayItem
from clinic_scheduler.schemas.response import ResponseModel, DeleteResponse
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.admin_helpers import get_month_or_404
from clinic_scheduler.services.audit_service import record_audit, snapshot
from clinic_scheduler.services.calendar_service import check_day_in_month, upsert_day

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{month_id}", response_model=ResponseModel[List[DayItem]])
async def list_days(
    month_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Day assignments of a month"""
    await get_month_or_404(db, month_id)
    result = await db.execute(select(MonthDay).where(MonthDay.month_id == month_id).order_by(MonthDay.day))
    return ResponseModel(data=[DayItem.model_validate(d) for d in result.scalars().all()])


@router.put("/{month_id}/{day}", response_model=ResponseModel[DayItem])
async def put_day(
    month_id: int,
    day: int,
    data: DayUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Create or replace the slots and notes of one day"""
    try:
        month = await get_month_or_404(db, month_id)
        month_day = await upsert_day(db, month, day, data.time_slot_ids, data.notes)
        await record_audit(db, "sgh_month_days", month_day.id, "UPDATE", current_user.id, request, new_values=snapshot(month_day))
        await db.commit()

        logger.info(f"Day {day} of month {month_id} saved with {len(data.time_slot_ids)} slot(s)")
        return ResponseModel(data=DayItem.model_validate(month_day), message="Día actualizado")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error saving day {day} of month {month_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al guardar el día", status_code=500)


@router.delete("/{month_id}/{day}", response_model=ResponseModel[DeleteResponse])
async def clear_day(
    month_id: int,
    day: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Remove every assignment of one day"""
    try:
        month = await get_month_or_404(db, month_id)
        check_day_in_month(month, day)
        result = await db.execute(select(MonthDay).where(MonthDay.month_id == month_id, MonthDay.day == day))
        month_day = result.scalar_one_or_none()
        if month_day is None:
            raise ResourceHTTPException(code=settings.DATA_GET_FAILED_CODE, msg="El día no tiene asignaciones", status_code=404)

        record_id = month_day.id
        old_values = snapshot(month_day)
        await db.delete(month_day)
        await db.flush()
        await record_audit(db, "sgh_month_days", record_id, "DELETE", current_user.id, request, old_values=old_values)
        await db.commit()
        return ResponseModel(data=DeleteResponse(id=record_id, detail="Día limpiado"))
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error clearing day {day} of month {month_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al limpiar el día", status_code=500)
