from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from typing import List
import logging

from clinic_scheduler.api.auth import get_current_user, require_section_chief
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.datetime_utils import format_hhmm
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.month_day import MonthDay
from clinic_scheduler.models.time_slot import TimeSlot
from clinic_scheduler.schemas.calendar import TimeSlotCreate, TimeSlotUpdate, TimeSlotValidate, TimeSlotItem
from clinic_scheduler.schemas.response import ResponseModel, DeleteResponse
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.admin_helpers import get_or_404, get_month_or_404
from clinic_scheduler.services.audit_service import record_audit, snapshot
from clinic_scheduler.services.conflict_service import find_slot_overlaps

logger = logging.getLogger(__name__)
router = APIRouter()


def _overlap_errors(slots) -> list:
    return [
        {
            "field": "start_time",
            "message": f"Se superpone con '{s.name}' ({format_hhmm(s.start_time)}-{format_hhmm(s.end_time)})",
            "type": "overlap",
        }
        for s in slots
    ]


async def _check_slot(db: AsyncSession, month_id: int, start, end, exclude_id=None) -> None:
    if start == end:
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="La hora de inicio y fin no pueden ser iguales",
            status_code=400
        )
    overlaps = await find_slot_overlaps(db, month_id, start, end, exclude_id)
    if overlaps:
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="Conflictos de horario detectados",
            status_code=400,
            errors=_overlap_errors(overlaps),
        )


async def _slot_in_use(db: AsyncSession, slot: TimeSlot) -> bool:
    result = await db.execute(select(MonthDay.time_slot_ids).where(MonthDay.month_id == slot.month_id))
    return any(slot.id in (ids or []) for ids in result.scalars().all())


@router.get("/month/{month_id}", response_model=ResponseModel[List[TimeSlotItem]])
async def list_month_slots(
    month_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Slots of one month ordered by start time"""
    await get_month_or_404(db, month_id)
    result = await db.execute(select(TimeSlot).where(TimeSlot.month_id == month_id).order_by(TimeSlot.start_time))
    return ResponseModel(data=[TimeSlotItem.from_slot(s) for s in result.scalars().all()])


@router.post("/validate", response_model=ResponseModel[dict])
async def validate_slot(
    data: TimeSlotValidate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Report overlaps of a candidate slot without saving it"""
    overlaps = await find_slot_overlaps(db, data.month_id, data.start_time, data.end_time, data.exclude_id)
    return ResponseModel(
        data={
            "valid": not overlaps and data.start_time != data.end_time,
            "overnight": data.end_time < data.start_time,
            "conflicts": [TimeSlotItem.from_slot(s).model_dump() for s in overlaps],
        }
    )


@router.post("", status_code=201, response_model=ResponseModel[TimeSlotItem])
async def create_slot(
    data: TimeSlotCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Create a slot; end before start means an overnight shift"""
    try:
        await get_month_or_404(db, data.month_id)
        await _check_slot(db, data.month_id, data.start_time, data.end_time)

        slot = TimeSlot(
            month_id=data.month_id,
            name=data.name.strip(),
            start_time=data.start_time,
            end_time=data.end_time,
            color=data.color,
        )
        db.add(slot)
        await db.flush()
        await record_audit(db, "sgh_time_slots", slot.id, "INSERT", current_user.id, request, new_values=snapshot(slot))
        await db.commit()

        logger.info(f"Time slot created: {slot.name} in month {slot.month_id}")
        return ResponseModel(data=TimeSlotItem.from_slot(slot), message="Turno creado")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error creating time slot: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al crear turno", status_code=500)


@router.put("/{slot_id}", response_model=ResponseModel[TimeSlotItem])
async def update_slot(
    slot_id: int,
    data: TimeSlotUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    try:
        slot = await get_or_404(db, TimeSlot, slot_id, "Turno no encontrado")
        old_values = snapshot(slot)
        start = data.start_time if data.start_time is not None else slot.start_time
        end = data.end_time if data.end_time is not None else slot.end_time
        await _check_slot(db, slot.month_id, start, end, exclude_id=slot_id)

        slot.start_time = start
        slot.end_time = end
        if data.name is not None:
            slot.name = data.name.strip()
        if data.color is not None:
            slot.color = data.color

        await db.flush()
        await record_audit(db, "sgh_time_slots", slot.id, "UPDATE", current_user.id, request, old_values, snapshot(slot))
        await db.commit()
        return ResponseModel(data=TimeSlotItem.from_slot(slot), message="Turno actualizado")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error updating time slot {slot_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al actualizar turno", status_code=500)


@router.delete("/{slot_id}", response_model=ResponseModel[DeleteResponse])
async def delete_slot(
    slot_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Delete a slot that no day references"""
    try:
        slot = await get_or_404(db, TimeSlot, slot_id, "Turno no encontrado")
        if await _slot_in_use(db, slot):
            raise BusinessHTTPException(
                code=settings.DEPENDENCY_CODE,
                msg="No se puede eliminar el turno porque está asignado a uno o más días",
                status_code=400
            )
        old_values = snapshot(slot)
        await db.delete(slot)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise BusinessHTTPException(
                code=settings.DEPENDENCY_CODE,
                msg="No se puede eliminar el turno porque tiene citas asociadas",
                status_code=400
            )
        await record_audit(db, "sgh_time_slots", slot_id, "DELETE", current_user.id, request, old_values=old_values)
        await db.commit()
        return ResponseModel(data=DeleteResponse(id=slot_id, detail="Turno eliminado"))
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error deleting time slot {slot_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al eliminar turno", status_code=500)
