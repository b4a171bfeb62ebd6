from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy import select, func
from typing import List, Optional
import logging

from clinic_scheduler.api.auth import get_current_user, require_section_chief
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.datetime_utils import get_now_naive, parse_year_month
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.month import Month
from clinic_scheduler.models.month_day import MonthDay
from clinic_scheduler.models.specialty import Specialty
from clinic_scheduler.models.time_slot import TimeSlot
from clinic_scheduler.schemas.calendar import MonthItem, ScheduleSave
from clinic_scheduler.schemas.response import ResponseModel, DeleteResponse
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.admin_helpers import get_month_or_404, require_existing
from clinic_scheduler.services.audit_service import record_audit, snapshot
from clinic_scheduler.services.calendar_service import check_day_in_month, month_to_item
from clinic_scheduler.services.conflict_service import slots_overlap

logger = logging.getLogger(__name__)
router = APIRouter()


def _period(value: str):
    try:
        return parse_year_month(value)
    except ValueError as e:
        raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg=str(e), status_code=400)


def _month_query():
    return select(Month).options(
        selectinload(Month.doctor),
        selectinload(Month.specialty),
        selectinload(Month.section),
        selectinload(Month.time_slots),
        selectinload(Month.days),
    )


@router.get("/doctor/{doctor_id}/{period}", response_model=ResponseModel[List[MonthItem]])
async def doctor_schedule(
    doctor_id: int,
    period: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Every calendar of a doctor for YYYY-MM, with slots and shifts"""
    year, month = _period(period)
    await require_existing(db, Doctor, doctor_id, "El doctor no existe")
    result = await db.execute(
        _month_query().where(Month.doctor_id == doctor_id, Month.year == year, Month.month == month).order_by(Month.id)
    )
    return ResponseModel(data=[month_to_item(m, with_children=True) for m in result.scalars().all()])


@router.get("/section/{section_id}/{period}", response_model=ResponseModel[List[MonthItem]])
async def section_schedule(
    section_id: int,
    period: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Calendars of all doctors of a section for YYYY-MM"""
    year, month = _period(period)
    result = await db.execute(
        _month_query()
        .join(Doctor, Month.doctor_id == Doctor.id)
        .where(
            func.coalesce(Month.section_id, Doctor.section_id) == section_id,
            Month.year == year,
            Month.month == month,
        )
        .order_by(Doctor.name, Month.id)
    )
    return ResponseModel(data=[month_to_item(m, with_children=True) for m in result.scalars().all()])


@router.post("", response_model=ResponseModel[MonthItem])
async def save_schedule(
    data: ScheduleSave,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """
    Save a whole month in one transaction: the draft is created if needed and
    its slots and day assignments are replaced by the ones sent.
    """
    try:
        year, month_number = _period(data.month)
        if not 2024 <= year <= 2030:
            raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="El año debe estar entre 2024 y 2030", status_code=400)
        doctor = (await db.execute(select(Doctor).where(Doctor.id == data.doctor_id))).scalar_one_or_none()
        if doctor is None:
            raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="El doctor no existe", status_code=400)
        await require_existing(db, Specialty, data.specialty_id, "La especialidad no existe")

        slot_keys = [s.key if s.key is not None else i for i, s in enumerate(data.time_slots)]
        if len(set(slot_keys)) != len(slot_keys):
            repeated = sorted({str(k) for k in slot_keys if slot_keys.count(k) > 1})
            raise BusinessHTTPException(
                code=settings.REQ_ERROR_CODE, msg=f"Claves de turno repetidas: {repeated}", status_code=400
            )

        for i, a in enumerate(data.time_slots):
            if a.start_time == a.end_time:
                raise BusinessHTTPException(
                    code=settings.REQ_ERROR_CODE, msg=f"El turno '{a.name}' tiene inicio y fin iguales", status_code=400
                )
            for b in data.time_slots[i + 1:]:
                if slots_overlap(a.start_time, a.end_time, b.start_time, b.end_time):
                    raise BusinessHTTPException(
                        code=settings.REQ_ERROR_CODE,
                        msg=f"Los turnos '{a.name}' y '{b.name}' se superponen",
                        status_code=400
                    )

        stmt = select(Month).where(
            Month.doctor_id == data.doctor_id, Month.year == year, Month.month == month_number
        )
        stmt = stmt.where(
            Month.specialty_id.is_(None) if data.specialty_id is None else Month.specialty_id == data.specialty_id
        )
        month = (await db.execute(stmt)).scalar_one_or_none()
        action = "UPDATE"
        if month is None:
            action = "INSERT"
            month = Month(
                doctor_id=data.doctor_id,
                specialty_id=data.specialty_id,
                section_id=data.section_id or doctor.section_id,
                year=year,
                month=month_number,
                status="draft",
                created_by=current_user.id,
            )
            db.add(month)
            await db.flush()
        elif month.status == "published":
            raise BusinessHTTPException(
                code=settings.REQ_ERROR_CODE,
                msg="El calendario ya está publicado",
                status_code=400
            )
        if data.theme_config is not None:
            month.theme_config = data.theme_config

        for old_day in (await db.execute(select(MonthDay).where(MonthDay.month_id == month.id))).scalars().all():
            await db.delete(old_day)
        for old_slot in (await db.execute(select(TimeSlot).where(TimeSlot.month_id == month.id))).scalars().all():
            await db.delete(old_slot)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise BusinessHTTPException(
                code=settings.DEPENDENCY_CODE,
                msg="No se pueden reemplazar los turnos: hay citas asociadas",
                status_code=400
            )

        key_map = {}
        for index, slot_in in enumerate(data.time_slots):
            slot = TimeSlot(
                month_id=month.id,
                name=slot_in.name.strip(),
                start_time=slot_in.start_time,
                end_time=slot_in.end_time,
                color=slot_in.color,
            )
            db.add(slot)
            await db.flush()
            key_map[slot_keys[index]] = slot.id

        seen_days = set()
        for shift in data.shifts:
            check_day_in_month(month, shift.day)
            if shift.day in seen_days:
                raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg=f"Día {shift.day} repetido", status_code=400)
            seen_days.add(shift.day)
            unknown = [k for k in shift.slot_keys if k not in key_map]
            if unknown:
                raise BusinessHTTPException(
                    code=settings.REQ_ERROR_CODE, msg=f"Turnos desconocidos en el día {shift.day}: {unknown}", status_code=400
                )
            db.add(MonthDay(month_id=month.id, day=shift.day, time_slot_ids=[key_map[k] for k in shift.slot_keys], notes=shift.notes))

        await db.flush()
        await record_audit(db, "sgh_months", month.id, action, current_user.id, request, new_values=snapshot(month))
        await db.commit()

        month = await get_month_or_404(db, month.id, with_children=True)
        logger.info(f"Schedule saved: doctor={data.doctor_id} {data.month}, {len(key_map)} slots, {len(seen_days)} days")
        return ResponseModel(data=month_to_item(month, with_children=True), message="Horario guardado")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error saving schedule: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al guardar el horario", status_code=500)


@router.put("/{month_id}/approve", response_model=ResponseModel[MonthItem])
async def approve_schedule(
    month_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Publish a draft month"""
    try:
        month = await get_month_or_404(db, month_id)
        if month.status == "published":
            raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="El calendario ya está publicado", status_code=400)
        old_values = snapshot(month)
        month.status = "published"
        month.published_at = get_now_naive()
        month.published_by = current_user.id
        await db.flush()
        await record_audit(db, "sgh_months", month_id, "UPDATE", current_user.id, request, old_values, snapshot(month))
        await db.commit()

        month = await get_month_or_404(db, month_id, with_children=True)
        logger.info(f"Month {month_id} published by {current_user.username}")
        return ResponseModel(data=month_to_item(month, with_children=True), message="Calendario publicado")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error approving month {month_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al publicar el calendario", status_code=500)


async def _pending(db: AsyncSession, section_id: Optional[int]) -> List[MonthItem]:
    stmt = (
        select(Month)
        .join(Doctor, Month.doctor_id == Doctor.id)
        .options(selectinload(Month.doctor), selectinload(Month.specialty), selectinload(Month.section))
        .where(Month.status == "draft")
        .order_by(Month.year, Month.month, Doctor.name)
    )
    if section_id is not None:
        stmt = stmt.where(func.coalesce(Month.section_id, Doctor.section_id) == section_id)
    result = await db.execute(stmt)
    return [month_to_item(m) for m in result.scalars().all()]


@router.get("/pending", response_model=ResponseModel[List[MonthItem]])
async def pending_schedules(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Draft months waiting for publication"""
    return ResponseModel(data=await _pending(db, None))


@router.get("/pending/section/{section_id}", response_model=ResponseModel[List[MonthItem]])
async def pending_section_schedules(
    section_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    return ResponseModel(data=await _pending(db, section_id))


@router.delete("/{month_id}", response_model=ResponseModel[DeleteResponse])
async def delete_schedule(
    month_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Discard a draft month"""
    try:
        month = await get_month_or_404(db, month_id)
        if month.status == "published":
            raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="No se puede eliminar un calendario publicado", status_code=400)
        old_values = snapshot(month)
        await db.delete(month)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise BusinessHTTPException(
                code=settings.DEPENDENCY_CODE,
                msg="No se puede eliminar el horario: tiene citas asociadas a sus turnos",
                status_code=400
            )
        await record_audit(db, "sgh_months", month_id, "DELETE", current_user.id, request, old_values=old_values)
        await db.commit()
        return ResponseModel(data=DeleteResponse(id=month_id, detail="Horario eliminado"))
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error deleting schedule {month_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al eliminar el horario", status_code=500)
