from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy import select
from typing import List, Optional
import logging

from clinic_scheduler.api.auth import get_current_user, require_section_chief
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.datetime_utils import get_now_naive
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.month import Month
from clinic_scheduler.models.specialty import Specialty
from clinic_scheduler.schemas.calendar import MonthCreate, MonthUpdate, MonthItem, MonthStatus
from clinic_scheduler.schemas.response import ResponseModel, DeleteResponse
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.admin_helpers import get_month_or_404
from clinic_scheduler.services.audit_service import record_audit, snapshot
from clinic_scheduler.services.calendar_service import month_to_item, copy_previous_month

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/months", response_model=ResponseModel[List[MonthItem]])
async def list_months(
    doctor_id: Optional[int] = None,
    specialty_id: Optional[int] = None,
    section_id: Optional[int] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    status: Optional[MonthStatus] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """List calendar months with optional filters"""
    stmt = (
        select(Month)
        .options(selectinload(Month.doctor), selectinload(Month.specialty), selectinload(Month.section))
        .order_by(Month.year.desc(), Month.month.desc(), Month.id)
    )
    filters = {
        Month.doctor_id: doctor_id,
        Month.specialty_id: specialty_id,
        Month.section_id: section_id,
        Month.year: year,
        Month.month: month,
        Month.status: status,
    }
    for column, value in filters.items():
        if value is not None:
            stmt = stmt.where(column == value)
    result = await db.execute(stmt)
    return ResponseModel(data=[month_to_item(m) for m in result.scalars().all()])


@router.get("/months/{month_id}", response_model=ResponseModel[MonthItem])
async def get_month(
    month_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """One month with its time slots and days"""
    month = await get_month_or_404(db, month_id, with_children=True)
    return ResponseModel(data=month_to_item(month, with_children=True))


@router.post("/months", status_code=201, response_model=ResponseModel[MonthItem])
async def create_month(
    data: MonthCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Create a draft month for a doctor and specialty"""
    try:
        doctor = (await db.execute(select(Doctor).where(Doctor.id == data.doctor_id))).scalar_one_or_none()
        if doctor is None:
            raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="El doctor no existe", status_code=400)
        if data.specialty_id is not None:
            specialty = (await db.execute(select(Specialty.id).where(Specialty.id == data.specialty_id))).first()
            if specialty is None:
                raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="La especialidad no existe", status_code=400)

        stmt = select(Month.id).where(
            Month.doctor_id == data.doctor_id, Month.year == data.year, Month.month == data.month
        )
        stmt = stmt.where(
            Month.specialty_id.is_(None) if data.specialty_id is None else Month.specialty_id == data.specialty_id
        )
        if (await db.execute(stmt)).first() is not None:
            raise BusinessHTTPException(
                code=settings.REQ_ERROR_CODE,
                msg="Ya existe un calendario para ese doctor, especialidad y mes",
                status_code=400
            )

        month = Month(
            doctor_id=data.doctor_id,
            specialty_id=data.specialty_id,
            section_id=data.section_id or doctor.section_id,
            year=data.year,
            month=data.month,
            status="draft",
            theme_config=data.theme_config,
            created_by=current_user.id,
        )
        db.add(month)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="Datos de calendario inválidos", status_code=400)
        await record_audit(db, "sgh_months", month.id, "INSERT", current_user.id, request, new_values=snapshot(month))
        await db.commit()

        month = await get_month_or_404(db, month.id, with_children=True)
        logger.info(f"Month created: doctor={data.doctor_id} {data.year}-{data.month:02d}")
        return ResponseModel(data=month_to_item(month, with_children=True), message="Calendario creado")
    except BusinessHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating month: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al crear calendario", status_code=500)


@router.put("/months/{month_id}", response_model=ResponseModel[MonthItem])
async def update_month(
    month_id: int,
    data: MonthUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Change the theme or the status; publishing stamps who and when"""
    try:
        month = await get_month_or_404(db, month_id)
        old_values = snapshot(month)

        if data.theme_config is not None:
            month.theme_config = data.theme_config
        if data.status is not None and data.status != month.status:
            month.status = data.status
            if data.status == "published":
                month.published_at = get_now_naive()
                month.published_by = current_user.id
            else:
                month.published_at = None
                month.published_by = None

        await db.flush()
        await record_audit(db, "sgh_months", month.id, "UPDATE", current_user.id, request, old_values, snapshot(month))
        await db.commit()

        month = await get_month_or_404(db, month_id, with_children=True)
        return ResponseModel(data=month_to_item(month, with_children=True), message="Calendario actualizado")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error updating month {month_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al actualizar calendario", status_code=500)


@router.delete("/months/{month_id}", response_model=ResponseModel[DeleteResponse])
async def delete_month(
    month_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Delete a draft month together with its slots and days"""
    try:
        month = await get_month_or_404(db, month_id)
        if month.status == "published":
            raise BusinessHTTPException(
                code=settings.REQ_ERROR_CODE,
                msg="No se puede eliminar un calendario publicado",
                status_code=400
            )
        old_values = snapshot(month)
        await db.delete(month)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise BusinessHTTPException(
                code=settings.DEPENDENCY_CODE,
                msg="No se puede eliminar el calendario: tiene citas asociadas a sus turnos",
                status_code=400
            )
        await record_audit(db, "sgh_months", month_id, "DELETE", current_user.id, request, old_values=old_values)
        await db.commit()

        logger.info(f"Month deleted: {month_id}")
        return ResponseModel(data=DeleteResponse(id=month_id, detail="Calendario eliminado"))
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error deleting month {month_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al eliminar calendario", status_code=500)


@router.post("/months/{month_id}/copy-previous", response_model=ResponseModel[MonthItem])
async def copy_previous(
    month_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Replace this month's slots, days and theme with the previous month's"""
    try:
        month = await get_month_or_404(db, month_id)
        if month.status == "published":
            raise BusinessHTTPException(
                code=settings.REQ_ERROR_CODE,
                msg="No se puede modificar un calendario publicado",
                status_code=400
            )
        summary = await copy_previous_month(db, month)
        await record_audit(db, "sgh_months", month_id, "UPDATE", current_user.id, request, new_values={"copied_from": summary})
        await db.commit()

        month = await get_month_or_404(db, month_id, with_children=True)
        return ResponseModel(data=month_to_item(month, with_children=True), message="Mes anterior copiado")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error copying previous month into {month_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al copiar el mes anterior", status_code=500)
