from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy import select
from typing import List, Optional
from datetime import date, datetime, timedelta
import logging

from clinic_scheduler.api.auth import get_current_user, require_admin
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.office import Office
from clinic_scheduler.models.specialty import Specialty
from clinic_scheduler.models.time_slot import TimeSlot
from clinic_scheduler.schemas.appointment import (
    AppointmentCreate, AppointmentUpdate, AppointmentItem, AppointmentStatusName, CalendarEvent
)
from clinic_scheduler.schemas.response import ResponseModel, DeleteResponse
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.admin_helpers import get_or_404, require_existing
from clinic_scheduler.services.audit_service import record_audit, snapshot
from clinic_scheduler.services.conflict_service import find_appointment_conflict

logger = logging.getLogger(__name__)
router = APIRouter()


async def _check_references(db: AsyncSession, values: dict) -> None:
    await require_existing(db, Specialty, values["specialty_id"], "La especialidad no existe")
    await require_existing(db, Doctor, values["doctor_id"], "El doctor no existe")
    await require_existing(db, Office, values["office_id"], "El consultorio no existe")
    await require_existing(db, TimeSlot, values["time_slot_id"], "El turno no existe")


async def _check_conflict(db: AsyncSession, values: dict, exclude_id: Optional[int] = None) -> None:
    if AppointmentStatus(values["status"]) in (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW):
        return
    conflict = await find_appointment_conflict(
        db,
        doctor_id=values["doctor_id"],
        office_id=values["office_id"],
        time_slot_id=values["time_slot_id"],
        appointment_date=values["appointment_date"],
        exclude_id=exclude_id,
    )
    if conflict is not None:
        what = "doctor" if conflict.doctor_id == values["doctor_id"] else "consultorio"
        raise BusinessHTTPException(
            code=settings.CONFLICT_CODE,
            msg=f"Conflicto de horario: el {what} ya tiene la cita #{conflict.id} en ese turno",
            status_code=409
        )


def _event(appointment: Appointment) -> CalendarEvent:
    slot = appointment.time_slot
    start = datetime.combine(appointment.appointment_date, slot.start_time)
    end = datetime.combine(appointment.appointment_date, slot.end_time)
    if end <= start:
        end += timedelta(days=1)
    return CalendarEvent(
        id=appointment.id,
        title=appointment.patient_name,
        start=start.isoformat(),
        end=end.isoformat(),
        status=appointment.status.value,
        doctor_id=appointment.doctor_id,
        office_id=appointment.office_id,
    )


@router.get("", response_model=ResponseModel[List[AppointmentItem]])
async def list_appointments(
    appointment_date: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    doctor_id: Optional[int] = None,
    office_id: Optional[int] = None,
    status: Optional[AppointmentStatusName] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    stmt = select(Appointment).order_by(Appointment.appointment_date, Appointment.id)
    if appointment_date is not None:
        stmt = stmt.where(Appointment.appointment_date == appointment_date)
    if start is not None:
        stmt = stmt.where(Appointment.appointment_date >= start)
    if end is not None:
        stmt = stmt.where(Appointment.appointment_date <= end)
    if doctor_id is not None:
        stmt = stmt.where(Appointment.doctor_id == doctor_id)
    if office_id is not None:
        stmt = stmt.where(Appointment.office_id == office_id)
    if status is not None:
        stmt = stmt.where(Appointment.status == AppointmentStatus(status))
    result = await db.execute(stmt)
    return ResponseModel(data=[AppointmentItem.model_validate(a) for a in result.scalars().all()])


@router.get("/calendar-events", response_model=ResponseModel[List[CalendarEvent]])
async def calendar_events(
    start: date,
    end: date,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Appointments between two dates shaped for a calendar widget"""
    if end < start:
        raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="El rango de fechas es inválido", status_code=400)
    result = await db.execute(
        select(Appointment)
        .options(selectinload(Appointment.time_slot))
        .where(Appointment.appointment_date >= start, Appointment.appointment_date <= end)
        .order_by(Appointment.appointment_date, Appointment.id)
    )
    return ResponseModel(data=[_event(a) for a in result.scalars().all()])


@router.get("/{appointment_id}", response_model=ResponseModel[AppointmentItem])
async def get_appointment(
    appointment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    appointment = await get_or_404(db, Appointment, appointment_id, "Cita no encontrada")
    return ResponseModel(data=AppointmentItem.model_validate(appointment))


@router.post("", status_code=201, response_model=ResponseModel[AppointmentItem])
async def create_appointment(
    data: AppointmentCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Book an appointment; the doctor and the office must be free in that slot"""
    try:
        values = data.model_dump()
        await _check_references(db, values)
        await _check_conflict(db, values)

        appointment = Appointment(
            patient_name=data.patient_name.strip(),
            patient_phone=data.patient_phone,
            patient_email=str(data.patient_email) if data.patient_email else None,
            specialty_id=data.specialty_id,
            doctor_id=data.doctor_id,
            office_id=data.office_id,
            time_slot_id=data.time_slot_id,
            appointment_date=data.appointment_date,
            notes=data.notes,
            status=AppointmentStatus(data.status),
            created_by=current_user.id,
        )
        db.add(appointment)
        await db.flush()
        await record_audit(db, "appointments", appointment.id, "INSERT", current_user.id, request, new_values=snapshot(appointment))
        await db.commit()

        logger.info(f"Appointment {appointment.id} booked: doctor={data.doctor_id} office={data.office_id} {data.appointment_date}")
        return ResponseModel(data=AppointmentItem.model_validate(appointment), message="Cita creada")
    except BusinessHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating appointment: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al crear la cita", status_code=500)


@router.put("/{appointment_id}", response_model=ResponseModel[AppointmentItem])
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Partial update; the merged booking is re-checked without counting itself"""
    try:
        appointment = await get_or_404(db, Appointment, appointment_id, "Cita no encontrada")
        old_values = snapshot(appointment)
        changes = data.model_dump(exclude_unset=True)

        merged = {
            "specialty_id": changes.get("specialty_id") or appointment.specialty_id,
            "doctor_id": changes.get("doctor_id") or appointment.doctor_id,
            "office_id": changes.get("office_id") or appointment.office_id,
            "time_slot_id": changes.get("time_slot_id") or appointment.time_slot_id,
            "appointment_date": changes.get("appointment_date") or appointment.appointment_date,
            "status": changes.get("status") or appointment.status.value,
        }
        await _check_references(db, merged)
        await _check_conflict(db, merged, exclude_id=appointment_id)

        for field, value in changes.items():
            if field == "status":
                if value is not None:
                    appointment.status = AppointmentStatus(value)
            elif field == "patient_email":
                appointment.patient_email = str(value) if value else None
            elif value is not None or field in ("patient_phone", "notes"):
                setattr(appointment, field, value)

        await db.flush()
        await record_audit(db, "appointments", appointment_id, "UPDATE", current_user.id, request, old_values, snapshot(appointment))
        await db.commit()
        return ResponseModel(data=AppointmentItem.model_validate(appointment), message="Cita actualizada")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error updating appointment {appointment_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al actualizar la cita", status_code=500)


@router.delete("/{appointment_id}", response_model=ResponseModel[DeleteResponse])
async def cancel_appointment(
    appointment_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Mark the appointment cancelled, which frees its slot"""
    try:
        appointment = await get_or_404(db, Appointment, appointment_id, "Cita no encontrada")
        old_values = snapshot(appointment)
        appointment.status = AppointmentStatus.CANCELLED
        await db.flush()
        await record_audit(db, "appointments", appointment_id, "DELETE", current_user.id, request, old_values, snapshot(appointment))
        await db.commit()
        return ResponseModel(data=DeleteResponse(id=appointment_id, detail="Cita cancelada"))
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error cancelling appointment {appointment_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al cancelar la cita", status_code=500)
