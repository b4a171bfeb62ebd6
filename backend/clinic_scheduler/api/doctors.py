from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy import select, or_
from typing import List, Optional
import logging

from clinic_scheduler.api.auth import get_current_user, require_section_chief
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.section import Section
from clinic_scheduler.models.user import User
from clinic_scheduler.schemas.doctor import DoctorCreate, DoctorUpdate, DoctorItem
from clinic_scheduler.schemas.response import ResponseModel, DeleteResponse
from clinic_scheduler.schemas.specialty import SpecialtyItem
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.admin_helpers import get_doctor_or_404, load_specialties, require_existing
from clinic_scheduler.services.audit_service import record_audit, snapshot

logger = logging.getLogger(__name__)
router = APIRouter()


def doctor_to_item(doctor: Doctor) -> DoctorItem:
    return DoctorItem(
        id=doctor.id,
        name=doctor.name,
        email=doctor.email,
        phone=doctor.phone,
        license=doctor.license,
        doc_type=doctor.doc_type,
        doc_number=doctor.doc_number,
        profession=doctor.profession,
        avatar_url=doctor.avatar_url,
        user_id=doctor.user_id,
        section_id=doctor.section_id,
        section_name=doctor.section.name if doctor.section else None,
        is_active=doctor.is_active,
        specialties=[SpecialtyItem.model_validate(s) for s in doctor.specialties],
    )


async def _check_unique(db: AsyncSession, email: Optional[str], license: Optional[str], exclude_id: Optional[int] = None):
    conditions = []
    if email:
        conditions.append(Doctor.email == email)
    if license:
        conditions.append(Doctor.license == license)
    if not conditions:
        return
    stmt = select(Doctor.id).where(or_(*conditions))
    if exclude_id is not None:
        stmt = stmt.where(Doctor.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="Ya existe un doctor con ese email o número de colegiatura",
            status_code=400
        )


async def _list(db: AsyncSession, section_id: Optional[int], include_inactive: bool) -> List[DoctorItem]:
    stmt = (
        select(Doctor)
        .options(selectinload(Doctor.section), selectinload(Doctor.specialties))
        .order_by(Doctor.name)
    )
    if not include_inactive:
        stmt = stmt.where(Doctor.is_active.is_(True))
    if section_id is not None:
        stmt = stmt.where(Doctor.section_id == section_id)
    result = await db.execute(stmt)
    return [doctor_to_item(d) for d in result.scalars().all()]


@router.get("", response_model=ResponseModel[List[DoctorItem]])
async def list_doctors(
    section_id: Optional[int] = None,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Doctors with their section and specialties"""
    return ResponseModel(data=await _list(db, section_id, include_inactive))


@router.get("/section/{section_id}", response_model=ResponseModel[List[DoctorItem]])
async def list_section_doctors(
    section_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    return ResponseModel(data=await _list(db, section_id, False))


@router.get("/{doctor_id}", response_model=ResponseModel[DoctorItem])
async def get_doctor(
    doctor_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    doctor = await get_doctor_or_404(db, doctor_id)
    return ResponseModel(data=doctor_to_item(doctor))


@router.post("", status_code=201, response_model=ResponseModel[DoctorItem])
async def create_doctor(
    data: DoctorCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Create a doctor and link its specialties in one transaction"""
    try:
        email = data.email.lower()
        await require_existing(db, Section, data.section_id, "La sección no existe")
        await require_existing(db, User, data.user_id, "El usuario no existe")
        await _check_unique(db, email, data.license)
        specialties = await load_specialties(db, data.specialty_ids)

        doctor = Doctor(
            name=data.name.strip(),
            email=email,
            phone=data.phone,
            license=data.license.strip(),
            doc_type=data.doc_type,
            doc_number=data.doc_number,
            profession=data.profession,
            avatar_url=data.avatar_url,
            user_id=data.user_id,
            section_id=data.section_id,
        )
        doctor.specialties = specialties
        db.add(doctor)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="El doctor ya existe", status_code=400)

        await record_audit(db, "sgh_doctors", doctor.id, "INSERT", current_user.id, request, new_values=snapshot(doctor))
        await db.commit()

        doctor = await get_doctor_or_404(db, doctor.id)
        logger.info(f"Doctor created: {doctor.name}")
        return ResponseModel(data=doctor_to_item(doctor), message="Doctor creado")
    except BusinessHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating doctor: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al crear doctor", status_code=500)


@router.put("/{doctor_id}", response_model=ResponseModel[DoctorItem])
async def update_doctor(
    doctor_id: int,
    data: DoctorUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Partial update; specialty_ids, when sent, replaces the whole set"""
    try:
        doctor = await get_doctor_or_404(db, doctor_id)
        old_values = snapshot(doctor)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("email"):
            changes["email"] = changes["email"].lower()
        await _check_unique(db, changes.get("email"), changes.get("license"), exclude_id=doctor_id)
        if changes.get("section_id") is not None:
            await require_existing(db, Section, changes["section_id"], "La sección no existe")
        if changes.get("user_id") is not None:
            await require_existing(db, User, changes["user_id"], "El usuario no existe")

        specialty_ids = changes.pop("specialty_ids", None)
        for field, value in changes.items():
            # null keeps the stored value for required columns
            if value is None and field in ("name", "email", "license", "section_id"):
                continue
            setattr(doctor, field, value)
        if specialty_ids is not None:
            doctor.specialties = await load_specialties(db, specialty_ids)

        await db.flush()
        await record_audit(db, "sgh_doctors", doctor.id, "UPDATE", current_user.id, request, old_values, snapshot(doctor))
        await db.commit()

        doctor = await get_doctor_or_404(db, doctor_id)
        return ResponseModel(data=doctor_to_item(doctor), message="Doctor actualizado")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error updating doctor {doctor_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al actualizar doctor", status_code=500)


async def _set_active(db: AsyncSession, request: Request, current_user: CurrentUser, doctor_id: int, active: bool) -> Doctor:
    doctor = await get_doctor_or_404(db, doctor_id)
    old_values = snapshot(doctor)
    doctor.is_active = active
    await db.flush()
    action = "UPDATE" if active else "DELETE"
    await record_audit(db, "sgh_doctors", doctor_id, action, current_user.id, request, old_values, snapshot(doctor))
    await db.commit()
    logger.info(f"Doctor {doctor_id} {'reactivated' if active else 'deactivated'}")
    return doctor


@router.delete("/{doctor_id}", response_model=ResponseModel[DeleteResponse])
async def delete_doctor(
    doctor_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Soft delete"""
    try:
        await _set_active(db, request, current_user, doctor_id, False)
        return ResponseModel(data=DeleteResponse(id=doctor_id, detail="Doctor eliminado"))
    except ResourceHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting doctor {doctor_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al eliminar doctor", status_code=500)


@router.put("/{doctor_id}/deactivate", response_model=ResponseModel[DoctorItem])
async def deactivate_doctor(
    doctor_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    try:
        doctor = await _set_active(db, request, current_user, doctor_id, False)
        return ResponseModel(data=doctor_to_item(doctor), message="Doctor desactivado")
    except ResourceHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deactivating doctor {doctor_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al desactivar doctor", status_code=500)


@router.put("/{doctor_id}/reactivate", response_model=ResponseModel[DoctorItem])
async def reactivate_doctor(
    doctor_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    try:
        doctor = await _set_active(db, request, current_user, doctor_id, True)
        return ResponseModel(data=doctor_to_item(doctor), message="Doctor reactivado")
    except ResourceHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error reactivating doctor {doctor_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al reactivar doctor", status_code=500)
