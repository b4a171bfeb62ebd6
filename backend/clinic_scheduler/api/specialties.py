from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
import logging

from clinic_scheduler.api.auth import get_current_user, require_section_chief
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.section import Section
from clinic_scheduler.models.specialty import Specialty
from clinic_scheduler.schemas.response import ResponseModel, DeleteResponse
from clinic_scheduler.schemas.specialty import SpecialtyCreate, SpecialtyUpdate, SpecialtyItem
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.admin_helpers import get_or_404, require_existing
from clinic_scheduler.services.audit_service import record_audit, snapshot

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=ResponseModel[List[SpecialtyItem]])
async def list_specialties(
    section_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Active specialties, optionally of one section"""
    stmt = select(Specialty).where(Specialty.is_active.is_(True)).order_by(Specialty.name)
    if section_id is not None:
        stmt = stmt.where(Specialty.section_id == section_id)
    result = await db.execute(stmt)
    return ResponseModel(data=[SpecialtyItem.model_validate(s) for s in result.scalars().all()])


@router.get("/{specialty_id}", response_model=ResponseModel[SpecialtyItem])
async def get_specialty(
    specialty_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    specialty = await get_or_404(db, Specialty, specialty_id, "Especialidad no encontrada")
    return ResponseModel(data=SpecialtyItem.model_validate(specialty))


@router.post("", status_code=201, response_model=ResponseModel[SpecialtyItem])
async def create_specialty(
    data: SpecialtyCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Create a specialty"""
    try:
        await require_existing(db, Section, data.section_id, "La sección no existe")
        specialty = Specialty(name=data.name.strip(), description=data.description, section_id=data.section_id)
        db.add(specialty)
        await db.flush()
        await record_audit(db, "sgh_specialties", specialty.id, "INSERT", current_user.id, request, new_values=snapshot(specialty))
        await db.commit()
        await db.refresh(specialty)

        logger.info(f"Specialty created: {specialty.name}")
        return ResponseModel(data=SpecialtyItem.model_validate(specialty), message="Especialidad creada")
    except BusinessHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating specialty: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al crear especialidad", status_code=500)


@router.put("/{specialty_id}", response_model=ResponseModel[SpecialtyItem])
async def update_specialty(
    specialty_id: int,
    data: SpecialtyUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    try:
        specialty = await get_or_404(db, Specialty, specialty_id, "Especialidad no encontrada")
        old_values = snapshot(specialty)
        changes = data.model_dump(exclude_unset=True)
        if "section_id" in changes:
            await require_existing(db, Section, changes["section_id"], "La sección no existe")
        for field, value in changes.items():
            if value is None and field in ("name", "is_active"):
                continue
            setattr(specialty, field, value)

        await db.flush()
        await record_audit(db, "sgh_specialties", specialty.id, "UPDATE", current_user.id, request, old_values, snapshot(specialty))
        await db.commit()
        await db.refresh(specialty)
        return ResponseModel(data=SpecialtyItem.model_validate(specialty), message="Especialidad actualizada")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error updating specialty {specialty_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al actualizar especialidad", status_code=500)


@router.delete("/{specialty_id}", response_model=ResponseModel[DeleteResponse])
async def delete_specialty(
    specialty_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Soft delete: the specialty is hidden but kept for history"""
    try:
        specialty = await get_or_404(db, Specialty, specialty_id, "Especialidad no encontrada")
        old_values = snapshot(specialty)
        specialty.is_active = False
        await db.flush()
        await record_audit(db, "sgh_specialties", specialty_id, "DELETE", current_user.id, request, old_values, snapshot(specialty))
        await db.commit()

        logger.info(f"Specialty deactivated: {specialty_id}")
        return ResponseModel(data=DeleteResponse(id=specialty_id, detail="Especialidad eliminada"))
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error deleting specialty {specialty_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al eliminar especialidad", status_code=500)
