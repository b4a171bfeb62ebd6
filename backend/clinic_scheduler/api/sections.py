from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, func
from typing import List, Optional
import logging

from clinic_scheduler.api.auth import get_current_user, require_admin, require_section_chief
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.exception_handler import AuthHTTPException, BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.section import Section
from clinic_scheduler.schemas.response import ResponseModel, DeleteResponse
from clinic_scheduler.schemas.section import SectionCreate, SectionUpdate, SectionItem
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.admin_helpers import get_or_404, count_active_doctors
from clinic_scheduler.services.audit_service import record_audit, snapshot

logger = logging.getLogger(__name__)
router = APIRouter()


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Section.id).where(func.lower(Section.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(Section.id != exclude_id)
    result = await db.execute(stmt)
    return result.first() is not None


@router.get("", response_model=ResponseModel[List[SectionItem]])
async def list_sections(
    active: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """List sections ordered by name"""
    try:
        doctor_count = (
            select(func.count(Doctor.id))
            .where(Doctor.section_id == Section.id, Doctor.is_active.is_(True))
            .correlate(Section)
            .scalar_subquery()
        )
        stmt = select(Section, doctor_count).order_by(Section.name)
        if active is not None:
            stmt = stmt.where(Section.is_active.is_(active))
        result = await db.execute(stmt)
        items = []
        for section, count in result.all():
            item = SectionItem.model_validate(section)
            item.doctor_count = count
            items.append(item)
        return ResponseModel(data=items)
    except Exception as e:
        logger.error(f"Error listing sections: {str(e)}")
        raise BusinessHTTPException(code=settings.DATA_GET_FAILED_CODE, msg="Error al obtener secciones", status_code=500)


@router.get("/{section_id}", response_model=ResponseModel[SectionItem])
async def get_section(
    section_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Get one section with its active doctor count"""
    section = await get_or_404(db, Section, section_id, "Sección no encontrada")
    item = SectionItem.model_validate(section)
    item.doctor_count = await count_active_doctors(db, section_id)
    return ResponseModel(data=item)


@router.post("", status_code=201, response_model=ResponseModel[SectionItem])
async def create_section(
    data: SectionCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Create a section"""
    try:
        if await _name_taken(db, data.name):
            raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="Ya existe una sección con ese nombre", status_code=400)

        section = Section(name=data.name.strip(), description=data.description)
        db.add(section)
        await db.flush()
        await record_audit(db, "sgh_sections", section.id, "INSERT", current_user.id, request, new_values=snapshot(section))
        await db.commit()
        await db.refresh(section)

        logger.info(f"Section created: {section.name}")
        return ResponseModel(data=SectionItem.model_validate(section), message="Sección creada")
    except BusinessHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating section: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al crear sección", status_code=500)


@router.put("/{section_id}", response_model=ResponseModel[SectionItem])
async def update_section(
    section_id: int,
    data: SectionUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    """Update name, description or active flag"""
    try:
        section = await get_or_404(db, Section, section_id, "Sección no encontrada")
        old_values = snapshot(section)

        if data.name is not None and await _name_taken(db, data.name, exclude_id=section_id):
            raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="Ya existe una sección con ese nombre", status_code=400)

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None or field == "description":
                setattr(section, field, value.strip() if field == "name" else value)

        await db.flush()
        await record_audit(db, "sgh_sections", section.id, "UPDATE", current_user.id, request, old_values, snapshot(section))
        await db.commit()
        await db.refresh(section)

        logger.info(f"Section updated: {section_id}")
        return ResponseModel(data=SectionItem.model_validate(section), message="Sección actualizada")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error updating section {section_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al actualizar sección", status_code=500)


@router.delete("/{section_id}", response_model=ResponseModel[DeleteResponse])
async def delete_section(
    section_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """
    Delete a section - refused while active doctors are assigned to it.
    """
    try:
        section = await get_or_404(db, Section, section_id, "Sección no encontrada")

        active_doctors = await count_active_doctors(db, section_id)
        if active_doctors:
            raise BusinessHTTPException(
                code=settings.DEPENDENCY_CODE,
                msg=f"No se puede eliminar la sección: tiene {active_doctors} doctor(es) activo(s) asignado(s)",
                status_code=400
            )

        old_values = snapshot(section)
        await db.delete(section)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise BusinessHTTPException(
                code=settings.DEPENDENCY_CODE,
                msg="No se puede eliminar la sección porque tiene registros asociados (doctores o calendarios)",
                status_code=400
            )
        await record_audit(db, "sgh_sections", section_id, "DELETE", current_user.id, request, old_values=old_values)
        await db.commit()

        logger.info(f"Section deleted: {section_id}")
        return ResponseModel(data=DeleteResponse(id=section_id, detail="Sección eliminada"))
    except (AuthHTTPException, BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error deleting section {section_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al eliminar sección", status_code=500)
