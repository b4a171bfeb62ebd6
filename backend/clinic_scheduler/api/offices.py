from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
import logging

from clinic_scheduler.api.auth import get_current_user, require_admin
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.office import Office
from clinic_scheduler.schemas.office import OfficeCreate, OfficeUpdate, OfficeItem
from clinic_scheduler.schemas.response import ResponseModel, DeleteResponse
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.admin_helpers import get_or_404
from clinic_scheduler.services.audit_service import record_audit, snapshot

logger = logging.getLogger(__name__)
router = APIRouter()


async def _check_name(db: AsyncSession, name: str, exclude_id: Optional[int] = None):
    stmt = select(Office.id).where(Office.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Office.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="Ya existe un consultorio con ese nombre", status_code=400)


@router.get("", response_model=ResponseModel[List[OfficeItem]])
async def list_offices(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    stmt = select(Office).order_by(Office.name)
    if not include_inactive:
        stmt = stmt.where(Office.is_active.is_(True))
    result = await db.execute(stmt)
    return ResponseModel(data=[OfficeItem.model_validate(o) for o in result.scalars().all()])


@router.post("", status_code=201, response_model=ResponseModel[OfficeItem])
async def create_office(
    data: OfficeCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    try:
        name = data.name.strip()
        await _check_name(db, name)
        office = Office(name=name, is_active=True)
        db.add(office)
        await db.flush()
        await record_audit(db, "offices", office.id, "INSERT", current_user.id, request, new_values=snapshot(office))
        await db.commit()
        return ResponseModel(data=OfficeItem.model_validate(office), message="Consultorio creado")
    except BusinessHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating office: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al crear consultorio", status_code=500)


@router.put("/{office_id}", response_model=ResponseModel[OfficeItem])
async def update_office(
    office_id: int,
    data: OfficeUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    try:
        office = await get_or_404(db, Office, office_id, "Consultorio no encontrado")
        old_values = snapshot(office)
        if data.name is not None:
            name = data.name.strip()
            await _check_name(db, name, exclude_id=office_id)
            office.name = name
        if data.is_active is not None:
            office.is_active = data.is_active
        await db.flush()
        await record_audit(db, "offices", office_id, "UPDATE", current_user.id, request, old_values, snapshot(office))
        await db.commit()
        return ResponseModel(data=OfficeItem.model_validate(office), message="Consultorio actualizado")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error updating office {office_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al actualizar consultorio", status_code=500)


@router.delete("/{office_id}", response_model=ResponseModel[DeleteResponse])
async def delete_office(
    office_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Soft delete, booked appointments keep their office"""
    try:
        office = await get_or_404(db, Office, office_id, "Consultorio no encontrado")
        old_values = snapshot(office)
        office.is_active = False
        await db.flush()
        await record_audit(db, "offices", office_id, "DELETE", current_user.id, request, old_values, snapshot(office))
        await db.commit()
        return ResponseModel(data=DeleteResponse(id=office_id, detail="Consultorio eliminado"))
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error deleting office {office_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al eliminar consultorio", status_code=500)
