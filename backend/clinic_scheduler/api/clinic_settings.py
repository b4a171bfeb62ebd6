from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from clinic_scheduler.api.auth import get_current_user, require_admin
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.datetime_utils import get_now
from clinic_scheduler.core.exception_handler import BusinessHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.clinic_settings import ClinicSettings, DEFAULT_CLINIC_SETTINGS
from clinic_scheduler.schemas.clinic_settings import ClinicSettingsUpdate, ClinicSettingsImport, ClinicSettingsItem
from clinic_scheduler.schemas.response import ResponseModel
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.audit_service import record_audit, snapshot

logger = logging.getLogger(__name__)
router = APIRouter()


async def _load_settings(db: AsyncSession) -> ClinicSettings:
    """The single settings row, created with defaults on first use"""
    result = await db.execute(select(ClinicSettings).order_by(ClinicSettings.id).limit(1))
    row = result.scalar_one_or_none()
    if row is None:
        row = ClinicSettings(**DEFAULT_CLINIC_SETTINGS)
        db.add(row)
        await db.flush()
        await db.commit()
        logger.info("Clinic settings initialised with defaults")
    return row


async def _apply(db: AsyncSession, row: ClinicSettings, values: dict, user_id: int, request: Request) -> ClinicSettings:
    old_values = snapshot(row)
    for field, value in values.items():
        setattr(row, field, value)
    row.updated_by = user_id
    await db.flush()
    await record_audit(db, "sgh_settings", row.id, "UPDATE", user_id, request, old_values, snapshot(row))
    await db.commit()
    await db.refresh(row)
    return row


@router.get("", response_model=ResponseModel[ClinicSettingsItem])
async def get_settings(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    row = await _load_settings(db)
    return ResponseModel(data=ClinicSettingsItem.model_validate(row))


@router.post("", response_model=ResponseModel[ClinicSettingsItem])
async def update_settings(
    data: ClinicSettingsUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Change only the fields present in the body"""
    try:
        row = await _load_settings(db)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None or k == "logo_url"}
        row = await _apply(db, row, changes, current_user.id, request)
        return ResponseModel(data=ClinicSettingsItem.model_validate(row), message="Configuración guardada")
    except BusinessHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating settings: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al guardar la configuración", status_code=500)


@router.put("/reset", response_model=ResponseModel[ClinicSettingsItem])
async def reset_settings(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    try:
        row = await _load_settings(db)
        row = await _apply(db, row, dict(DEFAULT_CLINIC_SETTINGS), current_user.id, request)
        logger.info(f"Clinic settings reset by {current_user.username}")
        return ResponseModel(data=ClinicSettingsItem.model_validate(row), message="Configuración restablecida")
    except BusinessHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error resetting settings: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al restablecer la configuración", status_code=500)


@router.get("/export")
async def export_settings(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Download the settings as a JSON file that /import accepts"""
    row = await _load_settings(db)
    payload = ClinicSettingsItem.model_validate(row).model_dump(mode="json", exclude={"updated_at"})
    filename = f"configuracion-{get_now().strftime('%Y%m%d')}.json"
    return JSONResponse(
        content=payload,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=ResponseModel[ClinicSettingsItem])
async def import_settings(
    data: ClinicSettingsImport,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Replace the settings with an exported file; missing optional fields fall back to defaults"""
    try:
        row = await _load_settings(db)
        values = dict(DEFAULT_CLINIC_SETTINGS)
        values.update({k: v for k, v in data.model_dump().items() if v is not None})
        row = await _apply(db, row, values, current_user.id, request)
        logger.info(f"Clinic settings imported by {current_user.username}")
        return ResponseModel(data=ClinicSettingsItem.model_validate(row), message="Configuración importada")
    except BusinessHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error importing settings: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al importar la configuración", status_code=500)
