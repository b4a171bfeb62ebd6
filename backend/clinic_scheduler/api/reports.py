from fastapi import APIRouter, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from clinic_scheduler.api.auth import require_report_access
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.schemas.report import MonthlyReportQuery, ReportRowItem
from clinic_scheduler.schemas.response import ResponseModel
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.report_export import (
    XLSX_MEDIA_TYPE,
    export_workbook_bytes,
    ipress_from_settings,
    report_filename,
)
from clinic_scheduler.services.report_service import monthly_report_rows

logger = logging.getLogger(__name__)
router = APIRouter()

EMPTY_REPORT_MSG = "No se encontraron turnos para los filtros seleccionados"


def _parse_query(month, specialty_id, service_id, doctor_id) -> MonthlyReportQuery:
    try:
        return MonthlyReportQuery(
            month=month,
            specialty_id=specialty_id,
            service_id=service_id,
            doctor_id=doctor_id,
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())


async def _report_rows(db: AsyncSession, query: MonthlyReportQuery):
    year, month = query.year_month
    try:
        rows = await monthly_report_rows(
            db, year, month,
            specialty_id=query.specialty_id,
            service_id=query.service_id,
            doctor_id=query.doctor_id,
        )
    except Exception as e:
        logger.error(f"Monthly report query failed for {query.month}: {str(e)}")
        raise BusinessHTTPException(code=settings.REPORT_FAILED_CODE, msg="Error al generar el reporte", status_code=500)
    if not rows:
        raise ResourceHTTPException(code=settings.REPORT_EMPTY_CODE, msg=EMPTY_REPORT_MSG, status_code=404)
    return rows


@router.get("/monthly-schedule")
async def monthly_schedule(
    month: Optional[str] = None,
    specialty_id: Optional[str] = None,
    service_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_report_access)
):
    """
    IPRESS monthly shift spreadsheet: one row per doctor, specialty and section
    with 31 check-in/check-out column pairs and the month's total hours.
    A month without shifts for the filters is a 404, never an empty file.
    """
    query = _parse_query(month, specialty_id, service_id, doctor_id)
    rows = await _report_rows(db, query)
    try:
        output = export_workbook_bytes(rows, ipress_from_settings(settings))
    except Exception as e:
        logger.error(f"Monthly report export failed for {query.month}: {str(e)}")
        raise BusinessHTTPException(code=settings.REPORT_FAILED_CODE, msg="Error al generar el reporte", status_code=500)

    filename = report_filename(query.month)
    logger.info(f"Monthly report {query.month} exported by {current_user.username}: {len(rows)} day rows")
    return StreamingResponse(
        output,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/monthly-schedule/preview", response_model=ResponseModel[List[ReportRowItem]])
async def monthly_schedule_preview(
    month: Optional[str] = None,
    specialty_id: Optional[str] = None,
    service_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_report_access)
):
    """The aggregated day rows behind the spreadsheet, as JSON"""
    query = _parse_query(month, specialty_id, service_id, doctor_id)
    rows = await _report_rows(db, query)
    return ResponseModel(data=[ReportRowItem(**row.to_dict()) for row in rows])
