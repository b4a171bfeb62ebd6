from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
import logging

from clinic_scheduler.api.auth import get_current_user, require_section_chief
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.datetime_utils import get_now_naive
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.change_request import ChangeRequest, CHANGE_REQUEST_STATUSES
from clinic_scheduler.models.time_slot import TimeSlot
from clinic_scheduler.schemas.calendar import ChangeRequestCreate, ChangeRequestReview, ChangeRequestItem
from clinic_scheduler.schemas.response import ResponseModel
from clinic_scheduler.schemas.user import CurrentUser
from clinic_scheduler.services.admin_helpers import get_or_404, get_month_or_404
from clinic_scheduler.services.audit_service import record_audit, snapshot
from clinic_scheduler.services.calendar_service import check_day_in_month

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", status_code=201, response_model=ResponseModel[ChangeRequestItem])
async def create_change_request(
    data: ChangeRequestCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Ask for a change on one day of a calendar"""
    try:
        month = await get_month_or_404(db, data.month_id)
        check_day_in_month(month, data.day)
        if data.time_slot_id is not None:
            slot = (await db.execute(
                select(TimeSlot.id).where(TimeSlot.id == data.time_slot_id, TimeSlot.month_id == month.id)
            )).first()
            if slot is None:
                raise BusinessHTTPException(
                    code=settings.REQ_ERROR_CODE,
                    msg="El turno no pertenece a este calendario",
                    status_code=400
                )

        change_request = ChangeRequest(
            month_id=month.id,
            requested_by=current_user.id,
            day=data.day,
            time_slot_id=data.time_slot_id,
            message=data.message.strip(),
            status="pending",
        )
        db.add(change_request)
        await db.flush()
        await record_audit(
            db, "sgh_change_requests", change_request.id, "INSERT", current_user.id, request,
            new_values=snapshot(change_request)
        )
        await db.commit()

        logger.info(f"Change request {change_request.id} on month {month.id} day {data.day} by {current_user.username}")
        return ResponseModel(data=ChangeRequestItem.model_validate(change_request), message="Solicitud enviada")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error creating change request: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al crear la solicitud", status_code=500)


@router.get("", response_model=ResponseModel[List[ChangeRequestItem]])
async def list_change_requests(
    status: Optional[str] = None,
    month_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user)
):
    """Chiefs and admins see every request, other users only their own"""
    if status is not None and status not in CHANGE_REQUEST_STATUSES:
        raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg=f"Estado inválido: {status}", status_code=400)

    stmt = select(ChangeRequest).order_by(ChangeRequest.created_at.desc(), ChangeRequest.id.desc())
    if status is not None:
        stmt = stmt.where(ChangeRequest.status == status)
    if month_id is not None:
        stmt = stmt.where(ChangeRequest.month_id == month_id)
    if current_user.role not in ("admin", "jefe"):
        stmt = stmt.where(ChangeRequest.requested_by == current_user.id)
    result = await db.execute(stmt)
    return ResponseModel(data=[ChangeRequestItem.model_validate(r) for r in result.scalars().all()])


@router.put("/{request_id}/review", response_model=ResponseModel[ChangeRequestItem])
async def review_change_request(
    request_id: int,
    data: ChangeRequestReview,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_section_chief)
):
    try:
        change_request = await get_or_404(db, ChangeRequest, request_id, "Solicitud no encontrada")
        if change_request.status != "pending":
            raise BusinessHTTPException(
                code=settings.REQ_ERROR_CODE,
                msg="La solicitud ya fue revisada",
                status_code=400
            )
        old_values = snapshot(change_request)
        change_request.status = data.status
        change_request.review_notes = data.review_notes
        change_request.reviewed_by = current_user.id
        change_request.reviewed_at = get_now_naive()
        await db.flush()
        await record_audit(
            db, "sgh_change_requests", request_id, "UPDATE", current_user.id, request,
            old_values, snapshot(change_request)
        )
        await db.commit()

        logger.info(f"Change request {request_id} {data.status} by {current_user.username}")
        return ResponseModel(data=ChangeRequestItem.model_validate(change_request), message="Solicitud revisada")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error reviewing change request {request_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al revisar la solicitud", status_code=500)
