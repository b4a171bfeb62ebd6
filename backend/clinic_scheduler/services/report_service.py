"""Loads the Months behind a monthly report and feeds the aggregation stages."""
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from clinic_scheduler.core.config import settings
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.month import Month
from clinic_scheduler.services.shift_report import (
    DayAssignment,
    DayRow,
    MonthContext,
    SlotTimes,
    build_report_rows,
    split_full_name,
)

logger = logging.getLogger(__name__)


def month_context(month: Month) -> MonthContext:
    doctor = month.doctor
    first_name, last_name = split_full_name(doctor.name)
    section = month.section or doctor.section
    return MonthContext(
        month_id=month.id,
        doctor_id=doctor.id,
        first_name=first_name,
        last_name=last_name,
        profession=doctor.profession or settings.DEFAULT_PROFESSION,
        license=doctor.license,
        doc_type=doctor.doc_type,
        doc_number=doctor.doc_number,
        specialty_id=month.specialty_id,
        specialty_name=month.specialty.name if month.specialty else None,
        section_id=section.id if section else None,
        section_name=section.name if section else None,
    )


def report_inputs(months: List[Month]) -> Tuple[Dict[int, MonthContext], List[DayAssignment], Dict[int, Dict[int, SlotTimes]]]:
    """Turn loaded ORM Months into the plain records the stages expect."""
    contexts = {}
    days = []
    slots = {}
    for month in months:
        contexts[month.id] = month_context(month)
        slots[month.id] = {
            slot.id: SlotTimes(id=slot.id, start=slot.start_time, end=slot.end_time) for slot in month.time_slots
        }
        for day in month.days:
            days.append(DayAssignment(month_id=month.id, day=day.day, time_slot_ids=tuple(day.time_slot_ids or ())))
    return contexts, days, slots


async def load_months(
    db: AsyncSession,
    year: int,
    month: int,
    specialty_id: Optional[int] = None,
    service_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
) -> List[Month]:
    stmt = (
        select(Month)
        .join(Doctor, Month.doctor_id == Doctor.id)
        .options(
            selectinload(Month.doctor).selectinload(Doctor.section),
            selectinload(Month.specialty),
            selectinload(Month.section),
            selectinload(Month.time_slots),
            selectinload(Month.days),
        )
        .where(Month.year == year, Month.month == month)
        .order_by(Month.id)
    )
    if specialty_id is not None:
        stmt = stmt.where(Month.specialty_id == specialty_id)
    if service_id is not None:
        stmt = stmt.where(func.coalesce(Month.section_id, Doctor.section_id) == service_id)
    if doctor_id is not None:
        stmt = stmt.where(Month.doctor_id == doctor_id)

    result = await db.execute(stmt)
    return list(result.scalars().unique().all())


async def monthly_report_rows(
    db: AsyncSession,
    year: int,
    month: int,
    specialty_id: Optional[int] = None,
    service_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
) -> List[DayRow]:
    months = await load_months(db, year, month, specialty_id, service_id, doctor_id)
    contexts, days, slots = report_inputs(months)
    rows = build_report_rows(contexts, days, slots, year, month)
    logger.info(f"Monthly report {year}-{month:02d}: {len(months)} months, {len(rows)} day rows")
    return rows
