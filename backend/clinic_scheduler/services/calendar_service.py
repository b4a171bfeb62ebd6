"""Month calendar operations shared by the calendar and schedule routes."""
import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.datetime_utils import days_in_month
from clinic_scheduler.core.exception_handler import BusinessHTTPException
from clinic_scheduler.models.month import Month
from clinic_scheduler.models.month_day import MonthDay
from clinic_scheduler.models.time_slot import TimeSlot
from clinic_scheduler.schemas.calendar import DayItem, MonthItem, TimeSlotItem

logger = logging.getLogger(__name__)


def month_to_item(month: Month, with_children: bool = False) -> MonthItem:
    item = MonthItem(
        id=month.id,
        doctor_id=month.doctor_id,
        doctor_name=month.doctor.name if month.doctor else None,
        specialty_id=month.specialty_id,
        specialty_name=month.specialty.name if month.specialty else None,
        section_id=month.section_id,
        section_name=month.section.name if month.section else None,
        year=month.year,
        month=month.month,
        status=month.status,
        theme_config=month.theme_config,
        published_at=month.published_at,
        published_by=month.published_by,
        created_by=month.created_by,
        created_at=month.created_at,
    )
    if with_children:
        item.time_slots = [TimeSlotItem.from_slot(slot) for slot in month.time_slots]
        item.days = [DayItem.model_validate(day) for day in month.days]
    return item


def check_day_in_month(month: Month, day: int) -> None:
    last_day = days_in_month(month.year, month.month)
    if not 1 <= day <= last_day:
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg=f"El día {day} no existe en {month.year}-{month.month:02d}",
            status_code=400,
        )


async def check_slots_belong(db: AsyncSession, month_id: int, slot_ids: List[int]) -> None:
    """Every referenced slot must be one of the month's own slots."""
    if not slot_ids:
        return
    result = await db.execute(select(TimeSlot.id).where(TimeSlot.month_id == month_id))
    own_ids = set(result.scalars().all())
    foreign = [slot_id for slot_id in slot_ids if slot_id not in own_ids]
    if foreign:
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg=f"Turnos que no pertenecen al mes: {foreign}",
            status_code=400,
        )


async def upsert_day(
    db: AsyncSession, month: Month, day: int, time_slot_ids: List[int], notes: Optional[str]
) -> MonthDay:
    check_day_in_month(month, day)
    await check_slots_belong(db, month.id, time_slot_ids)
    result = await db.execute(select(MonthDay).where(MonthDay.month_id == month.id, MonthDay.day == day))
    month_day = result.scalar_one_or_none()
    if month_day is None:
        month_day = MonthDay(month_id=month.id, day=day)
        db.add(month_day)
    month_day.time_slot_ids = list(time_slot_ids)
    month_day.notes = notes
    await db.flush()
    return month_day


def previous_period(year: int, month: int) -> tuple:
    if month == 1:
        return year - 1, 12
    return year, month - 1


async def copy_previous_month(db: AsyncSession, target: Month) -> Dict[str, int]:
    """Copy slots, day assignments and theme from the same doctor/specialty one month back.

    Slot ids are remapped onto the new copies; days that do not exist in the
    target month are dropped.
    """
    prev_year, prev_month = previous_period(target.year, target.month)
    stmt = select(Month).where(
        Month.doctor_id == target.doctor_id,
        Month.year == prev_year,
        Month.month == prev_month,
    )
    if target.specialty_id is None:
        stmt = stmt.where(Month.specialty_id.is_(None))
    else:
        stmt = stmt.where(Month.specialty_id == target.specialty_id)
    result = await db.execute(stmt)
    source = result.scalar_one_or_none()
    if source is None:
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="No existe un mes anterior para copiar",
            status_code=400,
        )

    slots = (await db.execute(select(TimeSlot).where(TimeSlot.month_id == source.id))).scalars().all()
    days = (await db.execute(select(MonthDay).where(MonthDay.month_id == source.id))).scalars().all()

    # clear the target before copying
    for old_day in (await db.execute(select(MonthDay).where(MonthDay.month_id == target.id))).scalars().all():
        await db.delete(old_day)
    for old_slot in (await db.execute(select(TimeSlot).where(TimeSlot.month_id == target.id))).scalars().all():
        await db.delete(old_slot)
    await db.flush()

    id_map = {}
    for slot in slots:
        copy = TimeSlot(
            month_id=target.id, name=slot.name, start_time=slot.start_time, end_time=slot.end_time, color=slot.color
        )
        db.add(copy)
        await db.flush()
        id_map[slot.id] = copy.id

    last_day = days_in_month(target.year, target.month)
    copied_days = 0
    for day in days:
        if day.day > last_day:
            continue
        db.add(
            MonthDay(
                month_id=target.id,
                day=day.day,
                time_slot_ids=[id_map[sid] for sid in (day.time_slot_ids or []) if sid in id_map],
                notes=day.notes,
            )
        )
        copied_days += 1

    if source.theme_config:
        target.theme_config = dict(source.theme_config)
    await db.flush()
    logger.info(f"Copied month {source.id} into {target.id}: {len(id_map)} slots, {copied_days} days")
    return {"source_month_id": source.id, "time_slots": len(id_map), "days": copied_days}
