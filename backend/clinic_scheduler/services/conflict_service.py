"""Existence checks that keep bookings and slot definitions from colliding."""
from datetime import date, time
from typing import List, Optional, Sequence

from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.models.appointment import Appointment, RELEASED_STATUSES
from clinic_scheduler.models.time_slot import TimeSlot

MINUTES_PER_DAY = 24 * 60


async def find_appointment_conflict(
    db: AsyncSession,
    doctor_id: int,
    office_id: int,
    time_slot_id: int,
    appointment_date: date,
    exclude_id: Optional[int] = None,
) -> Optional[Appointment]:
    """First live appointment holding the same doctor or office in that slot and date."""
    stmt = select(Appointment).where(
        and_(
            or_(Appointment.doctor_id == doctor_id, Appointment.office_id == office_id),
            Appointment.time_slot_id == time_slot_id,
            Appointment.appointment_date == appointment_date,
            Appointment.status.notin_(RELEASED_STATUSES),
        )
    )
    if exclude_id is not None:
        stmt = stmt.where(Appointment.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none()


def slot_minutes(start: time, end: time) -> tuple:
    """Slot as ``[start, end)`` minutes from the start day's midnight; overnight ends pass 1440."""
    begin = start.hour * 60 + start.minute
    finish = end.hour * 60 + end.minute
    if finish <= begin:
        finish += MINUTES_PER_DAY
    return begin, finish


def slots_overlap(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    """Whether two daily slots share any minute, also across midnight."""
    a_begin, a_finish = slot_minutes(a_start, a_end)
    b_begin, b_finish = slot_minutes(b_start, b_end)
    # compare against the other slot shifted a day back and forward too
    for shift in (-MINUTES_PER_DAY, 0, MINUTES_PER_DAY):
        if a_begin < b_finish + shift and b_begin + shift < a_finish:
            return True
    return False


def overlapping_slots(start: time, end: time, others: Sequence[TimeSlot]) -> List[TimeSlot]:
    return [slot for slot in others if slots_overlap(start, end, slot.start_time, slot.end_time)]


async def find_slot_overlaps(
    db: AsyncSession,
    month_id: int,
    start: time,
    end: time,
    exclude_id: Optional[int] = None,
) -> List[TimeSlot]:
    stmt = select(TimeSlot).where(TimeSlot.month_id == month_id)
    if exclude_id is not None:
        stmt = stmt.where(TimeSlot.id != exclude_id)
    result = await db.execute(stmt)
    return overlapping_slots(start, end, result.scalars().all())
