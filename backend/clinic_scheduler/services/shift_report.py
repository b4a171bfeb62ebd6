"""Monthly shift aggregation.

The report is built in small stages that operate on plain records so the
midnight and month-end rules can be exercised without a database:

    expand_assignments -> segment_shift -> clamp_segments
        -> aggregate_day_rows -> attach_month_totals -> order_rows

``build_report_rows`` runs the whole pipeline. Durations are carried in
whole seconds and only converted to hours at the edges.

Overlapping slots on the same day add up (no interval union). A slot
whose end equals its start lasts 24 hours.
"""
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from clinic_scheduler.core.datetime_utils import days_in_month, format_hhmm


@dataclass(frozen=True)
class MonthContext:
    """Display fields of one Month, resolved from doctor/specialty/section."""
    month_id: int
    doctor_id: int
    first_name: str
    last_name: str
    profession: str
    license: Optional[str] = None
    doc_type: Optional[str] = None
    doc_number: Optional[str] = None
    specialty_id: Optional[int] = None
    specialty_name: Optional[str] = None
    section_id: Optional[int] = None
    section_name: Optional[str] = None

    @property
    def group_key(self) -> Tuple[int, Optional[int], Optional[int]]:
        return (self.doctor_id, self.specialty_id, self.section_id)


@dataclass(frozen=True)
class SlotTimes:
    id: int
    start: time
    end: time


@dataclass(frozen=True)
class DayAssignment:
    month_id: int
    day: int
    time_slot_ids: Tuple[int, ...]


@dataclass(frozen=True)
class ShiftInstance:
    context: MonthContext
    original_day: int
    effective_date: date
    start: time
    end: time


@dataclass(frozen=True)
class Segment:
    context: MonthContext
    original_day: int
    day_offset: int
    start: datetime
    end: datetime
    display_day: Optional[int] = None

    @property
    def seconds(self) -> int:
        return int((self.end - self.start).total_seconds())


@dataclass(frozen=True)
class DayRow:
    context: MonthContext
    display_day: int
    first_start: datetime
    last_end: datetime
    spills_next_day: bool
    day_seconds: int
    total_seconds: int = 0

    @property
    def day_hours(self) -> float:
        return self.day_seconds / 3600

    @property
    def total_hours(self) -> float:
        return self.total_seconds / 3600

    def to_dict(self) -> dict:
        ctx = self.context
        return {
            "doctor_id": ctx.doctor_id,
            "first_name": ctx.first_name,
            "last_name": ctx.last_name,
            "doc_type": ctx.doc_type,
            "doc_number": ctx.doc_number,
            "profession": ctx.profession,
            "license": ctx.license,
            "specialty_id": ctx.specialty_id,
            "specialty_name": ctx.specialty_name,
            "section_id": ctx.section_id,
            "section_name": ctx.section_name,
            "display_day": self.display_day,
            "first_start": format_hhmm(self.first_start),
            "last_end": format_hhmm(self.last_end),
            "spills_next_day": self.spills_next_day,
            "day_hours": round(self.day_hours, 2),
            "total_hours": round(self.total_hours, 2),
        }


def split_full_name(name: str) -> Tuple[str, str]:
    """Split ``"Ana Maria Perez"`` into ``("Ana", "Maria Perez")``.

    A single-token name is used for both parts.
    """
    parts = (name or "").strip().split(None, 1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], parts[0]
    return parts[0], parts[1]


def effective_date(year: int, month: int, day: int) -> date:
    """Calendar date of a MonthDay; days past the month's end fall on its last day."""
    last_day = days_in_month(year, month)
    if 1 <= day <= last_day:
        return date(year, month, day)
    return date(year, month, last_day)


def expand_assignments(
    contexts: Mapping[int, MonthContext],
    days: Iterable[DayAssignment],
    slots: Mapping[int, Mapping[int, SlotTimes]],
    year: int,
    month: int,
) -> List[ShiftInstance]:
    """One ShiftInstance per (day, slot reference).

    ``slots`` maps month id to that month's slots by id. References to
    slots outside the day's own month are ignored, as are days of months
    missing from ``contexts``.
    """
    instances = []
    for assignment in days:
        context = contexts.get(assignment.month_id)
        if context is None:
            continue
        month_slots = slots.get(assignment.month_id, {})
        day_date = effective_date(year, month, assignment.day)
        for slot_id in assignment.time_slot_ids:
            slot = month_slots.get(slot_id)
            if slot is None:
                continue
            instances.append(
                ShiftInstance(
                    context=context,
                    original_day=assignment.day,
                    effective_date=day_date,
                    start=slot.start,
                    end=slot.end,
                )
            )
    return instances


def shift_interval(day: date, start: time, end: time) -> Tuple[datetime, datetime]:
    """Absolute interval of a slot worked on ``day``.

    ``end < start`` ends on the next day. ``end == start`` also ends on
    the next day, which makes it a 24-hour shift.
    """
    start_ts = datetime.combine(day, start)
    end_ts = datetime.combine(day, end)
    if end_ts <= start_ts:
        end_ts += timedelta(days=1)
    return start_ts, end_ts


def split_by_calendar_day(start: datetime, end: datetime) -> List[Tuple[datetime, datetime]]:
    """Cut ``[start, end)`` at every midnight it crosses."""
    pieces = []
    cursor = start
    while cursor < end:
        next_midnight = datetime.combine(cursor.date() + timedelta(days=1), time.min)
        piece_end = min(end, next_midnight)
        pieces.append((cursor, piece_end))
        cursor = piece_end
    return pieces


def segment_shift(instance: ShiftInstance) -> List[Segment]:
    start_ts, end_ts = shift_interval(instance.effective_date, instance.start, instance.end)
    return [
        Segment(
            context=instance.context,
            original_day=instance.original_day,
            day_offset=(piece_start.date() - instance.effective_date).days,
            start=piece_start,
            end=piece_end,
        )
        for piece_start, piece_end in split_by_calendar_day(start_ts, end_ts)
    ]


def clamp_display_day(original_day: int, day_offset: int, last_day: int) -> int:
    """Day a segment is reported under, kept inside ``[1, last_day]``.

    A spill past the month's end stays on the last day instead of rolling
    into the next month.
    """
    return max(1, min(original_day + day_offset, last_day))


def clamp_segments(segments: Iterable[Segment], year: int, month: int) -> List[Segment]:
    last_day = days_in_month(year, month)
    return [
        replace(segment, display_day=clamp_display_day(segment.original_day, segment.day_offset, last_day))
        for segment in segments
    ]


def aggregate_day_rows(segments: Iterable[Segment], year: int, month: int) -> List[DayRow]:
    """Collapse segments into one row per (doctor, specialty, section, display day)."""
    groups: "OrderedDict[tuple, List[Segment]]" = OrderedDict()
    for segment in segments:
        key = segment.context.group_key + (segment.display_day,)
        groups.setdefault(key, []).append(segment)

    rows = []
    for (_, _, _, display_day), members in groups.items():
        display_date = date(year, month, display_day)
        rows.append(
            DayRow(
                context=members[0].context,
                display_day=display_day,
                first_start=min(s.start for s in members),
                last_end=max(s.end for s in members),
                spills_next_day=any(s.end.date() > display_date for s in members),
                day_seconds=sum(s.seconds for s in members),
            )
        )
    return rows


def attach_month_totals(rows: Sequence[DayRow]) -> List[DayRow]:
    """Copy the month total of each (doctor, specialty, section) onto its rows."""
    totals: Dict[tuple, int] = {}
    for row in rows:
        key = row.context.group_key
        totals[key] = totals.get(key, 0) + row.day_seconds
    return [replace(row, total_seconds=totals[row.context.group_key]) for row in rows]


def order_rows(rows: Iterable[DayRow]) -> List[DayRow]:
    return sorted(
        rows,
        key=lambda r: (
            r.context.last_name,
            r.context.first_name,
            r.context.doctor_id,
            r.context.specialty_id or 0,
            r.context.section_id or 0,
            r.display_day,
        ),
    )


def build_report_rows(
    contexts: Mapping[int, MonthContext],
    days: Iterable[DayAssignment],
    slots: Mapping[int, Mapping[int, SlotTimes]],
    year: int,
    month: int,
) -> List[DayRow]:
    instances = expand_assignments(contexts, days, slots, year, month)
    segments = [segment for instance in instances for segment in segment_shift(instance)]
    segments = clamp_segments(segments, year, month)
    rows = aggregate_day_rows(segments, year, month)
    return order_rows(attach_month_totals(rows))
