from datetime import date, datetime, time

from clinic_scheduler.services.shift_report import (
    DayAssignment,
    MonthContext,
    SlotTimes,
    build_report_rows,
    clamp_display_day,
    effective_date,
    shift_interval,
    split_by_calendar_day,
    split_full_name,
)


def _context(month_id=1, doctor_id=10, first="Luis", last="Rojas Diaz", specialty_id=3, section_id=2):
    return MonthContext(
        month_id=month_id,
        doctor_id=doctor_id,
        first_name=first,
        last_name=last,
        profession="Medico",
        specialty_id=specialty_id,
        section_id=section_id,
    )


def _rows(assignments, slots, year=2025, month=6, contexts=None):
    contexts = contexts or {1: _context()}
    days = [DayAssignment(month_id=m, day=d, time_slot_ids=tuple(ids)) for m, d, ids in assignments]
    return build_report_rows(contexts, days, slots, year, month)


def test_night_shift_spills_into_next_day():
    slots = {1: {7: SlotTimes(7, time(22, 0), time(6, 0))}}
    rows = _rows([(1, 15, [7])], slots)

    assert [r.display_day for r in rows] == [15, 16]
    first, second = rows
    assert first.first_start == datetime(2025, 6, 15, 22, 0)
    assert first.last_end == datetime(2025, 6, 16, 0, 0)
    assert first.spills_next_day is True
    assert first.day_hours == 2.0
    assert second.first_start == datetime(2025, 6, 16, 0, 0)
    assert second.last_end == datetime(2025, 6, 16, 6, 0)
    assert second.spills_next_day is False
    assert second.day_hours == 6.0
    assert first.day_hours + second.day_hours == 8.0
    assert first.total_hours == second.total_hours == 8.0


def test_day_hours_sum_to_month_total():
    slots = {
        1: {
            1: SlotTimes(1, time(8, 0), time(14, 0)),
            2: SlotTimes(2, time(14, 0), time(20, 0)),
            3: SlotTimes(3, time(20, 0), time(8, 0)),
        }
    }
    rows = _rows([(1, 1, [1, 2]), (1, 2, [3]), (1, 10, [1])], slots)

    assert sum(r.day_seconds for r in rows) == rows[0].total_seconds
    assert rows[0].total_hours == 12 + 12 + 6
    assert all(1 <= r.display_day <= 30 for r in rows)


def test_overlapping_slots_add_up():
    slots = {1: {1: SlotTimes(1, time(8, 0), time(14, 0)), 2: SlotTimes(2, time(12, 0), time(16, 0))}}
    rows = _rows([(1, 5, [1, 2])], slots)

    assert len(rows) == 1
    assert rows[0].day_hours == 10.0
    assert rows[0].first_start.time() == time(8, 0)
    assert rows[0].last_end.time() == time(16, 0)


def test_equal_start_and_end_is_a_full_day():
    slots = {1: {1: SlotTimes(1, time(8, 0), time(8, 0))}}
    rows = _rows([(1, 3, [1])], slots)

    assert sum(r.day_hours for r in rows) == 24.0
    assert [r.display_day for r in rows] == [3, 4]


def test_spill_past_month_end_stays_on_last_day():
    slots = {1: {1: SlotTimes(1, time(20, 0), time(8, 0))}}
    rows = _rows([(1, 30, [1])], slots)

    assert len(rows) == 1
    assert rows[0].display_day == 30
    assert rows[0].day_hours == 12.0
    assert rows[0].spills_next_day is True


def test_day_past_month_end_uses_last_day():
    slots = {1: {1: SlotTimes(1, time(8, 0), time(12, 0))}}
    rows = _rows([(1, 31, [1])], slots, year=2025, month=2)

    assert [r.display_day for r in rows] == [28]
    assert effective_date(2025, 2, 31) == date(2025, 2, 28)
    assert effective_date(2024, 2, 29) == date(2024, 2, 29)


def test_slot_ids_resolve_only_inside_their_month():
    contexts = {1: _context(month_id=1), 2: _context(month_id=2, doctor_id=20, last="Zapata")}
    slots = {
        1: {1: SlotTimes(1, time(8, 0), time(12, 0))},
        2: {2: SlotTimes(2, time(8, 0), time(10, 0))},
    }
    rows = _rows([(1, 4, [1, 2, 99]), (2, 4, [2])], slots, contexts=contexts)

    by_doctor = {r.context.doctor_id: r for r in rows}
    assert by_doctor[10].day_hours == 4.0
    assert by_doctor[20].day_hours == 2.0


def test_rows_are_ordered_by_name_then_day():
    contexts = {
        1: _context(month_id=1, doctor_id=1, first="Ana", last="Zegarra"),
        2: _context(month_id=2, doctor_id=2, first="Beto", last="Alvarez"),
    }
    slots = {1: {1: SlotTimes(1, time(8, 0), time(9, 0))}, 2: {2: SlotTimes(2, time(8, 0), time(9, 0))}}
    rows = _rows([(1, 9, [1]), (1, 2, [1]), (2, 5, [2])], slots, contexts=contexts)

    assert [(r.context.last_name, r.display_day) for r in rows] == [("Alvarez", 5), ("Zegarra", 2), ("Zegarra", 9)]


def test_empty_input_gives_no_rows():
    assert _rows([], {}) == []
    assert _rows([(1, 4, [])], {1: {}}) == []


def test_shift_interval_and_split():
    start, end = shift_interval(date(2025, 6, 15), time(22, 0), time(6, 0))
    assert (start, end) == (datetime(2025, 6, 15, 22, 0), datetime(2025, 6, 16, 6, 0))
    assert split_by_calendar_day(start, end) == [
        (datetime(2025, 6, 15, 22, 0), datetime(2025, 6, 16, 0, 0)),
        (datetime(2025, 6, 16, 0, 0), datetime(2025, 6, 16, 6, 0)),
    ]
    assert split_by_calendar_day(datetime(2025, 6, 1, 8), datetime(2025, 6, 1, 12)) == [
        (datetime(2025, 6, 1, 8), datetime(2025, 6, 1, 12))
    ]


def test_clamp_display_day():
    assert clamp_display_day(15, 1, 30) == 16
    assert clamp_display_day(30, 1, 30) == 30
    assert clamp_display_day(31, 0, 28) == 28
    assert clamp_display_day(0, 0, 30) == 1


def test_split_full_name():
    assert split_full_name("Ana Maria Perez") == ("Ana", "Maria Perez")
    assert split_full_name("  Cher ") == ("Cher", "Cher")
    assert split_full_name("") == ("", "")
