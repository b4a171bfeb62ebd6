from datetime import time

import pytest

from clinic_scheduler.services.conflict_service import slot_minutes, slots_overlap


def test_slot_minutes_overnight():
    assert slot_minutes(time(8, 0), time(14, 0)) == (480, 840)
    assert slot_minutes(time(22, 0), time(6, 0)) == (1320, 1800)


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ((time(8, 0), time(14, 0)), (time(14, 0), time(20, 0)), False),
        ((time(8, 0), time(14, 0)), (time(13, 0), time(15, 0)), True),
        ((time(22, 0), time(6, 0)), (time(5, 0), time(9, 0)), True),
        ((time(22, 0), time(6, 0)), (time(6, 0), time(12, 0)), False),
        ((time(22, 0), time(6, 0)), (time(23, 0), time(1, 0)), True),
        ((time(20, 0), time(22, 0)), (time(22, 0), time(6, 0)), False),
    ],
)
def test_slots_overlap(a, b, expected):
    assert slots_overlap(*a, *b) is expected
    assert slots_overlap(*b, *a) is expected
