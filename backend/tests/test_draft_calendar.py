import pytest

from clinic_scheduler.client.api_client import ApiClientError
from clinic_scheduler.client.draft_calendar import DraftCalendar, DraftState


class ManualTimer:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when a test calls advance()."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def call_later(self, delay, callback):
        timer = ManualTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]

    async def advance(self, seconds):
        self.now += seconds
        while True:
            due = [t for t in self.pending if t.due <= self.now]
            if not due:
                return
            timer = min(due, key=lambda t: t.due)
            timer.cancelled = True
            await timer.callback()


class FakeApi:
    def __init__(self):
        self.calls = []
        self.failures = 0
        self.on_put_day = None

    async def update_month(self, month_id, theme_config=None, status=None):
        self._maybe_fail()
        self.calls.append(("theme", month_id, theme_config))
        return {}

    async def put_day(self, month_id, day, time_slot_ids, notes=None):
        self._maybe_fail()
        self.calls.append(("day", month_id, day, list(time_slot_ids)))
        if self.on_put_day is not None:
            hook, self.on_put_day = self.on_put_day, None
            hook()
        return {}

    def _maybe_fail(self):
        if self.failures:
            self.failures -= 1
            raise ApiClientError(500, "Error al guardar el día")


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def draft(api, scheduler):
    month = {"id": 5, "theme_config": {"accent": "#111111"}, "days": [{"day": 1, "time_slot_ids": [3], "notes": None}]}
    return DraftCalendar.from_month(api, month, scheduler)


def test_loaded_draft_is_clean(draft):
    assert draft.state == DraftState.IDLE
    assert not draft.is_dirty
    assert draft.days[1].time_slot_ids == [3]
    assert draft.theme == {"accent": "#111111"}


async def test_edits_are_debounced(draft, api, scheduler):
    draft.update_day(2, [3])
    await scheduler.advance(0.5)
    draft.update_day(3, [4])
    assert draft.state == DraftState.PENDING_SAVE

    await scheduler.advance(0.75)
    assert api.calls == []

    await scheduler.advance(0.25)
    assert api.calls == [("day", 5, 2, [3]), ("day", 5, 3, [4])]
    assert draft.state == DraftState.SAVED
    assert not draft.is_dirty


async def test_theme_is_saved_before_days(draft, api, scheduler):
    draft.update_day(4, [1, 2])
    draft.update_theme(accent="#222222")
    await scheduler.advance(0.8)

    assert api.calls[0] == ("theme", 5, {"accent": "#222222"})
    assert api.calls[1] == ("day", 5, 4, [1, 2])


async def test_only_days_modified_since_last_save_are_sent(draft, api, scheduler):
    draft.update_day(2, [3])
    await scheduler.advance(0.8)
    draft.clear_day(1)
    await scheduler.advance(1.0)

    assert api.calls == [("day", 5, 2, [3]), ("day", 5, 1, [])]


async def test_failure_retries_once_after_delay(draft, api, scheduler):
    api.failures = 1
    draft.update_day(2, [3])
    await scheduler.advance(0.8)

    assert draft.state == DraftState.ERROR_PENDING_RETRY
    assert draft.is_dirty
    assert isinstance(draft.last_error, ApiClientError)

    await scheduler.advance(1.9)
    assert api.calls == []
    await scheduler.advance(0.2)
    assert api.calls == [("day", 5, 2, [3])]
    assert draft.state == DraftState.SAVED
    assert draft.last_error is None


async def test_second_failure_does_not_retry_again(draft, api, scheduler):
    api.failures = 2
    draft.update_day(2, [3])
    await scheduler.advance(0.8)
    await scheduler.advance(2.5)

    assert draft.state == DraftState.ERROR_PENDING_RETRY
    assert draft.is_dirty
    assert scheduler.pending == []

    # a new edit arms the debounce again
    draft.update_day(6, [1])
    await scheduler.advance(0.8)
    assert draft.state == DraftState.SAVED
    assert [c[2] for c in api.calls] == [2, 6]


async def test_edit_during_save_is_saved_next(draft, api, scheduler):
    api.on_put_day = lambda: draft.update_day(9, [7])
    draft.update_day(2, [3])
    await scheduler.advance(0.8)

    assert draft.state == DraftState.PENDING_SAVE
    assert draft.dirty_days == [9]

    await scheduler.advance(1.0)
    assert api.calls == [("day", 5, 2, [3]), ("day", 5, 9, [7])]
    assert draft.state == DraftState.SAVED


async def test_flush_saves_immediately(draft, api, scheduler):
    draft.update_day(2, [3])
    await draft.flush()

    assert api.calls == [("day", 5, 2, [3])]
    assert scheduler.pending == []
    assert draft.state == DraftState.SAVED
