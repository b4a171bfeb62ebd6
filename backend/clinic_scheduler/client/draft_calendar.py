"""
Local draft of one calendar month with debounced autosave.

Edits are kept in memory and pushed to the API once the user has been idle
for ``DEBOUNCE_SECONDS``. A failed save keeps the draft dirty and is retried
once after ``RETRY_SECONDS``. Saves are last-writer-wins, there is no version
check against the server.

    idle -> pending_save -> saving -> saved
                                   -> error_pending_retry -> saving ...
"""
import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.8
RETRY_SECONDS = 2.0


class DraftState(str, enum.Enum):
    IDLE = "idle"
    PENDING_SAVE = "pending_save"
    SAVING = "saving"
    SAVED = "saved"
    ERROR_PENDING_RETRY = "error_pending_retry"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs an async callback after a delay; the returned handle cancels it."""
    def call_later(self, delay: float, callback: Callable[[], Awaitable[None]]) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler on the running asyncio loop."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def call_later(self, delay: float, callback: Callable[[], Awaitable[None]]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, self._spawn, callback)

    def _spawn(self, callback) -> None:
        task = asyncio.ensure_future(callback())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


class CalendarApi(Protocol):
    async def update_month(self, month_id: int, theme_config: Optional[dict] = None, status: Optional[str] = None) -> dict: ...
    async def put_day(self, month_id: int, day: int, time_slot_ids: List[int], notes: Optional[str] = None) -> dict: ...


@dataclass
class DayDraft:
    time_slot_ids: List[int] = field(default_factory=list)
    notes: Optional[str] = None


class DraftCalendar:

    def __init__(
        self,
        api: CalendarApi,
        month_id: int,
        scheduler: Optional[Scheduler] = None,
        theme: Optional[dict] = None,
        days: Optional[Dict[int, DayDraft]] = None,
        debounce: float = DEBOUNCE_SECONDS,
        retry_delay: float = RETRY_SECONDS,
    ):
        self.api = api
        self.month_id = month_id
        self.scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        self.theme: Dict[str, Any] = dict(theme or {})
        self.days: Dict[int, DayDraft] = dict(days or {})
        self.debounce = debounce
        self.retry_delay = retry_delay

        self.state = DraftState.IDLE
        self.last_error: Optional[Exception] = None
        self._dirty_days: Set[int] = set()
        self._theme_dirty = False
        self._timer: Optional[TimerHandle] = None
        self._retry_used = False

    @classmethod
    def from_month(cls, api: CalendarApi, month: dict, scheduler: Optional[Scheduler] = None, **kwargs) -> "DraftCalendar":
        """Build a clean draft from a month as returned by GET /api/calendar/months/{id}."""
        days = {
            d["day"]: DayDraft(time_slot_ids=list(d.get("time_slot_ids") or []), notes=d.get("notes"))
            for d in month.get("days") or []
        }
        return cls(api, month["id"], scheduler, theme=month.get("theme_config"), days=days, **kwargs)

    @property
    def is_dirty(self) -> bool:
        return self._theme_dirty or bool(self._dirty_days)

    @property
    def dirty_days(self) -> List[int]:
        return sorted(self._dirty_days)

    # ====== Edits ======
    def update_day(self, day: int, time_slot_ids: List[int], notes: Optional[str] = None) -> None:
        self.days[day] = DayDraft(time_slot_ids=list(time_slot_ids), notes=notes)
        self._dirty_days.add(day)
        self._schedule_save()

    def clear_day(self, day: int) -> None:
        self.update_day(day, [])

    def update_theme(self, **changes) -> None:
        self.theme.update(changes)
        self._theme_dirty = True
        self._schedule_save()

    # ====== Saving ======
    def _arm(self, delay: float) -> None:
        self._cancel_timer()
        self._timer = self.scheduler.call_later(delay, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_save(self) -> None:
        # a fresh edit earns a fresh retry budget
        self._retry_used = False
        if self.state == DraftState.SAVING:
            # picked up when the running save finishes
            return
        self.state = DraftState.PENDING_SAVE
        self._arm(self.debounce)

    async def _on_timer(self) -> None:
        self._timer = None
        if not self.is_dirty:
            if self.state == DraftState.ERROR_PENDING_RETRY:
                self.state = DraftState.SAVED
            return
        await self.save()

    async def flush(self) -> None:
        """Save now instead of waiting for the timer."""
        self._cancel_timer()
        if self.is_dirty and self.state != DraftState.SAVING:
            await self.save()

    async def save(self) -> bool:
        if self.state == DraftState.SAVING:
            return False
        self._cancel_timer()
        self.state = DraftState.SAVING

        save_theme = self._theme_dirty
        theme = dict(self.theme)
        pending = {day: self.days[day] for day in sorted(self._dirty_days)}
        self._theme_dirty = False
        self._dirty_days.clear()

        try:
            if save_theme:
                await self.api.update_month(self.month_id, theme_config=theme)
                save_theme = False
            for day in list(pending):
                draft = pending[day]
                await self.api.put_day(self.month_id, day, draft.time_slot_ids, draft.notes)
                del pending[day]
        except Exception as e:
            # whatever did not reach the server is dirty again
            self._theme_dirty = self._theme_dirty or save_theme
            self._dirty_days.update(pending)
            self.last_error = e
            self.state = DraftState.ERROR_PENDING_RETRY
            if not self._retry_used:
                self._retry_used = True
                self._arm(self.retry_delay)
                logger.warning(f"Autosave of month {self.month_id} failed, retrying in {self.retry_delay}s: {str(e)}")
            else:
                logger.error(f"Autosave of month {self.month_id} failed again: {str(e)}")
            return False

        self.last_error = None
        if self.is_dirty:
            # edits arrived while saving
            self.state = DraftState.PENDING_SAVE
            self._arm(self.debounce)
        else:
            self.state = DraftState.SAVED
            self._retry_used = False
        logger.info(f"Autosaved month {self.month_id}")
        return True
