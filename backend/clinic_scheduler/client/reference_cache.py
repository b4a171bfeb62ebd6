"""In-memory cache for rarely-changing reference lists (specialties, offices, doctors, slots)."""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class ReferenceDataCache:
    """
    Keyed cache with a per-entry TTL.

    ``clock`` returns seconds and defaults to ``time.monotonic``; tests pass a
    fake one. Concurrent ``get`` calls for the same missing key share one load;
    if the caller running that load is cancelled, the waiters load again.
    """

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._loading: Dict[str, asyncio.Future] = {}
        # bumped by invalidate so loads started before it are not stored
        self._generation = 0

    def peek(self, key: str) -> Optional[Any]:
        """Fresh cached value or None, never loads."""
        entry = self._entries.get(key)
        if entry is None or entry.expires_at <= self.clock():
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self.clock() + (self.ttl if ttl is None else ttl))

    async def get(self, key: str, loader: Callable[[], Awaitable[Any]], ttl: Optional[float] = None) -> Any:
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at > self.clock():
            return entry.value

        pending = self._loading.get(key)
        if pending is not None:
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
                # the owning caller was cancelled mid-load; start a fresh one
                return await self.get(key, loader, ttl)

        generation = self._generation
        future = asyncio.get_running_loop().create_future()
        self._loading[key] = future
        try:
            value = await loader()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # retrieve so an unawaited failure is not reported by the loop
            future.exception()
            raise
        else:
            if generation == self._generation:
                self.set(key, value, ttl)
            future.set_result(value)
            logger.debug(f"cache load {key}")
            return value
        finally:
            self._loading.pop(key, None)

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything when ``key`` is None."""
        self._generation += 1
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
