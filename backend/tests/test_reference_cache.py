import asyncio

import pytest

from clinic_scheduler.client.reference_cache import ReferenceDataCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class CountingLoader:
    def __init__(self, value="v", delay=0):
        self.calls = 0
        self.value = value
        self.delay = delay

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return f"{self.value}{self.calls}"


async def test_hit_until_ttl_expires():
    clock = FakeClock()
    cache = ReferenceDataCache(ttl=300, clock=clock)
    loader = CountingLoader()

    assert await cache.get("specialties", loader) == "v1"
    clock.now += 299
    assert await cache.get("specialties", loader) == "v1"
    assert loader.calls == 1

    clock.now += 1
    assert cache.peek("specialties") is None
    assert await cache.get("specialties", loader) == "v2"
    assert loader.calls == 2


async def test_invalidate_one_key_or_all():
    cache = ReferenceDataCache(clock=FakeClock())
    offices = CountingLoader("o")
    doctors = CountingLoader("d")
    await cache.get("offices", offices)
    await cache.get("doctors", doctors)

    cache.invalidate("offices")
    assert cache.peek("offices") is None
    assert cache.peek("doctors") == "d1"

    cache.invalidate()
    assert cache.peek("doctors") is None
    assert await cache.get("offices", offices) == "o2"
    assert await cache.get("doctors", doctors) == "d2"


async def test_concurrent_misses_share_one_load():
    cache = ReferenceDataCache(clock=FakeClock())
    loader = CountingLoader(delay=0.01)

    results = await asyncio.gather(*(cache.get("time-slots:1", loader) for _ in range(5)))

    assert results == ["v1"] * 5
    assert loader.calls == 1


async def test_failed_load_is_not_cached():
    cache = ReferenceDataCache(clock=FakeClock())

    async def broken():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await cache.get("offices", broken)
    assert cache.peek("offices") is None
    assert await cache.get("offices", CountingLoader()) == "v1"


async def test_load_started_before_invalidate_is_dropped():
    cache = ReferenceDataCache(clock=FakeClock())
    loader = CountingLoader(delay=0.01)

    task = asyncio.ensure_future(cache.get("doctors", loader))
    await asyncio.sleep(0)
    cache.invalidate("doctors")
    assert await task == "v1"
    assert cache.peek("doctors") is None


async def test_cancelled_load_hands_over_to_waiting_callers():
    cache = ReferenceDataCache(clock=FakeClock())
    loader = CountingLoader(delay=0.01)

    owner = asyncio.ensure_future(cache.get("specialties", loader))
    await asyncio.sleep(0)
    waiter = asyncio.ensure_future(cache.get("specialties", loader))
    await asyncio.sleep(0)
    owner.cancel()

    done, _ = await asyncio.wait({waiter}, timeout=1.0)
    assert waiter in done
    assert waiter.result() == "v2"
    assert owner.cancelled()
    assert loader.calls == 2
    assert cache.peek("specialties") == "v2"
