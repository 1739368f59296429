from __future__ import annotations

import asyncio
import datetime as dt
import json

import pytest

from app.models.enums import MutationEvent
from app.models.schemas import ReceiptFilters
from app.services.cache import ReportCache, filters_digest

from fakes import BrokenRedis, FakeRedis


def _identity(value):
    return value


def test_filters_digest_ignores_set_order():
    a = ReceiptFilters(category_ids={3, 1, 2}, start_date=dt.date(2024, 1, 1))
    b = ReceiptFilters(category_ids={2, 3, 1}, start_date=dt.date(2024, 1, 1))
    assert filters_digest(a) == filters_digest(b)
    assert filters_digest(a) != filters_digest(ReceiptFilters())


def test_cache_without_client_is_disabled():
    assert ReportCache().enabled is False


@pytest.mark.asyncio
async def test_passthrough_always_computes():
    cache = ReportCache()
    calls = []

    async def compute():
        calls.append(1)
        return {"v": len(calls)}

    assert await cache.get_or_compute("k", compute, _identity, _identity) == {"v": 1}
    assert await cache.get_or_compute("k", compute, _identity, _identity) == {"v": 2}


@pytest.mark.asyncio
async def test_get_or_compute_stores_with_ttl():
    client = FakeRedis()
    cache = ReportCache(client=client, ttl_seconds=7)

    async def compute():
        return {"total": "10.00"}

    await cache.get_or_compute("hb:summary:1:x", compute, _identity, _identity)
    assert json.loads(client.store["hb:summary:1:x"]) == {"total": "10.00"}
    assert client.ttls["hb:summary:1:x"] == 7


@pytest.mark.asyncio
async def test_concurrent_requests_are_coalesced():
    cache = ReportCache(client=FakeRedis())
    started = asyncio.Event()
    release = asyncio.Event()
    calls = []

    async def compute():
        calls.append(1)
        started.set()
        await release.wait()
        return [1, 2, 3]

    first = asyncio.create_task(cache.get_or_compute("k", compute, _identity, _identity))
    await started.wait()
    second = asyncio.create_task(cache.get_or_compute("k", compute, _identity, _identity))
    await asyncio.sleep(0)
    release.set()
    assert await first == [1, 2, 3]
    assert await second == [1, 2, 3]
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_errors_propagate_and_nothing_is_stored():
    client = FakeRedis()
    cache = ReportCache(client=client)

    async def compute():
        raise RuntimeError("db down")

    with pytest.raises(RuntimeError):
        await cache.get_or_compute("k", compute, _identity, _identity)
    assert client.store == {}
    assert cache._inflight == {}


@pytest.mark.asyncio
async def test_redis_failures_fall_back_to_compute():
    cache = ReportCache(client=BrokenRedis())

    async def compute():
        return 42

    assert await cache.get_or_compute("k", compute, _identity, _identity) == 42


@pytest.mark.asyncio
async def test_household_events_drop_only_that_household():
    client = FakeRedis()
    cache = ReportCache(client=client)
    for key in ("hb:summary:1:a", "hb:summary:1:b", "hb:summary:12:a", "hb:memberships:1"):
        client.store[key] = "{}"

    await cache.handle_event(MutationEvent.RECEIPT_CREATED, household_id=1)
    assert sorted(client.store) == ["hb:memberships:1", "hb:summary:12:a"]


@pytest.mark.asyncio
async def test_membership_event_drops_user_memberships():
    client = FakeRedis()
    cache = ReportCache(client=client)
    client.store.update({"hb:memberships:5": "[]", "hb:memberships:6": "[]", "hb:summary:1:a": "{}"})

    await cache.handle_event(MutationEvent.MEMBERSHIP_CHANGED, household_id=1, user_ids=[5])
    assert sorted(client.store) == ["hb:memberships:6", "hb:summary:1:a"]
