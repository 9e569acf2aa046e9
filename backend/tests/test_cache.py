"""
Tests for the event listing cache, backed by an in-memory stand-in for Redis.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient
from prometheus_client import REGISTRY

from conftest import TestSessionLocal
from app.services import cache_service
from app.services.capacity_service import get_available_seats


class InMemoryRedis:
    """Dict-backed replacement for the redis.asyncio calls the cache makes."""

    def __init__(self):
        self.store = {}
        self.on_invalidate = None

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value

    async def delete(self, key):
        self.store.pop(key, None)

    async def scan_iter(self, match="*", count=None):
        if self.on_invalidate:
            await self.on_invalidate()
        prefix = match.rstrip("*")
        for key in list(self.store):
            if key.startswith(prefix):
                yield key

    async def info(self, section=None):
        return {"keyspace_hits": 0, "keyspace_misses": 0}


@pytest_asyncio.fixture
async def redis_cache(monkeypatch) -> InMemoryRedis:
    fake = InMemoryRedis()

    async def get_fake_redis():
        return fake

    monkeypatch.setattr(cache_service, "get_redis", get_fake_redis)
    return fake


def cache_samples(operation: str, result: str) -> float:
    value = REGISTRY.get_sample_value(
        "cache_operations_total", {"operation": operation, "result": result}
    )
    return value or 0.0


@pytest.mark.asyncio
async def test_listing_served_from_cache(client: AsyncClient, redis_cache, test_event):
    first = await client.get("/api/v1/events/")
    assert first.json()["cached"] is False

    second = await client.get("/api/v1/events/")
    assert second.json()["cached"] is True
    assert second.json()["events"][0]["available_seats"] == 100


@pytest.mark.asyncio
async def test_listing_reflects_registration_immediately(
    client: AsyncClient, redis_cache, auth_headers, test_event
):
    await client.get("/api/v1/events/")
    assert redis_cache.store

    response = await client.post(f"/api/v1/registrations/{test_event.id}", headers=auth_headers)
    assert response.status_code == 201
    assert not redis_cache.store

    listing = (await client.get("/api/v1/events/")).json()
    assert listing["cached"] is False
    assert listing["events"][0]["available_seats"] == 99


@pytest.mark.asyncio
async def test_invalidation_happens_after_commit(client: AsyncClient, redis_cache, auth_headers, test_event):
    """A listing rebuilt at invalidation time must already see the write."""
    event_id = test_event.id
    seen = []

    async def read_seats_from_another_session():
        async with TestSessionLocal() as session:
            seen.append(await get_available_seats(session, event_id))

    redis_cache.on_invalidate = read_seats_from_another_session

    registration = (await client.post(f"/api/v1/registrations/{event_id}", headers=auth_headers)).json()
    await client.put(f"/api/v1/registrations/{registration['id']}/cancel", headers=auth_headers)

    assert seen == [99, 100]


@pytest.mark.asyncio
async def test_invalidation_after_event_update_sees_new_total(
    client: AsyncClient, redis_cache, admin_headers, test_event
):
    event_id = test_event.id
    seen = []

    async def read_seats_from_another_session():
        async with TestSessionLocal() as session:
            seen.append(await get_available_seats(session, event_id))

    redis_cache.on_invalidate = read_seats_from_another_session

    response = await client.patch(f"/api/v1/events/{event_id}", json={"total_seats": 50}, headers=admin_headers)
    assert response.status_code == 200
    assert seen == [50]


@pytest.mark.asyncio
async def test_cache_metrics_keep_writes_apart_from_hits(client: AsyncClient, redis_cache, test_event):
    stored_before = cache_samples("set", "stored")
    hits_before = cache_samples("get", "hit")
    misses_before = cache_samples("get", "miss")
    set_hits_before = cache_samples("set", "hit")

    await client.get("/api/v1/events/")
    await client.get("/api/v1/events/")

    assert cache_samples("set", "stored") == stored_before + 1
    assert cache_samples("get", "miss") == misses_before + 1
    assert cache_samples("get", "hit") == hits_before + 1
    assert cache_samples("set", "hit") == set_hits_before
