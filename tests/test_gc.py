"""Tests for reqcache.cache.gc -- deletion timers and cascade eviction."""

from __future__ import annotations

import asyncio

import pytest

from reqcache.cache.gc import GarbageCollector
from reqcache.cache.store import EntryStore


def _store_with_family() -> EntryStore:
    store = EntryStore()
    store.write("/users", [{"id": 1}, {"id": 2}])
    store.write("/users/1", {"id": 1})
    store.write("/users/2", {"id": 2})
    store.read("/users").dependent_keys = ["/users/1", "/users/2", "/users/3"]
    return store


class TestCollect:
    def test_cascades_to_unread_dependents(self) -> None:
        store = _store_with_family()
        store.read("/users/2").subscriber_count = 1

        evicted = GarbageCollector(store).collect("/users")

        assert evicted == ["/users", "/users/1"]
        assert "/users/2" in store

    def test_rechecks_subscribers_at_fire_time(self) -> None:
        store = _store_with_family()
        store.read("/users").subscriber_count = 1

        assert GarbageCollector(store).collect("/users") == []
        assert "/users" in store

    def test_missing_key(self) -> None:
        assert GarbageCollector(EntryStore()).collect("/nope") == []


class TestSchedule:
    def test_requires_running_loop(self) -> None:
        store = _store_with_family()
        assert GarbageCollector(store).schedule("/users") is False
        assert not store.read("/users").is_expiring

    @pytest.mark.asyncio
    async def test_absent_key(self) -> None:
        assert GarbageCollector(EntryStore()).schedule("/nope") is False

    @pytest.mark.asyncio
    async def test_timer_fires_after_grace_period(self) -> None:
        store = _store_with_family()
        collector = GarbageCollector(store, grace_period=0.05)

        assert collector.schedule("/users/1") is True
        assert store.read("/users/1").is_expiring
        await asyncio.sleep(0.02)
        assert "/users/1" in store
        await asyncio.sleep(0.06)
        assert "/users/1" not in store

    @pytest.mark.asyncio
    async def test_cancel(self) -> None:
        store = _store_with_family()
        collector = GarbageCollector(store, grace_period=0.02)
        collector.schedule("/users")
        collector.cancel("/users")

        await asyncio.sleep(0.05)
        assert "/users" in store
        assert not store.read("/users").is_expiring

    @pytest.mark.asyncio
    async def test_rearm_replaces_timer(self) -> None:
        store = _store_with_family()
        collector = GarbageCollector(store, grace_period=10)
        collector.schedule("/users/1")
        first = store.read("/users/1").deletion_timer

        collector.schedule("/users/1", delay=0.01)
        await asyncio.sleep(0.05)

        assert first.cancelled()
        assert "/users/1" not in store
