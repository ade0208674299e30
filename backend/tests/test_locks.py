"""
Tests for per-key asyncio locks.
"""

import asyncio

import pytest

from shared.infrastructure.locks import KeyedLockManager


class TestKeyedLockManager:

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLockManager()
        events = []

        async def worker(name):
            async with locks.hold("MP1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        locks = KeyedLockManager()
        inside = asyncio.Event()
        released = asyncio.Event()

        async def holder():
            async with locks.hold("MP1"):
                inside.set()
                await released.wait()

        task = asyncio.create_task(holder())
        await inside.wait()

        async with locks.hold("MP2"):
            assert locks.is_locked("MP1")
            assert locks.is_locked("MP2")

        released.set()
        await task

    @pytest.mark.asyncio
    async def test_entries_are_dropped_when_released(self):
        locks = KeyedLockManager()

        async with locks.hold("MP1"):
            assert locks.lock_count == 1

        assert locks.lock_count == 0
        assert locks.acquisitions_total == 1

    @pytest.mark.asyncio
    async def test_released_on_exception(self):
        locks = KeyedLockManager()

        with pytest.raises(RuntimeError):
            async with locks.hold("MP1"):
                raise RuntimeError("boom")

        assert not locks.is_locked("MP1")
        assert locks.get_stats() == {"active_keys": 0, "acquisitions_total": 1}
