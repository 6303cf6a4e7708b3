"""
Tests for heartbeat batching.
"""

import asyncio
from datetime import datetime

import pytest
from sqlalchemy import select

from adcast.common.config import HeartbeatSettings
from adcast.common.exceptions import HeartbeatWriteError
from adcast.models import Device
from adcast.server.services.heartbeat_batcher import HeartbeatBatcher

T1 = datetime(2024, 1, 1, 12, 0, 0)
T2 = datetime(2024, 1, 1, 12, 0, 30)


async def _last_synced(session_factory) -> dict[str, datetime | None]:
    async with session_factory() as session:
        result = await session.execute(select(Device.android_id, Device.last_synced))
        return dict(result.all())


@pytest.fixture
def batcher(session_factory, broker) -> HeartbeatBatcher:
    return HeartbeatBatcher(session_factory, broker, HeartbeatSettings(flush_interval_seconds=3600))


class TestIntake:
    """Queue behaviour."""

    def test_duplicates_keep_latest(self, batcher) -> None:
        batcher.record("android-1-0", T1)
        batcher.record("android-1-0", T2)
        batcher.record("android-1-1", T1)

        assert batcher.pending_count == 2
        assert batcher.drain() == {"android-1-0": T2, "android-1-1": T1}
        assert batcher.pending_count == 0

    @pytest.mark.asyncio
    async def test_broker_messages(self, batcher, broker) -> None:
        await batcher.start()
        try:
            await broker.deliver("device/sync", b'{"android_id": "android-1-0"}')
            await broker.deliver("device/sync", b"not json")
            await broker.deliver("device/sync", b'{"other": 1}')
            await broker.deliver("device/sync", b"[1, 2]")

            assert list(batcher.drain()) == ["android-1-0"]
        finally:
            await batcher.stop()


class TestFlush:
    """Database writes."""

    @pytest.mark.asyncio
    async def test_one_write_per_device_with_latest_time(
        self, session_factory, seeded, batcher, monkeypatch
    ) -> None:
        writes: list[tuple[str, datetime]] = []
        original = batcher._write

        async def counting_write(android_id: str, seen_at: datetime) -> None:
            writes.append((android_id, seen_at))
            await original(android_id, seen_at)

        monkeypatch.setattr(batcher, "_write", counting_write)

        batcher.record("android-1-0", T1)
        batcher.record("android-1-0", T2)
        batcher.record("android-1-0", T1.replace(second=15))
        written = await batcher.flush()

        assert written == 1
        assert writes == [("android-1-0", T1.replace(second=15))]
        synced = await _last_synced(session_factory)
        assert synced["android-1-0"] == T1.replace(second=15)
        assert synced["android-1-1"] is None

    @pytest.mark.asyncio
    async def test_failed_row_does_not_affect_others(
        self, session_factory, seeded, batcher, monkeypatch
    ) -> None:
        original = batcher._write

        async def flaky_write(android_id: str, seen_at: datetime) -> None:
            if android_id == "android-1-1":
                raise HeartbeatWriteError("boom", {"android_id": android_id})
            await original(android_id, seen_at)

        monkeypatch.setattr(batcher, "_write", flaky_write)

        for i in range(3):
            batcher.record(f"android-1-{i}", T1)
        written = await batcher.flush()

        assert written == 2
        synced = await _last_synced(session_factory)
        assert synced["android-1-0"] == T1
        assert synced["android-1-1"] is None
        assert synced["android-1-2"] == T1

    @pytest.mark.asyncio
    async def test_unknown_device_is_harmless(self, session_factory, seeded, batcher) -> None:
        batcher.record("android-unknown", T1)
        assert await batcher.flush() == 1

    @pytest.mark.asyncio
    async def test_empty_flush(self, session_factory, batcher) -> None:
        assert await batcher.flush() == 0

    @pytest.mark.asyncio
    async def test_periodic_flush(self, session_factory, seeded, broker) -> None:
        batcher = HeartbeatBatcher(
            session_factory, broker, HeartbeatSettings(flush_interval_seconds=0.05)
        )
        await batcher.start()
        try:
            batcher.record("android-2-0", T1)
            for _ in range(100):
                await asyncio.sleep(0.02)
                if (await _last_synced(session_factory))["android-2-0"] == T1:
                    break
            assert (await _last_synced(session_factory))["android-2-0"] == T1
        finally:
            await batcher.stop()

    @pytest.mark.asyncio
    async def test_stop_flushes_remaining(self, session_factory, seeded, batcher) -> None:
        await batcher.start()
        batcher.record("android-2-1", T2)

        await batcher.stop()

        assert (await _last_synced(session_factory))["android-2-1"] == T2
