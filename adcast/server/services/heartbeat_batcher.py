"""
Device heartbeat batching.

Players publish ``{"android_id": ...}`` on ``device/sync`` every few seconds.
Writing each one would hammer the devices table, so heartbeats are collapsed
into a map of identity -> latest receipt time and written once per interval.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adcast.common.broker import QOS_AT_LEAST_ONCE, MessageBroker
from adcast.common.config import HeartbeatSettings, get_settings
from adcast.common.exceptions import HeartbeatWriteError
from adcast.common.logger import LoggerMixin
from adcast.common.utils import json_loads, utcnow
from adcast.models import Device
from adcast.server.middleware.metrics import record_heartbeat_flush


class HeartbeatBatcher(LoggerMixin):
    """
    Deduplicating heartbeat queue with a periodic flush.

    The flush timer only swaps the queue and schedules the writes as a
    separate task, so a slow database never delays the next interval.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        broker: MessageBroker | None = None,
        settings: HeartbeatSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.broker = broker
        self.settings = settings or get_settings().heartbeat
        self.clock = clock

        self._pending: dict[str, datetime] = {}
        self._lock = threading.Lock()
        self._loop_task: asyncio.Task[None] | None = None
        self._flush_tasks: set[asyncio.Task[int]] = set()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    async def start(self) -> None:
        """Subscribe to heartbeats and start the flush loop."""
        if self.broker is not None:
            await self.broker.subscribe(
                self.settings.topic, self.handle_message, qos=QOS_AT_LEAST_ONCE
            )
        self._loop_task = asyncio.create_task(self._run(), name="heartbeat-flush")
        self.logger.info(
            "Heartbeat batcher started",
            topic=self.settings.topic,
            interval_seconds=self.settings.flush_interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the loop, wait for in-flight writes and flush what remains."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        if self._flush_tasks:
            await asyncio.gather(*self._flush_tasks, return_exceptions=True)
        await self.flush()
        self.logger.info("Heartbeat batcher stopped")

    # ==================== Intake ====================

    async def handle_message(self, topic: str, payload: bytes) -> None:
        """Broker handler for ``device/sync``."""
        try:
            data = json_loads(payload)
        except ValueError as e:
            self.logger.warning("Malformed heartbeat payload", topic=topic, error=str(e))
            return

        android_id = data.get("android_id") if isinstance(data, dict) else None
        if not android_id or not isinstance(android_id, str):
            self.logger.warning("Heartbeat without android_id", topic=topic)
            return
        self.record(android_id)

    def record(self, android_id: str, received_at: datetime | None = None) -> None:
        """Remember the latest heartbeat time of a device."""
        with self._lock:
            self._pending[android_id] = received_at or self.clock()

    def drain(self) -> dict[str, datetime]:
        """Atomically take the current queue, leaving an empty one."""
        with self._lock:
            batch, self._pending = self._pending, {}
        return batch

    # ==================== Flush ====================

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.settings.flush_interval_seconds)
            batch = self.drain()
            if not batch:
                continue
            task = asyncio.create_task(self.flush(batch))
            self._flush_tasks.add(task)
            task.add_done_callback(self._flush_tasks.discard)

    async def flush(self, batch: dict[str, datetime] | None = None) -> int:
        """
        Write one ``last_synced`` update per device.

        Each device is written in its own session; a failing row is logged
        and never affects the others.

        Returns:
            Number of devices written successfully.
        """
        if batch is None:
            batch = self.drain()
        if not batch:
            return 0

        identities = list(batch)
        results = await asyncio.gather(
            *(self._write(android_id, batch[android_id]) for android_id in identities),
            return_exceptions=True,
        )

        failures = 0
        for android_id, result in zip(identities, results):
            if isinstance(result, BaseException):
                failures += 1
                self.logger.error(
                    "Heartbeat write failed",
                    android_id=android_id,
                    error=str(result),
                    error_type=result.__class__.__name__,
                )

        record_heartbeat_flush(len(identities), failures)
        self.logger.debug(
            "Heartbeat flush completed",
            devices=len(identities),
            failures=failures,
        )
        return len(identities) - failures

    async def _write(self, android_id: str, seen_at: datetime) -> None:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await session.execute(
                        update(Device)
                        .where(Device.android_id == android_id)
                        .values(last_synced=seen_at)
                    )
        except Exception as e:
            raise HeartbeatWriteError(
                f"last_synced update failed for {android_id}", {"android_id": android_id}
            ) from e
