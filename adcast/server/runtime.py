"""
Long-lived sync runtime.

One instance per process, built in the FastAPI lifespan and kept on
``app.state.runtime``. It owns the broker connection, the heartbeat batcher
and the daily push scheduler, and wires the request-scoped services to them.
"""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adcast.common.broker import MessageBroker, MqttBroker
from adcast.common.config import Settings, get_settings
from adcast.common.logger import get_logger
from adcast.server.services.daily_push import create_daily_push_scheduler
from adcast.server.services.heartbeat_batcher import HeartbeatBatcher
from adcast.server.services.impression_aggregator import DeviceCounter, ImpressionAggregator
from adcast.server.services.playlist_assembler import PlaylistAssembler
from adcast.server.services.push_broadcaster import PushBroadcaster
from adcast.server.services.schedule_service import ScheduleService
from adcast.server.services.url_resolver import UrlResolver, create_url_resolver

logger = get_logger(__name__)


class SyncRuntime:
    """Container for the broker-bound services."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        broker: MessageBroker,
        url_resolver: UrlResolver,
        settings: Settings | None = None,
        device_counter: DeviceCounter | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.broker = broker

        self.assembler = PlaylistAssembler(
            session_factory,
            url_resolver,
            push_settings=self.settings.push,
            storage_settings=self.settings.storage,
        )
        self.broadcaster = PushBroadcaster(
            session_factory,
            self.assembler,
            broker,
            settings=self.settings.push,
            broker_settings=self.settings.broker,
        )
        self.heartbeats = HeartbeatBatcher(session_factory, broker, self.settings.heartbeat)
        self.aggregator = ImpressionAggregator(
            session_factory, self.settings, device_counter=device_counter
        )
        self.schedules = ScheduleService(
            session_factory, self.aggregator, self.broadcaster, self.settings
        )
        self.scheduler: AsyncIOScheduler | None = None

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
    ) -> "SyncRuntime":
        """Production wiring: MQTT broker and the configured URL resolver."""
        settings = settings or get_settings()
        return cls(
            session_factory,
            MqttBroker(settings.broker),
            create_url_resolver(settings.storage),
            settings,
        )

    async def start(self) -> None:
        """Connect the broker, start heartbeats and the daily push."""
        await self.broker.connect()
        await self.heartbeats.start()

        if self.settings.push.daily_push_enabled:
            self.scheduler = create_daily_push_scheduler(self.broadcaster, self.settings.push)
            self.scheduler.start()

        logger.info("Sync runtime started", daily_push=self.scheduler is not None)

    async def stop(self) -> None:
        """Stop in reverse order; pending heartbeats are flushed before disconnect."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
        await self.heartbeats.stop()
        await self.broker.close()
        logger.info("Sync runtime stopped")

    async def health_check(self) -> bool:
        return await self.broker.health_check()


def get_runtime(request: Request) -> SyncRuntime:
    """FastAPI dependency returning the process runtime."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise RuntimeError("Sync runtime not started")
    return runtime
