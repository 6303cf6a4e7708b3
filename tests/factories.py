"""
Test doubles and row builders shared by the test modules.
"""

import asyncio
from datetime import date, datetime, time
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adcast.common.broker import QOS_EXACTLY_ONCE, MessageHandler
from adcast.common.exceptions import BrokerError, UrlResolutionError
from adcast.common.utils import json_loads
from adcast.models import ScheduleEntry
from adcast.schemas.internal import ResolvedUrl

# Fixed "now" used by the playlist tests; inside the 06:00-22:00 window
NOW = datetime(2024, 1, 1, 12, 0)


class FakeBroker:
    """In-memory broker recording every publish."""

    def __init__(self) -> None:
        self.published: list[dict[str, Any]] = []
        self.handlers: dict[str, MessageHandler] = {}
        self.fail_topics: set[str] = set()
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def health_check(self) -> bool:
        return self.connected

    async def publish(
        self,
        topic: str,
        payload: str | bytes,
        qos: int = QOS_EXACTLY_ONCE,
        retain: bool = False,
        timeout: float | None = None,
    ) -> None:
        if topic in self.fail_topics:
            raise BrokerError(f"Publish to {topic} failed", {"topic": topic})
        self.published.append(
            {"topic": topic, "payload": json_loads(payload), "qos": qos, "retain": retain}
        )

    async def subscribe(
        self, topic: str, handler: MessageHandler, qos: int = QOS_EXACTLY_ONCE
    ) -> None:
        self.handlers[topic] = handler

    async def deliver(self, topic: str, payload: bytes) -> None:
        await self.handlers[topic](topic, payload)

    def topics(self) -> list[str]:
        return [message["topic"] for message in self.published]


class FakeUrlResolver:
    """Resolver returning deterministic CDN URLs; selected keys fail or hang."""

    def __init__(self) -> None:
        self.failing: set[str] = set()
        self.hanging: set[str] = set()
        self.calls: list[str] = []

    async def resolve(self, storage_key: str, object_id: str | None = None) -> ResolvedUrl:
        self.calls.append(storage_key)
        if storage_key in self.failing:
            raise UrlResolutionError(f"No such object {storage_key}", {"storage_key": storage_key})
        if storage_key in self.hanging:
            await asyncio.sleep(60)
        return ResolvedUrl(url=f"https://cdn.test/{storage_key}")


def make_entry(
    content_id: str,
    group_id: str,
    day: date,
    content_type: str = "ad",
    start: time = time(6, 0),
    end: time = time(22, 0),
    **kwargs: Any,
) -> ScheduleEntry:
    """Schedule row for one day's slot."""
    return ScheduleEntry(
        content_id=content_id,
        content_type=content_type,
        group_id=group_id,
        start_time=datetime.combine(day, start),
        end_time=datetime.combine(day, end),
        total_duration=kwargs.pop("total_duration", 10),
        priority=kwargs.pop("priority", 1),
        **kwargs,
    )


async def add_entries(
    session_factory: async_sessionmaker[AsyncSession], *entries: ScheduleEntry
) -> None:
    async with session_factory() as session:
        async with session.begin():
            session.add_all(entries)
