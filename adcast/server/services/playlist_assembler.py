"""
Playlist assembly for one device group.

A playlist is the group's schedules that touch today's operating window
([06:00, 22:00) UTC by default), joined to their content with playable URLs,
plus the scrolling message and display flags. Playlists are rebuilt from the
database on every call and never cached.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, time as dt_time
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adcast.common.config import PushSettings, StorageSettings, get_settings
from adcast.common.exceptions import GroupNotFoundError, UrlResolutionError
from adcast.common.logger import get_logger
from adcast.common.utils import file_extension, utcnow
from adcast.models import (
    Ad,
    Carousel,
    ContentType,
    DeviceGroup,
    LiveContent,
    LiveTicker,
    ScheduleEntry,
    ScrollText,
)
from adcast.schemas.playlist import CarouselSlide, Playlist, PlaylistItem
from adcast.server.middleware.metrics import record_playlist_items, record_url_failure
from adcast.server.services.content_validator import load_contents
from adcast.server.services.url_resolver import UrlResolver

logger = get_logger(__name__)


@dataclass
class _MediaRef:
    """Storage key waiting for URL resolution."""

    object_id: str
    name: str
    storage_key: str
    duration: int
    display_order: int = 0


@dataclass
class _PendingItem:
    """Schedule row joined to its content, before URL resolution."""

    entry: dict[str, Any]
    content_type: ContentType
    name: str
    duration: int
    media: list[_MediaRef] = field(default_factory=list)
    url: str | None = None
    live_type: str | None = None
    config: dict[str, Any] | None = None


class PlaylistAssembler:
    """Builds the push-ready playlist of a device group."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        url_resolver: UrlResolver,
        push_settings: PushSettings | None = None,
        storage_settings: StorageSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.url_resolver = url_resolver
        self.push_settings = push_settings or settings.push
        self.url_timeout = (storage_settings or settings.storage).url_timeout_seconds
        self.clock = clock

    def window(self) -> tuple[datetime, datetime]:
        """Today's operating window as naive UTC."""
        today = self.clock().date()
        return (
            datetime.combine(today, dt_time(self.push_settings.window_start_hour)),
            datetime.combine(today, dt_time(self.push_settings.window_end_hour)),
        )

    async def assemble(self, group_id: str, placeholder: str | None = None) -> Playlist:
        """
        Assemble the current playlist for a group.

        Raises:
            GroupNotFoundError: the group does not exist.
        """
        window_start, window_end = self.window()

        async with self.session_factory() as session:
            group = await session.get(DeviceGroup, group_id)
            if group is None:
                raise GroupNotFoundError(f"Device group {group_id} not found", {"group_id": group_id})

            entries = (
                await session.execute(
                    select(ScheduleEntry)
                    .where(
                        ScheduleEntry.group_id == group_id,
                        ScheduleEntry.start_time < window_end,
                        ScheduleEntry.end_time > window_start,
                    )
                    .order_by(ScheduleEntry.priority.desc(), ScheduleEntry.start_time)
                )
            ).scalars().all()

            pending = await self._join_content(session, entries)
            scrolling_message = await self._scrolling_message(session, group_id)
            ticker = await self._ticker(session)

            flags = {
                "rcs_enabled": bool(group.rcs_enabled),
                "placeholder_enabled": bool(group.placeholder_enabled),
                "logo_enabled": bool(group.logo_enabled),
            }

        resolved = await asyncio.gather(*(self._finish(item) for item in pending))
        items = [item for item in resolved if item is not None]
        record_playlist_items(len(items))

        logger.info(
            "Playlist assembled",
            group_id=group_id,
            scheduled=len(entries),
            items=len(items),
            dropped=len(entries) - len(items),
        )

        return Playlist(
            group_id=group_id,
            scrolling_message=scrolling_message,
            ticker=ticker,
            items=items,
            placeholder=placeholder,
            generated_at=self.clock(),
            **flags,
        )

    # ------------------------------------------------------------------
    # Database side
    # ------------------------------------------------------------------

    async def _join_content(
        self, session: AsyncSession, entries: list[ScheduleEntry]
    ) -> list[_PendingItem]:
        wanted: dict[ContentType, set[str]] = defaultdict(set)
        for entry in entries:
            try:
                wanted[ContentType(entry.content_type)].add(entry.content_id)
            except ValueError:
                logger.warning(
                    "Unknown content type on schedule",
                    schedule_id=entry.schedule_id,
                    content_type=entry.content_type,
                )
        contents = await load_contents(session, wanted)

        pending: list[_PendingItem] = []
        for entry in entries:
            content = contents.get((entry.content_type, entry.content_id))
            if content is None:
                logger.info(
                    "Scheduled content missing or deleted, skipping",
                    schedule_id=entry.schedule_id,
                    content_id=entry.content_id,
                    content_type=entry.content_type,
                )
                continue

            schedule = {
                "content_id": entry.content_id,
                "total_plays": entry.total_duration,
                "start_time": entry.start_time,
                "weekdays": entry.weekdays,
                "time_slots": entry.time_slots,
            }
            if isinstance(content, Ad):
                pending.append(
                    _PendingItem(
                        entry=schedule,
                        content_type=ContentType.AD,
                        name=content.name,
                        duration=content.duration,
                        media=[_MediaRef(content.ad_id, content.name, content.url, content.duration)],
                    )
                )
            elif isinstance(content, LiveContent):
                pending.append(
                    _PendingItem(
                        entry=schedule,
                        content_type=ContentType.LIVE_CONTENT,
                        name=content.name,
                        duration=content.duration,
                        url=content.url,
                        live_type=content.content_type,
                        config=content.config,
                    )
                )
            elif isinstance(content, Carousel):
                pending.append(
                    _PendingItem(
                        entry=schedule,
                        content_type=ContentType.CAROUSEL,
                        name=content.name,
                        duration=content.total_duration,
                        media=[
                            _MediaRef(
                                item.ad.ad_id,
                                item.ad.name,
                                item.ad.url,
                                item.ad.duration,
                                item.display_order,
                            )
                            for item in content.items
                            if item.ad is not None and not item.ad.is_deleted
                        ],
                    )
                )
        return pending

    async def _scrolling_message(self, session: AsyncSession, group_id: str) -> str:
        message = await session.scalar(
            select(ScrollText.message).where(ScrollText.group_id == group_id)
        )
        return message or self.push_settings.default_scrolling_message

    @staticmethod
    async def _ticker(session: AsyncSession) -> str | None:
        return await session.scalar(
            select(LiveTicker.text)
            .where(LiveTicker.is_active.is_(True))
            .order_by(LiveTicker.updated_at.desc())
            .limit(1)
        )

    # ------------------------------------------------------------------
    # URL resolution
    # ------------------------------------------------------------------

    async def _resolve(self, media: _MediaRef) -> str | None:
        try:
            resolved = await asyncio.wait_for(
                self.url_resolver.resolve(media.storage_key, media.object_id),
                timeout=self.url_timeout,
            )
        except (UrlResolutionError, asyncio.TimeoutError) as e:
            record_url_failure()
            logger.warning(
                "Media URL resolution failed, dropping item",
                ad_id=media.object_id,
                storage_key=media.storage_key,
                error=str(e) or e.__class__.__name__,
            )
            return None
        return resolved.url

    async def _finish(self, item: _PendingItem) -> PlaylistItem | None:
        base: dict[str, Any] = {
            "content_type": item.content_type,
            "name": item.name,
            "duration": item.duration,
            **item.entry,
        }

        if item.content_type == ContentType.LIVE_CONTENT:
            return PlaylistItem(
                url=item.url,
                file_extension=file_extension(item.url or ""),
                live_type=item.live_type,
                config=item.config,
                **base,
            )

        urls = await asyncio.gather(*(self._resolve(media) for media in item.media))

        if item.content_type == ContentType.AD:
            url = urls[0] if urls else None
            if url is None:
                return None
            return PlaylistItem(
                url=url,
                file_extension=file_extension(item.media[0].storage_key),
                **base,
            )

        slides = [
            CarouselSlide(
                ad_id=media.object_id,
                name=media.name,
                url=url,
                file_extension=file_extension(media.storage_key),
                duration=media.duration,
                display_order=media.display_order,
            )
            for media, url in zip(item.media, urls)
            if url is not None
        ]
        if not slides:
            logger.info("Carousel has no playable items, skipping", carousel=item.entry["content_id"])
            return None
        return PlaylistItem(slides=slides, **base)
