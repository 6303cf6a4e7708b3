"""
Daily impression aggregation.

For one summary date and one or all groups, the theoretical number of times
each scheduled ad plays across the group's devices:

    loop      = sum(ad durations in the group's playlist) + placeholder
    loops/day = 86400 // loop
    impr.     = loops/day * device count

The date's rows for the target groups are always deleted and recreated inside
one transaction, so a recompute after any schedule change (including removal)
leaves exactly the rows the current schedules imply.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import date

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adcast.common.config import Settings, get_settings
from adcast.common.exceptions import PersistenceFailedError
from adcast.common.logger import get_logger
from adcast.common.utils import SECONDS_IN_DAY, Timer, day_bounds_utc, iter_days, summary_id
from adcast.models import Ad, ContentType, Device, DeviceGroup, ImpressionSummary, ScheduleEntry
from adcast.schemas.internal import RecomputeStats
from adcast.server.middleware.metrics import record_recompute, record_recompute_failure

logger = get_logger(__name__)

DeviceCounter = Callable[[AsyncSession, str], Awaitable[int]]


async def count_group_devices(session: AsyncSession, group_id: str) -> int:
    """Default device counter: every device row registered to the group."""
    result = await session.execute(
        select(func.count()).select_from(Device).where(Device.group_id == group_id)
    )
    return int(result.scalar_one())


class ImpressionAggregator:
    """Recomputes daily_impression_summaries for a date."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        device_counter: DeviceCounter | None = None,
    ):
        settings = settings or get_settings()
        self.session_factory = session_factory
        self.placeholder_seconds = settings.impressions.placeholder_duration_seconds
        self.timezone = settings.scheduling.timezone
        self.device_counter = device_counter or count_group_devices

    async def recompute(self, summary_date: date, group_id: str | None = None) -> RecomputeStats:
        """
        Rebuild the summary rows of one date for one group (or all groups).

        Raises:
            PersistenceFailedError: anything failed; nothing was written.
        """
        try:
            with Timer() as timer:
                async with self.session_factory() as session:
                    async with session.begin():
                        stats = await self._recompute(session, summary_date, group_id)
        except Exception as e:
            record_recompute_failure()
            logger.error(
                "Impression recompute failed",
                summary_date=summary_date.isoformat(),
                group_id=group_id,
                error=str(e),
            )
            raise PersistenceFailedError(
                f"Impression recompute failed for {summary_date.isoformat()}",
                {"summary_date": summary_date.isoformat(), "group_id": group_id},
            ) from e

        record_recompute(timer.elapsed_s, stats.inserted_rows)
        logger.info(
            "Impression recompute finished",
            summary_date=summary_date.isoformat(),
            group_id=group_id,
            groups=stats.groups,
            deleted=stats.deleted_rows,
            inserted=stats.inserted_rows,
            duration_ms=round(timer.elapsed_ms, 2),
        )
        return stats

    async def recompute_range(
        self, start: date, end: date, group_id: str | None = None
    ) -> list[RecomputeStats]:
        """Recompute every date from start to end inclusive, one transaction each."""
        return [await self.recompute(day, group_id) for day in iter_days(start, end)]

    async def _recompute(
        self, session: AsyncSession, summary_date: date, group_id: str | None
    ) -> RecomputeStats:
        stats = RecomputeStats(summary_date=summary_date)

        # Lock the group rows so concurrent recomputes of the same date serialize
        query = select(DeviceGroup.group_id, DeviceGroup.client_id).order_by(DeviceGroup.group_id)
        if group_id is not None:
            query = query.where(DeviceGroup.group_id == group_id)
        groups = (await session.execute(query.with_for_update())).all()

        if not groups:
            logger.info(
                "No target groups for impression recompute",
                summary_date=summary_date.isoformat(),
                group_id=group_id,
            )
            return stats

        group_ids = [g.group_id for g in groups]
        deleted = await session.execute(
            delete(ImpressionSummary).where(
                ImpressionSummary.summary_date == summary_date,
                ImpressionSummary.group_id.in_(group_ids),
            )
        )
        stats.deleted_rows = deleted.rowcount or 0

        day_start, day_end = day_bounds_utc(summary_date, self.timezone)
        rows: list[ImpressionSummary] = []

        for group in groups:
            stats.groups += 1
            ads = await self._playlist_ads(session, group.group_id, day_start, day_end)
            if not ads:
                continue

            total = sum(duration for _, duration in ads) + self.placeholder_seconds
            if total <= 0:
                logger.warning(
                    "Non-positive loop duration, skipping group",
                    group_id=group.group_id,
                    summary_date=summary_date.isoformat(),
                    total_loop_duration=total,
                )
                stats.skipped_groups.append(group.group_id)
                continue

            loops = SECONDS_IN_DAY // total
            devices = await self.device_counter(session, group.group_id)

            rows.extend(
                ImpressionSummary(
                    summary_id=summary_id(summary_date, group.group_id, ad_id),
                    summary_date=summary_date,
                    group_id=group.group_id,
                    ad_id=ad_id,
                    client_id=group.client_id,
                    device_count=devices,
                    total_loop_duration_seconds=total,
                    loops_per_day=loops,
                    impressions=loops * devices,
                )
                for ad_id, _ in ads
            )
            logger.debug(
                "Group impressions computed",
                group_id=group.group_id,
                ads=len(ads),
                loop_seconds=total,
                loops_per_day=loops,
                devices=devices,
            )

        session.add_all(rows)
        stats.inserted_rows = len(rows)
        return stats

    @staticmethod
    async def _playlist_ads(
        session: AsyncSession, group_id: str, day_start, day_end
    ) -> list[tuple[str, int]]:
        """Distinct (ad_id, duration) of ads whose schedules overlap the day."""
        scheduled = select(ScheduleEntry.content_id).where(
            ScheduleEntry.group_id == group_id,
            ScheduleEntry.content_type == ContentType.AD.value,
            ScheduleEntry.start_time < day_end,
            ScheduleEntry.end_time > day_start,
        )
        result = await session.execute(
            select(Ad.ad_id, Ad.duration)
            .where(Ad.ad_id.in_(scheduled), Ad.is_deleted.is_(False))
            .order_by(Ad.ad_id)
        )
        return [(row.ad_id, row.duration) for row in result]
