"""
Schedule create / delete with impression recompute and playlist push.

Flow for both directions:
    1. Rows are inserted (or deleted) and committed.
    2. For ad schedules, every affected (date, group) impression aggregate is
       recomputed, each in its own transaction.
    3. Every affected group's playlist is re-published.

Steps 2 and 3 run after the commit, so their failures are logged and
reported but never undo the schedule change. The daily re-push and any later
recompute repair them.
"""

from __future__ import annotations

from datetime import time as dt_time

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adcast.common.config import Settings, get_settings
from adcast.common.exceptions import (
    MissingParameterError,
    PersistenceFailedError,
    PublishFailedError,
    ScheduleNotFoundError,
)
from adcast.common.logger import get_logger
from adcast.common.utils import day_bounds_utc, local_to_utc, utc_to_local_date
from adcast.models import ContentType, ScheduleEntry
from adcast.schemas.internal import DeletionResult, ExpansionResult, GroupDate
from adcast.schemas.request import ScheduleDeleteFilter, ScheduleRequest
from adcast.server.middleware.metrics import record_entries_created
from adcast.server.services.impression_aggregator import ImpressionAggregator
from adcast.server.services.push_broadcaster import PushBroadcaster
from adcast.server.services.schedule_expander import ScheduleExpander

logger = get_logger(__name__)


class ScheduleService:
    """Entry point for schedule changes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        aggregator: ImpressionAggregator,
        broadcaster: PushBroadcaster | None = None,
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.aggregator = aggregator
        self.broadcaster = broadcaster
        self.settings = settings or get_settings()

    @property
    def timezone(self) -> str:
        return self.settings.scheduling.timezone

    # ==================== Create ====================

    async def expand_and_persist(self, request: ScheduleRequest) -> ExpansionResult:
        """
        Validate, expand and store a scheduling request.

        Raises:
            ValidationError / ContentNotFoundError / GroupNotFoundError:
                invalid request; nothing was written.
            PersistenceFailedError: the insert failed; nothing was written.
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    expander = ScheduleExpander(session, self.settings.scheduling)
                    entries = await expander.expand(request)
                    session.add_all(entries)
        except SQLAlchemyError as e:
            logger.error("Schedule insert failed", content_id=request.content_id, error=str(e))
            raise PersistenceFailedError(
                "Could not store schedule entries", {"content_id": request.content_id}
            ) from e

        content_type = ContentType(request.content_type)
        record_entries_created(content_type.value, len(entries))

        result = ExpansionResult(entries=entries, affected_pairs=self._pairs(entries))
        logger.info(
            "Schedule entries created",
            content_id=request.content_id,
            content_type=content_type.value,
            count=len(entries),
            pairs=len(result.affected_pairs),
        )

        if content_type == ContentType.AD:
            result.recompute_failures = await self._recompute(result.affected_pairs)
        result.push_failures = await self._push(
            sorted({entry.group_id for entry in entries})
        )
        return result

    # ==================== Delete ====================

    async def delete_schedules(self, criteria: ScheduleDeleteFilter) -> DeletionResult:
        """
        Delete every schedule row matching all given criteria.

        Raises:
            MissingParameterError: no criterion given.
        """
        if criteria.is_empty():
            raise MissingParameterError(
                "At least one delete criterion is required",
                {"accepted": list(ScheduleDeleteFilter.model_fields)},
            )

        conditions = []
        if criteria.schedule_ids:
            conditions.append(ScheduleEntry.schedule_id.in_(criteria.schedule_ids))
        if criteria.group_id:
            conditions.append(ScheduleEntry.group_id == criteria.group_id)
        if criteria.content_id:
            conditions.append(ScheduleEntry.content_id == criteria.content_id)
        if criteria.content_type:
            conditions.append(ScheduleEntry.content_type == criteria.content_type.value)
        if criteria.start_date:
            conditions.append(
                ScheduleEntry.start_time >= local_to_utc(criteria.start_date, dt_time(0), self.timezone)
            )
        if criteria.end_date:
            conditions.append(
                ScheduleEntry.start_time < day_bounds_utc(criteria.end_date, self.timezone)[1]
            )

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    doomed = (
                        await session.execute(
                            select(
                                ScheduleEntry.schedule_id,
                                ScheduleEntry.content_type,
                                ScheduleEntry.group_id,
                                ScheduleEntry.start_time,
                            ).where(*conditions)
                        )
                    ).all()
                    if doomed:
                        await session.execute(
                            delete(ScheduleEntry).where(
                                ScheduleEntry.schedule_id.in_([row.schedule_id for row in doomed])
                            )
                        )
        except SQLAlchemyError as e:
            logger.error("Schedule delete failed", error=str(e))
            raise PersistenceFailedError("Could not delete schedule entries") from e

        ad_rows = [row for row in doomed if row.content_type == ContentType.AD.value]
        result = DeletionResult(
            deleted_count=len(doomed),
            affected_pairs=self._pairs(doomed),
            affected_groups=sorted({row.group_id for row in doomed}),
        )
        logger.info(
            "Schedule entries deleted",
            count=result.deleted_count,
            groups=len(result.affected_groups),
            pairs=len(result.affected_pairs),
        )
        if not doomed:
            return result

        result.recompute_failures = await self._recompute(self._pairs(ad_rows))
        result.push_failures = await self._push(result.affected_groups)
        return result

    async def delete_schedule(self, schedule_id: str) -> DeletionResult:
        """
        Delete a single schedule row.

        Raises:
            ScheduleNotFoundError: no such row.
        """
        async with self.session_factory() as session:
            exists = await session.get(ScheduleEntry, schedule_id)
        if exists is None:
            raise ScheduleNotFoundError(
                f"Schedule {schedule_id} not found", {"schedule_id": schedule_id}
            )
        return await self.delete_schedules(ScheduleDeleteFilter(schedule_ids=[schedule_id]))

    # ==================== Follow-ups ====================

    def _pairs(self, rows) -> list[GroupDate]:
        """Distinct (local date, group) pairs of schedule rows."""
        return sorted(
            {GroupDate(utc_to_local_date(row.start_time, self.timezone), row.group_id) for row in rows}
        )

    async def _recompute(self, pairs: list[GroupDate]) -> list[GroupDate]:
        failures: list[GroupDate] = []
        for pair in pairs:
            try:
                await self.aggregator.recompute(pair.summary_date, pair.group_id)
            except PersistenceFailedError as e:
                failures.append(pair)
                logger.error(
                    "Impression recompute failed after schedule change",
                    summary_date=pair.summary_date.isoformat(),
                    group_id=pair.group_id,
                    error=e.message,
                )
        return failures

    async def _push(self, group_ids: list[str]) -> dict[str, str]:
        if self.broadcaster is None or not group_ids:
            return {}
        try:
            await self.broadcaster.push_to_groups(group_ids)
        except PublishFailedError as e:
            logger.error(
                "Playlist push failed after schedule change",
                failed_groups=e.details.get("failed_groups"),
            )
            return dict(e.details.get("errors", {}))
        return {}
