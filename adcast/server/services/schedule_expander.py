"""
Schedule expansion.

Turns one scheduling request into concrete per-day rows: for every calendar
day in range that passes the weekday filter, every time slot and every target
group, one ScheduleEntry. Wall-clock slots are read in the scheduling timezone
and stored as naive UTC.
"""

from __future__ import annotations

from datetime import date, datetime, time as dt_time
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adcast.common.config import SchedulingSettings, get_settings
from adcast.common.exceptions import (
    GroupNotFoundError,
    InvalidDateRangeError,
    InvalidTimeSlotError,
    InvalidWeekdayError,
    MissingParameterError,
    NoSchedulesGeneratedError,
)
from adcast.common.logger import get_logger
from adcast.common.utils import (
    dedupe,
    iter_days,
    local_to_utc,
    parse_hhmm,
    sunday_based_weekday,
)
from adcast.models import DeviceGroup, ScheduleEntry
from adcast.schemas.request import ScheduleRequest, TimeSlot
from adcast.server.services.content_validator import ContentValidator

logger = get_logger(__name__)

_REQUIRED_FIELDS = (
    "content_id",
    "content_type",
    "start_date",
    "end_date",
    "total_duration",
    "priority",
)


class ScheduleExpander:
    """Validates a ScheduleRequest and expands it into ScheduleEntry rows."""

    def __init__(
        self,
        session: AsyncSession,
        settings: SchedulingSettings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings().scheduling
        self.validator = ContentValidator(session)

    async def expand(self, request: ScheduleRequest) -> list[ScheduleEntry]:
        """
        Expand a request into unsaved schedule rows.

        Raises:
            ContentNotFoundError: content is missing or soft-deleted.
            MissingParameterError: a required field is absent.
            InvalidWeekdayError: weekday outside 0..6.
            InvalidTimeSlotError: malformed or empty slot.
            InvalidDateRangeError: end_date before start_date.
            GroupNotFoundError: a target group does not exist.
            NoSchedulesGeneratedError: the weekday filter excluded every day.
        """
        if request.content_id and request.content_type:
            await self.validator.require_content(request.content_id, request.content_type)

        self._check_required(request)
        weekdays = self._check_weekdays(request.weekdays)
        slots = self._parse_slots(request.time_slots)

        if request.end_date < request.start_date:
            raise InvalidDateRangeError(
                "end_date is before start_date",
                {
                    "start_date": request.start_date.isoformat(),
                    "end_date": request.end_date.isoformat(),
                },
            )

        groups = dedupe(request.groups)
        await self._check_groups(groups)

        days = self._filter_days(request.start_date, request.end_date, weekdays)
        if not days:
            raise NoSchedulesGeneratedError(
                "No days in range match the weekday filter",
                {
                    "start_date": request.start_date.isoformat(),
                    "end_date": request.end_date.isoformat(),
                    "weekdays": weekdays,
                },
            )

        stored_slots = [
            {"start": start.strftime("%H:%M"), "end": end.strftime("%H:%M")}
            for start, end in slots
        ]
        windows = self._windows(days, slots)
        if not windows:
            raise NoSchedulesGeneratedError(
                "Every time slot falls inside a DST gap",
                {"timezone": self.settings.timezone, "slots": stored_slots},
            )

        entries = [
            ScheduleEntry(
                content_id=request.content_id,
                content_type=request.content_type.value,
                group_id=group_id,
                start_time=start_time,
                end_time=end_time,
                total_duration=request.total_duration,
                priority=request.priority,
                weekdays=weekdays or None,
                time_slots=stored_slots,
            )
            for start_time, end_time in windows
            for group_id in groups
        ]

        logger.info(
            "Schedule expanded",
            content_id=request.content_id,
            content_type=request.content_type.value,
            days=len(days),
            slots=len(slots),
            groups=len(groups),
            entries=len(entries),
        )
        return entries

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _check_required(request: ScheduleRequest) -> None:
        missing = [name for name in _REQUIRED_FIELDS if getattr(request, name) is None]
        if not request.content_id and "content_id" not in missing:
            missing.append("content_id")
        if not request.groups:
            missing.append("groups")
        if missing:
            raise MissingParameterError(
                f"Missing required parameters: {', '.join(missing)}",
                {"missing": missing},
            )

    @staticmethod
    def _check_weekdays(weekdays: list[int] | None) -> list[int]:
        if not weekdays:
            return []
        invalid = [d for d in weekdays if not isinstance(d, int) or not 0 <= d <= 6]
        if invalid:
            raise InvalidWeekdayError(
                "Weekdays must be integers 0 (Sunday) to 6 (Saturday)",
                {"invalid": invalid},
            )
        return sorted(set(weekdays))

    def _parse_slots(self, time_slots: list[TimeSlot] | None) -> list[tuple[dt_time, dt_time]]:
        if not time_slots:
            time_slots = [
                TimeSlot(
                    start=self.settings.default_slot_start,
                    end=self.settings.default_slot_end,
                )
            ]

        parsed: list[tuple[dt_time, dt_time]] = []
        for slot in time_slots:
            raw: dict[str, Any] = {"start": slot.start, "end": slot.end}
            if slot.start is None or slot.end is None:
                raise InvalidTimeSlotError("Time slot needs both start and end", {"slot": raw})

            start, end = parse_hhmm(slot.start), parse_hhmm(slot.end)
            if start is None or end is None:
                raise InvalidTimeSlotError(
                    "Time slot must use 24-hour HH:MM format", {"slot": raw}
                )
            if end <= start:
                raise InvalidTimeSlotError("Time slot end must be after start", {"slot": raw})
            parsed.append((start, end))
        return parsed

    async def _check_groups(self, groups: list[str]) -> None:
        result = await self.session.execute(
            select(DeviceGroup.group_id).where(DeviceGroup.group_id.in_(groups))
        )
        unknown = sorted(set(groups) - set(result.scalars()))
        if unknown:
            raise GroupNotFoundError(
                f"Device group not found: {', '.join(unknown)}", {"group_ids": unknown}
            )

    @staticmethod
    def _filter_days(start: date, end: date, weekdays: list[int]) -> list[date]:
        days = iter_days(start, end)
        if not weekdays:
            return days
        return [day for day in days if sunday_based_weekday(day) in weekdays]

    def _windows(
        self, days: list[date], slots: list[tuple[dt_time, dt_time]]
    ) -> list[tuple[datetime, datetime]]:
        """UTC [start, end) per day and slot; slots swallowed by a DST gap are dropped."""
        tz = self.settings.timezone
        windows: list[tuple[datetime, datetime]] = []
        for day in days:
            for start, end in slots:
                start_time = local_to_utc(day, start, tz)
                end_time = local_to_utc(day, end, tz)
                if end_time <= start_time:
                    logger.warning(
                        "Time slot skipped inside DST gap",
                        day=day.isoformat(),
                        start=start.strftime("%H:%M"),
                        end=end.strftime("%H:%M"),
                        timezone=tz,
                    )
                    continue
                windows.append((start_time, end_time))
        return windows
