"""
Schedule and impression aggregate models.

Defines: ScheduleEntry, ImpressionSummary
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from adcast.models.base import Base, ContentType, TimestampMixin, new_id


class ScheduleEntry(Base, TimestampMixin):
    """
    One concrete play window: one content item, one group, one day's slot.

    start_time / end_time are naive UTC. weekdays and time_slots are copied
    from the originating request on every row so that range deletes and
    regeneration never need a parent recurrence record.
    """

    __tablename__ = "schedules"

    schedule_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    content_id: Mapped[str] = mapped_column(String(36), nullable=False)
    content_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContentType.AD
    )
    group_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("device_groups.group_id"), nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    total_duration: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Requested plays per day"
    )
    priority: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, comment="Higher number = higher priority"
    )
    weekdays: Mapped[list[int] | None] = mapped_column(
        JSON, nullable=True, comment="0=Sunday .. 6=Saturday, NULL = every day"
    )
    time_slots: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSON, nullable=True, comment='[{"start": "06:00", "end": "22:00"}]'
    )

    __table_args__ = (
        Index("ix_schedules_group_window", "group_id", "start_time", "end_time"),
        Index("ix_schedules_content", "content_type", "content_id"),
    )

    @property
    def is_ad(self) -> bool:
        return self.content_type == ContentType.AD


class ImpressionSummary(Base, TimestampMixin):
    """Theoretical daily impressions for one ad in one group."""

    __tablename__ = "daily_impression_summaries"

    summary_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    summary_date: Mapped[date] = mapped_column(Date, nullable=False)
    group_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("device_groups.group_id"), nullable=False
    )
    ad_id: Mapped[str] = mapped_column(String(36), ForeignKey("ads.ad_id"), nullable=False)
    client_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    device_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_loop_duration_seconds: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="All ads in the loop plus the placeholder"
    )
    loops_per_day: Mapped[int] = mapped_column(Integer, nullable=False)
    impressions: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="loops_per_day * device_count"
    )

    __table_args__ = (
        UniqueConstraint("summary_date", "group_id", "ad_id", name="daily_group_ad_unique"),
        Index("ix_summaries_date", "summary_date"),
        Index("ix_summaries_group", "group_id"),
    )

    def as_tuple(self) -> tuple[Any, ...]:
        """Comparable value of the row, excluding bookkeeping timestamps."""
        return (
            self.summary_id,
            self.summary_date,
            self.group_id,
            self.ad_id,
            self.client_id,
            self.device_count,
            self.total_loop_duration_seconds,
            self.loops_per_day,
            self.impressions,
        )
