"""
API request schemas for scheduling, push and impression endpoints.

Scheduling fields are optional at the schema level: presence,
weekday and time-slot checks are done by the schedule expander so that each
failure maps onto its own error type instead of a generic 422.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from adcast.models import ContentType


class TimeSlot(BaseModel):
    """Wall-clock play window within one day."""

    start: str | None = Field(None, description="Start time, 24-hour HH:MM")
    end: str | None = Field(None, description="End time, 24-hour HH:MM (exclusive)")


class ScheduleRequest(BaseModel):
    """Request to place one content item on device groups over a date range."""

    content_id: str | None = Field(None, description="Ad / live content / carousel id")
    content_type: ContentType | None = Field(None, description="ad, live_content or carousel")
    start_date: date | None = Field(None, description="First day (inclusive)")
    end_date: date | None = Field(None, description="Last day (inclusive)")
    total_duration: int | None = Field(None, description="Requested plays per day")
    priority: int | None = Field(None, description="Higher = more important")
    groups: list[str] | None = Field(None, description="Target device group ids")
    weekdays: list[int] | None = Field(
        None, description="Days to include, 0=Sunday .. 6=Saturday; null = every day"
    )
    time_slots: list[TimeSlot] | None = Field(
        None, description="Play windows per day; null = 06:00-22:00"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "content_id": "5f0c7a52-1f0e-4f7e-9b55-3f7d1b0e2a11",
                "content_type": "ad",
                "start_date": "2024-01-01",
                "end_date": "2024-01-14",
                "total_duration": 20,
                "priority": 2,
                "groups": ["3d1c0c4e-8c3a-4a37-b3a4-2a9f6b0f1d22"],
                "weekdays": [1, 3, 5],
                "time_slots": [{"start": "06:00", "end": "10:00"}, {"start": "18:00", "end": "22:00"}],
            }
        }
    }


class ScheduleDeleteFilter(BaseModel):
    """Bulk delete criteria; at least one must be given."""

    schedule_ids: list[str] | None = Field(None, description="Explicit schedule ids")
    group_id: str | None = Field(None, description="Only entries of this group")
    content_id: str | None = Field(None, description="Only entries of this content item")
    content_type: ContentType | None = Field(None, description="Only entries of this type")
    start_date: date | None = Field(None, description="Entries starting on or after this day")
    end_date: date | None = Field(None, description="Entries starting on or before this day")

    def is_empty(self) -> bool:
        return not any(
            value is not None and value != []
            for value in self.model_dump().values()
        )


class PushRequest(BaseModel):
    """Administrative re-push."""

    group_ids: list[str] = Field(..., min_length=1, description="Groups to re-publish")
    placeholder: str | None = Field(None, description="Placeholder image URL")


class DeviceCommandRequest(BaseModel):
    """Command for a single device."""

    action: str = Field(..., description="on, off, updateGroup, ...")
    extra: dict[str, Any] | None = Field(None, description="Additional payload fields")


class RecomputeRequest(BaseModel):
    """Impression aggregate recompute."""

    summary_date: date = Field(..., description="Summary date")
    end_date: date | None = Field(None, description="Recompute a range up to this day")
    group_id: str | None = Field(None, description="Single group; all groups when absent")
