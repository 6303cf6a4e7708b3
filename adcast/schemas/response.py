"""
API response schemas for scheduling, push and impression endpoints.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ScheduleEntryResponse(BaseModel):
    """One persisted schedule row."""

    model_config = ConfigDict(from_attributes=True)

    schedule_id: str
    content_id: str
    content_type: str
    group_id: str
    start_time: datetime = Field(..., description="Window start (UTC)")
    end_time: datetime = Field(..., description="Window end (UTC, exclusive)")
    total_duration: int
    priority: int
    weekdays: list[int] | None = None
    time_slots: list[dict[str, Any]] | None = None


class GroupDateResponse(BaseModel):
    """A (date, group) pair touched by a schedule change."""

    summary_date: date
    group_id: str


class ScheduleCreateResponse(BaseModel):
    """Result of expanding a scheduling request."""

    count: int = Field(..., description="Number of entries created")
    entries: list[ScheduleEntryResponse] = Field(default_factory=list)
    affected_pairs: list[GroupDateResponse] = Field(default_factory=list)
    recompute_failures: list[GroupDateResponse] = Field(default_factory=list)
    push_failures: dict[str, str] = Field(
        default_factory=dict, description="group_id -> reason for groups not re-published"
    )


class DeleteResponse(BaseModel):
    """Result of a schedule delete."""

    deleted_count: int
    affected_groups: list[str] = Field(default_factory=list)
    affected_pairs: list[GroupDateResponse] = Field(default_factory=list)
    recompute_failures: list[GroupDateResponse] = Field(default_factory=list)
    push_failures: dict[str, str] = Field(default_factory=dict)


class PushResponse(BaseModel):
    """Result of a playlist push."""

    published: list[str] = Field(default_factory=list, description="Groups published")
    failed: dict[str, str] = Field(default_factory=dict, description="group_id -> reason")


class CommandResponse(BaseModel):
    """Result of a single-device command."""

    success: bool
    device_id: str
    action: str


class ImpressionSummaryResponse(BaseModel):
    """One daily impression aggregate row."""

    model_config = ConfigDict(from_attributes=True)

    summary_id: str
    summary_date: date
    group_id: str
    ad_id: str
    client_id: str | None = None
    device_count: int
    total_loop_duration_seconds: int
    loops_per_day: int
    impressions: int


class RecomputeResponse(BaseModel):
    """Result of an impression recompute."""

    dates: list[date]
    groups: int = Field(..., description="Groups processed across all dates")
    inserted_rows: int
    deleted_rows: int


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    database: bool = Field(..., description="Database connection status")
    broker: bool = Field(..., description="MQTT broker connection status")


class ErrorResponse(BaseModel):
    """Error response schema."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] | None = Field(None, description="Error details")
    request_id: str | None = Field(None, description="Request identifier")

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "InvalidTimeSlotError",
                "message": "Time slot end must be after start",
                "details": {"slot": {"start": "22:00", "end": "06:00"}},
                "request_id": "b7a1e2f0-4c1d-4e8a-9f57-0c6b2d1e9a34",
            }
        }
    }
