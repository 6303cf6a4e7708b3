"""
Pydantic schemas for API request/response and pushed playlists.
"""

from adcast.schemas.playlist import CarouselSlide, Playlist, PlaylistItem
from adcast.schemas.request import (
    DeviceCommandRequest,
    PushRequest,
    RecomputeRequest,
    ScheduleDeleteFilter,
    ScheduleRequest,
    TimeSlot,
)
from adcast.schemas.response import (
    CommandResponse,
    DeleteResponse,
    ErrorResponse,
    GroupDateResponse,
    HealthResponse,
    ImpressionSummaryResponse,
    PushResponse,
    RecomputeResponse,
    ScheduleCreateResponse,
    ScheduleEntryResponse,
)

__all__ = [
    # Request
    "TimeSlot",
    "ScheduleRequest",
    "ScheduleDeleteFilter",
    "PushRequest",
    "DeviceCommandRequest",
    "RecomputeRequest",
    # Response
    "ScheduleEntryResponse",
    "GroupDateResponse",
    "ScheduleCreateResponse",
    "DeleteResponse",
    "PushResponse",
    "CommandResponse",
    "ImpressionSummaryResponse",
    "RecomputeResponse",
    "HealthResponse",
    "ErrorResponse",
    # Playlist
    "CarouselSlide",
    "PlaylistItem",
    "Playlist",
]
