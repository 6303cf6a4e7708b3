"""
Database models for AdCast.
"""

from adcast.models.base import (
    Base,
    ContentType,
    DeviceAction,
    DeviceStatus,
    TimestampMixin,
    new_id,
)
from adcast.models.content import Ad, Carousel, CarouselItem, Client, LiveContent
from adcast.models.device import Device, DeviceGroup, LiveTicker, ScrollText
from adcast.models.schedule import ImpressionSummary, ScheduleEntry

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "new_id",
    # Enums
    "ContentType",
    "DeviceAction",
    "DeviceStatus",
    # Content
    "Client",
    "Ad",
    "LiveContent",
    "Carousel",
    "CarouselItem",
    # Devices
    "DeviceGroup",
    "Device",
    "ScrollText",
    "LiveTicker",
    # Scheduling
    "ScheduleEntry",
    "ImpressionSummary",
]
