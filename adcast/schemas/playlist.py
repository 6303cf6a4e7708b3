"""
Push-ready playlist schemas.

A playlist is built fresh on every assembly and holds plain values only, so a
published payload never changes when the schedule rows behind it do.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from adcast.models import ContentType


class CarouselSlide(BaseModel):
    """One ad inside a carousel item."""

    ad_id: str
    name: str
    url: str
    file_extension: str = ""
    duration: int
    display_order: int = 0


class PlaylistItem(BaseModel):
    """One scheduled content item with its playable URL."""

    content_id: str = Field(..., description="Ad / live content / carousel id")
    content_type: ContentType = Field(..., description="ad, live_content or carousel")
    name: str
    url: str | None = Field(None, description="Resolved playable URL (carousels: None)")
    file_extension: str = ""
    duration: int = Field(..., description="Play duration in seconds")
    total_plays: int = Field(..., description="Requested plays per day")
    start_time: datetime
    weekdays: list[int] | None = None
    time_slots: list[dict[str, Any]] | None = None

    # live_content only
    live_type: str | None = None
    config: dict[str, Any] | None = None

    # carousel only
    slides: list[CarouselSlide] | None = None


class Playlist(BaseModel):
    """Everything a group's players need to render the current day."""

    group_id: str
    scrolling_message: str
    ticker: str | None = None
    items: list[PlaylistItem] = Field(default_factory=list)
    placeholder: str | None = None
    rcs_enabled: bool = False
    placeholder_enabled: bool = False
    logo_enabled: bool = False
    generated_at: datetime

    @property
    def ads(self) -> list[PlaylistItem]:
        return [item for item in self.items if item.content_type == ContentType.AD]

    def to_payload(self) -> dict[str, Any]:
        """
        Wire format published on ``ads/{group_id}``.

        ``ads`` keeps the shape older players parse; ``content`` carries every
        item type in one list.
        """
        rcs = self.scrolling_message
        if self.ticker:
            rcs = f"{rcs} {self.ticker.strip()}"

        ads = [
            {
                "ad_id": item.content_id,
                "name": item.name,
                "url": item.url,
                "file_extension": item.file_extension,
                "duration": item.duration,
                "total_plays": item.total_plays,
                "start_time": item.start_time.isoformat(),
                "weekdays": item.weekdays,
                "time_slots": item.time_slots,
            }
            for item in self.ads
        ]

        content: list[dict[str, Any]] = []
        for item in self.items:
            entry: dict[str, Any] = {
                "type": item.content_type.value,
                "id": item.content_id,
                "name": item.name,
                "duration": item.duration,
                "total_plays": item.total_plays,
                "start_time": item.start_time.isoformat(),
                "weekdays": item.weekdays,
                "time_slots": item.time_slots,
            }
            if item.content_type == ContentType.CAROUSEL:
                entry["total_duration"] = item.duration
                entry["items"] = [slide.model_dump() for slide in item.slides or []]
            else:
                entry["url"] = item.url
                entry["file_extension"] = item.file_extension
            if item.content_type == ContentType.LIVE_CONTENT:
                entry["live_type"] = item.live_type
                entry["config"] = item.config
            content.append(entry)

        return {
            "group_id": self.group_id,
            "rcs": rcs,
            "ads": ads,
            "content": content,
            "placeholder": self.placeholder,
            "rcs_enabled": self.rcs_enabled,
            "placeholder_enabled": self.placeholder_enabled,
            "logo_enabled": self.logo_enabled,
            "generated_at": self.generated_at.isoformat(),
        }
