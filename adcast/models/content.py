"""
Schedulable content models.

Defines: Client, Ad, LiveContent, Carousel, CarouselItem
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adcast.models.base import Base, TimestampMixin, new_id


class Client(Base, TimestampMixin):
    """Advertiser account owning ads and device groups."""

    __tablename__ = "clients"

    client_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)


class Ad(Base, TimestampMixin):
    """Uploaded media item (image or video)."""

    __tablename__ = "ads"

    ad_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    client_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("clients.client_id"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(
        String(1024), nullable=False, comment="Storage key of the media object"
    )
    duration: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Play duration in seconds (images default to 10)"
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class LiveContent(Base, TimestampMixin):
    """Streaming or web content played from a direct URL."""

    __tablename__ = "live_contents"

    live_content_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=new_id
    )
    client_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("clients.client_id"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(
        String(50), default="streaming", comment="streaming, website, ..."
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, default=30)
    config: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class Carousel(Base, TimestampMixin):
    """Ordered set of ads played as one unit."""

    __tablename__ = "carousels"

    carousel_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    client_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("clients.client_id"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_duration: Mapped[int] = mapped_column(Integer, default=0)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    items: Mapped[list["CarouselItem"]] = relationship(
        "CarouselItem",
        back_populates="carousel",
        lazy="selectin",
        order_by="CarouselItem.display_order",
    )


class CarouselItem(Base):
    """One ad slot inside a carousel."""

    __tablename__ = "carousel_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    carousel_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("carousels.carousel_id"), nullable=False
    )
    ad_id: Mapped[str] = mapped_column(String(36), ForeignKey("ads.ad_id"), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0)

    carousel: Mapped["Carousel"] = relationship("Carousel", back_populates="items")
    ad: Mapped["Ad"] = relationship("Ad", lazy="selectin")
