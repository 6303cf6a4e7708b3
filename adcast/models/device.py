"""
Device-side models.

Defines: DeviceGroup, Device, ScrollText, LiveTicker
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adcast.models.base import Base, DeviceStatus, TimestampMixin, new_id


class DeviceGroup(Base, TimestampMixin):
    """Named collection of devices sharing one playlist topic."""

    __tablename__ = "device_groups"

    group_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    client_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("clients.client_id"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    reg_code: Mapped[str | None] = mapped_column(
        String(16), nullable=True, comment="Pairing code shown on new devices"
    )
    last_pushed: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Player display flags forwarded in every playlist
    rcs_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    placeholder_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    logo_enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    devices: Mapped[list["Device"]] = relationship("Device", back_populates="group")
    scroll_text: Mapped["ScrollText"] = relationship(
        "ScrollText", back_populates="group", uselist=False
    )


class Device(Base, TimestampMixin):
    """Field player registered to one group."""

    __tablename__ = "devices"

    device_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    group_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("device_groups.group_id"), nullable=False
    )
    android_id: Mapped[str] = mapped_column(
        String(64), nullable=False, comment="Hardware identity sent with heartbeats"
    )
    device_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=DeviceStatus.ACTIVE)
    device_orientation: Mapped[str | None] = mapped_column(String(20), nullable=True)
    device_resolution: Mapped[str | None] = mapped_column(String(20), nullable=True)
    device_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_synced: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    group: Mapped["DeviceGroup"] = relationship("DeviceGroup", back_populates="devices")

    __table_args__ = (
        Index("ix_devices_android_id", "android_id"),
        Index("ix_devices_group_id", "group_id"),
    )


class ScrollText(Base, TimestampMixin):
    """Custom scrolling message for a group."""

    __tablename__ = "scroll_texts"

    scrolltext_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    group_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("device_groups.group_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)

    group: Mapped["DeviceGroup"] = relationship("DeviceGroup", back_populates="scroll_text")


class LiveTicker(Base, TimestampMixin):
    """
    Live-event ticker text (e.g. match scores).

    Written by the external score ingestion; the playlist assembler only reads
    the most recently updated active row.
    """

    __tablename__ = "live_tickers"

    ticker_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    text: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
