"""
Base model and common utilities for SQLAlchemy ORM.
"""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def new_id() -> str:
    """Random UUID primary key as text."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""
    pass


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )


class ContentType(StrEnum):
    """Kinds of schedulable content."""
    AD = "ad"
    LIVE_CONTENT = "live_content"
    CAROUSEL = "carousel"


class DeviceStatus(StrEnum):
    """Device connection status as last reported."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class DeviceAction(StrEnum):
    """Commands sent to a single device's player."""
    EXIT = "exit"
    UPDATE_GROUP = "updateGroup"
    UPDATE_METADATA = "updateDeviceMetaData"
    REGISTER = "register"
    ON = "on"
    OFF = "off"
