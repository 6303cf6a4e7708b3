"""
Custom exceptions for AdCast.

Client-input errors surface to the caller with a 4xx status. URL resolution and
heartbeat write errors are recovered where they happen and only logged.
Publish failures are collected per group. Persistence failures abort the
transaction they occur in.
"""

from typing import Any


class AdCastError(Exception):
    """Base exception for AdCast."""

    status_code: int = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigError(AdCastError):
    """Configuration related errors."""

    status_code = 500


# ---------------------------------------------------------------------------
# Scheduling input
# ---------------------------------------------------------------------------

class ValidationError(AdCastError):
    """Request validation errors."""

    pass


class MissingParameterError(ValidationError):
    """A required scheduling parameter is absent."""

    pass


class InvalidWeekdayError(ValidationError):
    """Weekday filter contains a value outside 0..6."""

    pass


class InvalidTimeSlotError(ValidationError):
    """Time slot is malformed (not HH:MM, missing bound, or empty width)."""

    pass


class InvalidDateRangeError(ValidationError):
    """End date precedes start date."""

    pass


class NoSchedulesGeneratedError(ValidationError):
    """The weekday filter excluded every day in range."""

    pass


class ContentNotFoundError(AdCastError):
    """Referenced ad / live content / carousel does not exist or is deleted."""

    status_code = 404


class ScheduleNotFoundError(AdCastError):
    """Schedule entry not found."""

    status_code = 404


class GroupNotFoundError(AdCastError):
    """Device group not found."""

    status_code = 404


class DeviceNotFoundError(AdCastError):
    """Device not found."""

    status_code = 404


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

class UrlResolutionError(AdCastError):
    """A playable URL could not be produced for a stored media object."""

    status_code = 502


class BrokerError(AdCastError):
    """Message broker connection / publish errors."""

    status_code = 503


class PublishFailedError(BrokerError):
    """One or more group playlists could not be published."""

    status_code = 502


class HeartbeatWriteError(AdCastError):
    """A device last-seen update failed."""

    status_code = 500


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class DatabaseError(AdCastError):
    """Database related errors."""

    status_code = 500


class PersistenceFailedError(DatabaseError):
    """A transactional recompute failed and was rolled back."""

    pass
