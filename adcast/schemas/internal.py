"""
Internal result types passed between services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from adcast.models import ScheduleEntry


@dataclass(frozen=True, order=True)
class GroupDate:
    """One (local date, group) pair touched by a schedule change."""

    summary_date: date
    group_id: str


@dataclass(frozen=True)
class ResolvedUrl:
    """Time-limited playable URL for a stored media object."""

    url: str
    expires_at: datetime | None = None


@dataclass
class ExpansionResult:
    """Outcome of expanding and persisting one schedule request."""

    entries: list[ScheduleEntry]
    affected_pairs: list[GroupDate] = field(default_factory=list)
    recompute_failures: list[GroupDate] = field(default_factory=list)
    push_failures: dict[str, str] = field(default_factory=dict)


@dataclass
class DeletionResult:
    """Outcome of a schedule delete."""

    deleted_count: int
    affected_pairs: list[GroupDate] = field(default_factory=list)
    affected_groups: list[str] = field(default_factory=list)
    recompute_failures: list[GroupDate] = field(default_factory=list)
    push_failures: dict[str, str] = field(default_factory=dict)


@dataclass
class PushReport:
    """Per-group outcome of one push_to_groups call."""

    published: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class RecomputeStats:
    """What one impression recompute did."""

    summary_date: date
    groups: int = 0
    deleted_rows: int = 0
    inserted_rows: int = 0
    skipped_groups: list[str] = field(default_factory=list)
