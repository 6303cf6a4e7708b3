"""
Schedule Router – create and delete schedules.

Endpoints:
    POST   /                – Expand a request into per-day schedule rows
    POST   /delete          – Bulk delete by filter
    DELETE /{schedule_id}   – Delete one row
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from adcast.common.logger import get_logger
from adcast.schemas.internal import DeletionResult, GroupDate
from adcast.schemas.request import ScheduleDeleteFilter, ScheduleRequest
from adcast.schemas.response import (
    DeleteResponse,
    GroupDateResponse,
    ScheduleCreateResponse,
    ScheduleEntryResponse,
)
from adcast.server.runtime import SyncRuntime, get_runtime

logger = get_logger(__name__)
router = APIRouter()


def _pairs(pairs: list[GroupDate]) -> list[GroupDateResponse]:
    return [GroupDateResponse(summary_date=p.summary_date, group_id=p.group_id) for p in pairs]


def _deletion(result: DeletionResult) -> DeleteResponse:
    return DeleteResponse(
        deleted_count=result.deleted_count,
        affected_groups=result.affected_groups,
        affected_pairs=_pairs(result.affected_pairs),
        recompute_failures=_pairs(result.recompute_failures),
        push_failures=result.push_failures,
    )


@router.post("", response_model=ScheduleCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    request: ScheduleRequest,
    runtime: SyncRuntime = Depends(get_runtime),
) -> ScheduleCreateResponse:
    """Schedule content on device groups over a date range."""
    result = await runtime.schedules.expand_and_persist(request)
    return ScheduleCreateResponse(
        count=len(result.entries),
        entries=[ScheduleEntryResponse.model_validate(e) for e in result.entries],
        affected_pairs=_pairs(result.affected_pairs),
        recompute_failures=_pairs(result.recompute_failures),
        push_failures=result.push_failures,
    )


@router.post("/delete", response_model=DeleteResponse)
async def delete_schedules(
    criteria: ScheduleDeleteFilter,
    runtime: SyncRuntime = Depends(get_runtime),
) -> DeleteResponse:
    """Delete every schedule row matching all given criteria."""
    return _deletion(await runtime.schedules.delete_schedules(criteria))


@router.delete("/{schedule_id}", response_model=DeleteResponse)
async def delete_schedule(
    schedule_id: str,
    runtime: SyncRuntime = Depends(get_runtime),
) -> DeleteResponse:
    """Delete one schedule row."""
    return _deletion(await runtime.schedules.delete_schedule(schedule_id))
