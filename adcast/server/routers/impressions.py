"""
Impressions Router – daily theoretical impression aggregates.

Endpoints:
    POST /recompute   – Rebuild one date (or a date range)
    GET  /            – List summary rows
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adcast.common.database import get_session
from adcast.common.exceptions import InvalidDateRangeError
from adcast.models import ImpressionSummary
from adcast.schemas.request import RecomputeRequest
from adcast.schemas.response import ImpressionSummaryResponse, RecomputeResponse
from adcast.server.runtime import SyncRuntime, get_runtime

router = APIRouter()


@router.post("/recompute", response_model=RecomputeResponse)
async def recompute(
    request: RecomputeRequest,
    runtime: SyncRuntime = Depends(get_runtime),
) -> RecomputeResponse:
    """Recompute impression aggregates."""
    end = request.end_date or request.summary_date
    if end < request.summary_date:
        raise InvalidDateRangeError(
            "end_date is before summary_date",
            {"summary_date": request.summary_date.isoformat(), "end_date": end.isoformat()},
        )

    stats = await runtime.aggregator.recompute_range(request.summary_date, end, request.group_id)
    return RecomputeResponse(
        dates=[s.summary_date for s in stats],
        groups=sum(s.groups for s in stats),
        inserted_rows=sum(s.inserted_rows for s in stats),
        deleted_rows=sum(s.deleted_rows for s in stats),
    )


@router.get("", response_model=list[ImpressionSummaryResponse])
async def list_impressions(
    summary_date: date = Query(..., description="Summary date"),
    end_date: date | None = Query(None, description="Inclusive range end"),
    group_id: str | None = Query(None),
    ad_id: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[ImpressionSummaryResponse]:
    """List summary rows of a date or date range."""
    query = select(ImpressionSummary).where(
        ImpressionSummary.summary_date >= summary_date,
        ImpressionSummary.summary_date <= (end_date or summary_date),
    )
    if group_id:
        query = query.where(ImpressionSummary.group_id == group_id)
    if ad_id:
        query = query.where(ImpressionSummary.ad_id == ad_id)

    result = await session.execute(
        query.order_by(
            ImpressionSummary.summary_date, ImpressionSummary.group_id, ImpressionSummary.ad_id
        )
    )
    return [ImpressionSummaryResponse.model_validate(row) for row in result.scalars()]
