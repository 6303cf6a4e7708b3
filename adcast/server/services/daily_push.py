"""
Daily full re-push.

Playlists only change on schedule writes, but the assembly window moves every
day, so every group is re-published on a cron schedule. This also repairs
groups whose push failed after a schedule change.
"""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from adcast.common.config import PushSettings, get_settings
from adcast.common.exceptions import AdCastError
from adcast.common.logger import get_logger
from adcast.server.services.push_broadcaster import PushBroadcaster

logger = get_logger(__name__)

JOB_ID_PREFIX = "daily_push"


async def run_daily_push(broadcaster: PushBroadcaster) -> None:
    """Re-publish every group; failures are logged, never raised to the scheduler."""
    logger.info("Starting daily playlist push")
    try:
        report = await broadcaster.push_all_groups()
    except AdCastError as e:
        logger.error("Daily playlist push failed", error=e.message, details=e.details)
        return
    logger.info("Daily playlist push completed", groups=len(report.published))


def create_daily_push_scheduler(
    broadcaster: PushBroadcaster,
    settings: PushSettings | None = None,
) -> AsyncIOScheduler:
    """Build (but do not start) the scheduler with one job per cron expression."""
    settings = settings or get_settings().push
    scheduler = AsyncIOScheduler(timezone=settings.daily_push_timezone)

    for index, expression in enumerate(settings.daily_push_crons):
        scheduler.add_job(
            run_daily_push,
            CronTrigger.from_crontab(expression, timezone=settings.daily_push_timezone),
            args=[broadcaster],
            id=f"{JOB_ID_PREFIX}_{index}",
            replace_existing=True,
            coalesce=True,
            misfire_grace_time=300,
        )

    logger.info(
        "Daily push jobs configured",
        crons=settings.daily_push_crons,
        timezone=settings.daily_push_timezone,
    )
    return scheduler
