"""
Tests for the daily full re-push.
"""

import pytest

from adcast.common.config import PushSettings
from adcast.server.services.daily_push import create_daily_push_scheduler, run_daily_push


def test_one_job_per_cron() -> None:
    settings = PushSettings(daily_push_crons=["5 6 * * *", "12 15 * * *"])

    broadcaster = object()
    scheduler = create_daily_push_scheduler(broadcaster, settings)

    jobs = scheduler.get_jobs()
    assert sorted(job.id for job in jobs) == ["daily_push_0", "daily_push_1"]
    assert all(job.args == (broadcaster,) for job in jobs)


@pytest.mark.asyncio
async def test_run_publishes_every_group(seeded, runtime, broker) -> None:
    await run_daily_push(runtime.broadcaster)

    assert sorted(broker.topics()) == ["ads/group-1", "ads/group-2", "ads/group-3"]


@pytest.mark.asyncio
async def test_run_swallows_publish_failure(seeded, runtime, broker) -> None:
    broker.fail_topics.add("ads/group-1")

    await run_daily_push(runtime.broadcaster)

    assert sorted(broker.topics()) == ["ads/group-2", "ads/group-3"]
