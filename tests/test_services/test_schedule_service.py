"""
Tests for schedule create / delete orchestration.
"""

from datetime import date

import pytest
from sqlalchemy import func, select

from adcast.common.exceptions import (
    InvalidTimeSlotError,
    MissingParameterError,
    PersistenceFailedError,
    ScheduleNotFoundError,
)
from adcast.models import ImpressionSummary, ScheduleEntry
from adcast.schemas.internal import GroupDate
from adcast.schemas.request import ScheduleDeleteFilter, ScheduleRequest
from tests.factories import NOW


def _request(**overrides) -> ScheduleRequest:
    data = {
        "content_id": "ad-30",
        "content_type": "ad",
        "start_date": "2024-01-01",
        "end_date": "2024-01-02",
        "total_duration": 20,
        "priority": 1,
        "groups": ["group-1", "group-2"],
    }
    data.update(overrides)
    return ScheduleRequest(**data)


async def _count(session_factory, model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.fixture
def service(runtime):
    # Assemble playlists as if it were midday on 2024-01-01
    runtime.assembler.clock = lambda: NOW
    return runtime.schedules


class TestExpandAndPersist:
    """Create flow."""

    @pytest.mark.asyncio
    async def test_rows_recompute_and_push(self, session_factory, seeded, service, broker) -> None:
        result = await service.expand_and_persist(_request())

        assert len(result.entries) == 4
        assert await _count(session_factory, ScheduleEntry) == 4
        assert result.affected_pairs == [
            GroupDate(date(2024, 1, 1), "group-1"),
            GroupDate(date(2024, 1, 1), "group-2"),
            GroupDate(date(2024, 1, 2), "group-1"),
            GroupDate(date(2024, 1, 2), "group-2"),
        ]
        assert result.recompute_failures == []
        assert await _count(session_factory, ImpressionSummary) == 4

        assert sorted(broker.topics()) == ["ads/group-1", "ads/group-2"]
        assert result.push_failures == {}

    @pytest.mark.asyncio
    async def test_non_ad_content_skips_recompute(self, session_factory, seeded, service, broker) -> None:
        result = await service.expand_and_persist(
            _request(content_id="live-1", content_type="live_content")
        )

        assert len(result.entries) == 4
        assert await _count(session_factory, ImpressionSummary) == 0
        assert sorted(broker.topics()) == ["ads/group-1", "ads/group-2"]

    @pytest.mark.asyncio
    async def test_invalid_request_writes_nothing(self, session_factory, seeded, service, broker) -> None:
        with pytest.raises(InvalidTimeSlotError):
            await service.expand_and_persist(_request(time_slots=[{"start": "10:00", "end": "09:00"}]))

        assert await _count(session_factory, ScheduleEntry) == 0
        assert broker.published == []

    @pytest.mark.asyncio
    async def test_push_failure_is_reported_not_raised(
        self, session_factory, seeded, service, broker
    ) -> None:
        broker.fail_topics.add("ads/group-2")

        result = await service.expand_and_persist(_request())

        assert list(result.push_failures) == ["group-2"]
        assert await _count(session_factory, ScheduleEntry) == 4

    @pytest.mark.asyncio
    async def test_recompute_failure_keeps_entries(
        self, session_factory, seeded, service, monkeypatch
    ) -> None:
        async def failing_recompute(summary_date, group_id=None):
            raise PersistenceFailedError("boom")

        monkeypatch.setattr(service.aggregator, "recompute", failing_recompute)

        result = await service.expand_and_persist(_request())

        assert len(result.recompute_failures) == 4
        assert await _count(session_factory, ScheduleEntry) == 4


class TestDelete:
    """Delete flow."""

    @pytest.mark.asyncio
    async def test_delete_by_group_clears_summaries(
        self, session_factory, seeded, service, broker
    ) -> None:
        await service.expand_and_persist(_request())
        broker.published.clear()

        result = await service.delete_schedules(ScheduleDeleteFilter(group_id="group-1"))

        assert result.deleted_count == 2
        assert result.affected_groups == ["group-1"]
        assert await _count(session_factory, ScheduleEntry) == 2
        async with session_factory() as session:
            groups = (await session.execute(select(ImpressionSummary.group_id))).scalars().all()
        assert set(groups) == {"group-2"}
        assert broker.topics() == ["ads/group-1"]

    @pytest.mark.asyncio
    async def test_delete_by_date_range(self, session_factory, seeded, service) -> None:
        await service.expand_and_persist(_request())

        result = await service.delete_schedules(
            ScheduleDeleteFilter(content_id="ad-30", start_date=date(2024, 1, 2), end_date=date(2024, 1, 2))
        )

        assert result.deleted_count == 2
        assert {p.summary_date for p in result.affected_pairs} == {date(2024, 1, 2)}

    @pytest.mark.asyncio
    async def test_delete_non_ad_reports_pairs_without_recompute(
        self, session_factory, seeded, service, monkeypatch
    ) -> None:
        await service.expand_and_persist(
            _request(content_id="live-1", content_type="live_content", groups=["group-1"])
        )
        calls: list = []

        async def recording_recompute(summary_date, group_id=None):
            calls.append((summary_date, group_id))

        monkeypatch.setattr(service.aggregator, "recompute", recording_recompute)

        result = await service.delete_schedules(ScheduleDeleteFilter(content_id="live-1"))

        assert result.deleted_count == 2
        assert result.affected_pairs == [
            GroupDate(date(2024, 1, 1), "group-1"),
            GroupDate(date(2024, 1, 2), "group-1"),
        ]
        assert calls == []

    @pytest.mark.asyncio
    async def test_delete_requires_criterion(self, session_factory, seeded, service) -> None:
        with pytest.raises(MissingParameterError):
            await service.delete_schedules(ScheduleDeleteFilter())

    @pytest.mark.asyncio
    async def test_delete_nothing_matches(self, session_factory, seeded, service, broker) -> None:
        result = await service.delete_schedules(ScheduleDeleteFilter(group_id="group-3"))

        assert result.deleted_count == 0
        assert broker.published == []

    @pytest.mark.asyncio
    async def test_delete_single(self, session_factory, seeded, service) -> None:
        created = await service.expand_and_persist(_request(groups=["group-1"], end_date="2024-01-01"))
        [entry] = created.entries

        result = await service.delete_schedule(entry.schedule_id)

        assert result.deleted_count == 1
        assert await _count(session_factory, ImpressionSummary) == 0

    @pytest.mark.asyncio
    async def test_delete_single_unknown(self, session_factory, seeded, service) -> None:
        with pytest.raises(ScheduleNotFoundError):
            await service.delete_schedule("missing")
