"""
Tests for playlist assembly.
"""

from datetime import date, time

import pytest

from adcast.common.config import PushSettings, StorageSettings
from adcast.common.exceptions import GroupNotFoundError
from adcast.models import ContentType, LiveTicker
from adcast.server.services.playlist_assembler import PlaylistAssembler
from tests.factories import NOW, add_entries, make_entry

TODAY = NOW.date()


@pytest.fixture
def assembler(session_factory, url_resolver, settings) -> PlaylistAssembler:
    return PlaylistAssembler(
        session_factory,
        url_resolver,
        push_settings=settings.push,
        storage_settings=StorageSettings(url_timeout_seconds=0.05),
        clock=lambda: NOW,
    )


class TestItems:
    """Content joining and URL resolution."""

    @pytest.mark.asyncio
    async def test_ads_get_resolved_urls(self, session_factory, seeded, assembler) -> None:
        await add_entries(
            session_factory,
            make_entry("ad-30", "group-1", TODAY, priority=1, total_duration=20),
            make_entry("ad-20", "group-1", TODAY, priority=5),
        )

        playlist = await assembler.assemble("group-1")

        assert [item.content_id for item in playlist.items] == ["ad-20", "ad-30"]
        first, second = playlist.items
        assert first.url == "https://cdn.test/media/ad-20.mp4"
        assert first.file_extension == "mp4"
        assert second.total_plays == 20
        assert second.duration == 30

    @pytest.mark.asyncio
    async def test_url_failure_drops_only_that_item(
        self, session_factory, seeded, assembler, url_resolver
    ) -> None:
        url_resolver.failing.add("media/ad-20.mp4")
        await add_entries(
            session_factory,
            make_entry("ad-30", "group-1", TODAY),
            make_entry("ad-20", "group-1", TODAY),
        )

        playlist = await assembler.assemble("group-1")

        assert [item.content_id for item in playlist.items] == ["ad-30"]

    @pytest.mark.asyncio
    async def test_url_timeout_drops_item(
        self, session_factory, seeded, assembler, url_resolver
    ) -> None:
        url_resolver.hanging.add("media/ad-30.mp4")
        await add_entries(
            session_factory,
            make_entry("ad-30", "group-1", TODAY),
            make_entry("ad-10", "group-1", TODAY),
        )

        playlist = await assembler.assemble("group-1")

        assert [item.content_id for item in playlist.items] == ["ad-10"]

    @pytest.mark.asyncio
    async def test_deleted_and_missing_content_skipped(self, session_factory, seeded, assembler) -> None:
        await add_entries(
            session_factory,
            make_entry("ad-gone", "group-1", TODAY),
            make_entry("ad-never-existed", "group-1", TODAY),
            make_entry("ad-10", "group-1", TODAY),
        )

        playlist = await assembler.assemble("group-1")

        assert [item.content_id for item in playlist.items] == ["ad-10"]

    @pytest.mark.asyncio
    async def test_live_content_uses_direct_url(
        self, session_factory, seeded, assembler, url_resolver
    ) -> None:
        await add_entries(
            session_factory, make_entry("live-1", "group-1", TODAY, content_type="live_content")
        )

        playlist = await assembler.assemble("group-1")

        [item] = playlist.items
        assert item.content_type == ContentType.LIVE_CONTENT
        assert item.url == "https://stream.test/match.m3u8"
        assert item.live_type == "streaming"
        assert item.config == {"muted": True}
        assert url_resolver.calls == []

    @pytest.mark.asyncio
    async def test_carousel_slides_in_display_order(
        self, session_factory, seeded, assembler, url_resolver
    ) -> None:
        url_resolver.failing.add("media/ad-20.mp4")
        await add_entries(
            session_factory, make_entry("carousel-1", "group-1", TODAY, content_type="carousel")
        )

        playlist = await assembler.assemble("group-1")

        [item] = playlist.items
        assert item.duration == 30
        assert [slide.ad_id for slide in item.slides] == ["ad-10"]
        assert item.slides[0].url == "https://cdn.test/media/ad-10.jpg"


class TestWindow:
    """Only schedules touching today's 06:00-22:00 UTC window."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("start", "end", "included"),
        [
            (time(6), time(22), True),
            (time(0), time(6), False),
            (time(22), time(23, 59), False),
            (time(5), time(7), True),
            (time(21), time(23), True),
        ],
    )
    async def test_intersection(
        self, session_factory, seeded, assembler, start: time, end: time, included: bool
    ) -> None:
        await add_entries(session_factory, make_entry("ad-10", "group-1", TODAY, start=start, end=end))

        playlist = await assembler.assemble("group-1")

        assert bool(playlist.items) is included

    @pytest.mark.asyncio
    async def test_other_days_excluded(self, session_factory, seeded, assembler) -> None:
        await add_entries(
            session_factory,
            make_entry("ad-10", "group-1", date(2023, 12, 31)),
            make_entry("ad-10", "group-1", date(2024, 1, 2)),
        )

        playlist = await assembler.assemble("group-1")

        assert playlist.items == []

    @pytest.mark.asyncio
    async def test_other_groups_excluded(self, session_factory, seeded, assembler) -> None:
        await add_entries(session_factory, make_entry("ad-10", "group-2", TODAY))

        playlist = await assembler.assemble("group-1")

        assert playlist.items == []


class TestGroupFields:
    """Scrolling message, ticker and flags."""

    @pytest.mark.asyncio
    async def test_custom_scroll_text_and_flags(self, session_factory, seeded, assembler) -> None:
        playlist = await assembler.assemble("group-1", placeholder="https://cdn.test/ph.png")
        payload = playlist.to_payload()

        assert payload["rcs"] == "Welcome to the lobby"
        assert payload["rcs_enabled"] is True
        assert payload["placeholder_enabled"] is False
        assert payload["placeholder"] == "https://cdn.test/ph.png"
        assert payload["ads"] == []
        assert payload["content"] == []

    @pytest.mark.asyncio
    async def test_default_scroll_text(self, session_factory, seeded, url_resolver) -> None:
        assembler = PlaylistAssembler(
            session_factory,
            url_resolver,
            push_settings=PushSettings(default_scrolling_message="Advertise here"),
            clock=lambda: NOW,
        )

        playlist = await assembler.assemble("group-2")

        assert playlist.scrolling_message == "Advertise here"

    @pytest.mark.asyncio
    async def test_active_ticker_appended(self, session_factory, seeded, assembler) -> None:
        async with session_factory() as session:
            async with session.begin():
                session.add(LiveTicker(source="cricket", text="IND 250/3 (45)", is_active=True))
                session.add(LiveTicker(source="football", text="stale", is_active=False))

        payload = (await assembler.assemble("group-1")).to_payload()

        assert payload["rcs"] == "Welcome to the lobby IND 250/3 (45)"

    @pytest.mark.asyncio
    async def test_unknown_group(self, session_factory, seeded, assembler) -> None:
        with pytest.raises(GroupNotFoundError):
            await assembler.assemble("group-x")


class TestPayload:
    """Wire format."""

    @pytest.mark.asyncio
    async def test_ads_and_unified_content(self, session_factory, seeded, assembler) -> None:
        await add_entries(
            session_factory,
            make_entry("ad-30", "group-1", TODAY, priority=3, weekdays=[1], time_slots=[{"start": "06:00", "end": "22:00"}]),
            make_entry("live-1", "group-1", TODAY, content_type="live_content", priority=2),
            make_entry("carousel-1", "group-1", TODAY, content_type="carousel", priority=1),
        )

        payload = (await assembler.assemble("group-1")).to_payload()

        assert [ad["ad_id"] for ad in payload["ads"]] == ["ad-30"]
        ad = payload["ads"][0]
        assert ad["url"] == "https://cdn.test/media/ad-30.mp4"
        assert ad["weekdays"] == [1]
        assert ad["start_time"] == "2024-01-01T06:00:00"

        assert [c["type"] for c in payload["content"]] == ["ad", "live_content", "carousel"]
        carousel = payload["content"][2]
        assert carousel["total_duration"] == 30
        assert [slide["ad_id"] for slide in carousel["items"]] == ["ad-10", "ad-20"]
        assert "url" not in carousel
