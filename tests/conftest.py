"""
Pytest configuration and fixtures.
"""

import os

os.environ.setdefault("ADCAST_ENV", "test")

from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from adcast.common.config import Settings, get_settings
from adcast.common.database import create_tables, db
from adcast.models import (
    Ad,
    Carousel,
    CarouselItem,
    Client,
    Device,
    DeviceGroup,
    LiveContent,
    ScrollText,
)
from adcast.server.main import create_app
from adcast.server.runtime import SyncRuntime
from tests.factories import FakeBroker, FakeUrlResolver


@pytest.fixture
def settings() -> Settings:
    """Test settings (configs/test.yaml)."""
    return get_settings()


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path: Any) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh SQLite database per test, shared with the global db manager."""
    await db.init(f"sqlite+aiosqlite:///{tmp_path / 'adcast.db'}", poolclass=NullPool)
    await create_tables()

    yield db.session_factory

    await db.close()


@pytest_asyncio.fixture
async def seeded(session_factory: async_sessionmaker[AsyncSession]) -> dict[str, Any]:
    """
    Baseline content and devices.

    group-1 has 5 devices, group-2 has 2, group-3 has none.
    """
    async with session_factory() as session:
        async with session.begin():
            session.add(Client(client_id="client-1", name="Acme"))
            session.add_all(
                [
                    DeviceGroup(group_id="group-1", client_id="client-1", name="Lobby", rcs_enabled=True),
                    DeviceGroup(group_id="group-2", client_id="client-1", name="Cafe"),
                    DeviceGroup(group_id="group-3", client_id="client-1", name="Parking"),
                ]
            )
            await session.flush()
            session.add_all(
                [
                    Device(device_id=f"dev-1-{i}", group_id="group-1", android_id=f"android-1-{i}")
                    for i in range(5)
                ]
                + [
                    Device(device_id=f"dev-2-{i}", group_id="group-2", android_id=f"android-2-{i}")
                    for i in range(2)
                ]
            )
            session.add_all(
                [
                    Ad(ad_id="ad-30", client_id="client-1", name="Thirty", url="media/ad-30.mp4", duration=30),
                    Ad(ad_id="ad-20", client_id="client-1", name="Twenty", url="media/ad-20.mp4", duration=20),
                    Ad(ad_id="ad-10", client_id="client-1", name="Ten", url="media/ad-10.jpg", duration=10),
                    Ad(
                        ad_id="ad-gone",
                        client_id="client-1",
                        name="Deleted",
                        url="media/ad-gone.mp4",
                        duration=15,
                        is_deleted=True,
                    ),
                    LiveContent(
                        live_content_id="live-1",
                        client_id="client-1",
                        name="Match stream",
                        content_type="streaming",
                        url="https://stream.test/match.m3u8",
                        duration=120,
                        config={"muted": True},
                    ),
                    Carousel(carousel_id="carousel-1", client_id="client-1", name="Promo", total_duration=30),
                    ScrollText(group_id="group-1", message="Welcome to the lobby"),
                ]
            )
            await session.flush()
            session.add_all(
                [
                    CarouselItem(carousel_id="carousel-1", ad_id="ad-20", display_order=1),
                    CarouselItem(carousel_id="carousel-1", ad_id="ad-10", display_order=0),
                ]
            )
    return {"groups": ["group-1", "group-2", "group-3"]}


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def url_resolver() -> FakeUrlResolver:
    return FakeUrlResolver()


@pytest_asyncio.fixture
async def runtime(
    session_factory: async_sessionmaker[AsyncSession],
    broker: FakeBroker,
    url_resolver: FakeUrlResolver,
    settings: Settings,
) -> AsyncGenerator[SyncRuntime, None]:
    """Runtime wired to the fakes; daily push is disabled in test settings."""
    runtime = SyncRuntime(session_factory, broker, url_resolver, settings)
    await runtime.start()
    yield runtime
    await runtime.stop()


@pytest_asyncio.fixture(scope="function")
async def client(runtime: SyncRuntime) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client bound to the test runtime."""
    app = create_app()
    app.state.runtime = runtime

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def sample_schedule_request() -> dict[str, Any]:
    """Two days, default slot, one group."""
    return {
        "content_id": "ad-30",
        "content_type": "ad",
        "start_date": "2024-01-01",
        "end_date": "2024-01-02",
        "total_duration": 20,
        "priority": 1,
        "groups": ["group-1"],
    }
