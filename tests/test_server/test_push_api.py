"""
Tests for push and device command endpoints.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_preview_does_not_publish(client: AsyncClient, seeded, broker) -> None:
    response = await client.get("/api/v1/push/playlist/group-1")

    assert response.status_code == 200
    data = response.json()
    assert data["group_id"] == "group-1"
    assert data["rcs"].startswith("Welcome to the lobby")
    assert broker.published == []


@pytest.mark.asyncio
async def test_preview_unknown_group(client: AsyncClient, seeded) -> None:
    response = await client.get("/api/v1/push/playlist/group-missing")

    assert response.status_code == 404
    assert response.json()["error"] == "GroupNotFoundError"


@pytest.mark.asyncio
async def test_push_groups(client: AsyncClient, seeded, broker) -> None:
    response = await client.post("/api/v1/push/groups", json={"group_ids": ["group-1", "group-2"]})

    assert response.status_code == 200
    assert sorted(response.json()["published"]) == ["group-1", "group-2"]
    assert all(m["qos"] == 2 and m["retain"] for m in broker.published)


@pytest.mark.asyncio
async def test_push_groups_partial_failure(client: AsyncClient, seeded, broker) -> None:
    broker.fail_topics.add("ads/group-2")

    response = await client.post(
        "/api/v1/push/groups", json={"group_ids": ["group-1", "group-2", "group-3"]}
    )

    assert response.status_code == 502
    data = response.json()
    assert data["error"] == "PublishFailedError"
    assert data["details"]["failed_groups"] == ["group-2"]
    assert sorted(broker.topics()) == ["ads/group-1", "ads/group-3"]


@pytest.mark.asyncio
async def test_push_all(client: AsyncClient, seeded, broker) -> None:
    response = await client.post("/api/v1/push/all")

    assert response.status_code == 200
    assert sorted(broker.topics()) == ["ads/group-1", "ads/group-2", "ads/group-3"]


@pytest.mark.asyncio
async def test_exit_device(client: AsyncClient, seeded, broker) -> None:
    response = await client.post("/api/v1/push/devices/dev-1-0/exit")

    assert response.status_code == 200
    assert response.json() == {"success": True, "device_id": "dev-1-0", "action": "exit"}
    [message] = broker.published
    assert message["topic"] == "device/dev-1-0"
    assert message["payload"] == {"action": "exit"}
    assert message["retain"] is False


@pytest.mark.asyncio
async def test_register_unknown_device(client: AsyncClient, seeded) -> None:
    response = await client.post("/api/v1/push/devices/nope/register")

    assert response.status_code == 404
    assert response.json()["error"] == "DeviceNotFoundError"


@pytest.mark.asyncio
async def test_group_change_command(client: AsyncClient, seeded, broker) -> None:
    response = await client.post(
        "/api/v1/push/devices/dev-1-0/command",
        json={"action": "updateGroup", "extra": {"group_id": "group-2"}},
    )

    assert response.status_code == 200
    assert broker.published[0]["payload"] == {
        "action": "updateGroup",
        "group_id": "group-2",
        "device_id": "dev-1-0",
    }


@pytest.mark.asyncio
async def test_group_change_command_without_group(client: AsyncClient, seeded, broker) -> None:
    response = await client.post(
        "/api/v1/push/devices/dev-1-0/command", json={"action": "updateGroup"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "MissingParameterError"
    assert broker.published == []
