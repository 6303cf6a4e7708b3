"""
Push Router – playlist preview, administrative re-push and device commands.

Endpoints:
    GET  /playlist/{group_id}               – Assemble without publishing
    POST /groups                            – Re-publish selected groups
    POST /all                               – Re-publish every group
    POST /devices/{device_id}/exit          – Close the player app
    POST /devices/{device_id}/command       – on / off / updateGroup / ...
    POST /devices/{device_id}/register      – Send pairing payload
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from adcast.common.logger import get_logger
from adcast.models import DeviceAction
from adcast.schemas.request import DeviceCommandRequest, PushRequest
from adcast.schemas.response import CommandResponse, PushResponse
from adcast.server.runtime import SyncRuntime, get_runtime

logger = get_logger(__name__)
router = APIRouter()


@router.get("/playlist/{group_id}")
async def preview_playlist(
    group_id: str,
    placeholder: str | None = Query(None, description="Placeholder image URL"),
    runtime: SyncRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    """Return the payload that would be published for a group."""
    playlist = await runtime.assembler.assemble(group_id, placeholder)
    return playlist.to_payload()


@router.post("/groups", response_model=PushResponse)
async def push_groups(
    request: PushRequest,
    runtime: SyncRuntime = Depends(get_runtime),
) -> PushResponse:
    """Re-publish selected groups. Partial failure returns 502 naming the groups."""
    report = await runtime.broadcaster.push_to_groups(request.group_ids, request.placeholder)
    return PushResponse(published=report.published, failed=report.failed)


@router.post("/all", response_model=PushResponse)
async def push_all(runtime: SyncRuntime = Depends(get_runtime)) -> PushResponse:
    """Re-publish every group."""
    report = await runtime.broadcaster.push_all_groups()
    return PushResponse(published=report.published, failed=report.failed)


@router.post("/devices/{device_id}/exit", response_model=CommandResponse)
async def exit_device(
    device_id: str,
    runtime: SyncRuntime = Depends(get_runtime),
) -> CommandResponse:
    """Tell a player to close the app."""
    await runtime.broadcaster.notify_device_exit(device_id)
    return CommandResponse(success=True, device_id=device_id, action=DeviceAction.EXIT.value)


@router.post("/devices/{device_id}/command", response_model=CommandResponse)
async def device_command(
    device_id: str,
    request: DeviceCommandRequest,
    runtime: SyncRuntime = Depends(get_runtime),
) -> CommandResponse:
    """Send a command to one player."""
    await runtime.broadcaster.send_command(device_id, request.action, request.extra)
    return CommandResponse(success=True, device_id=device_id, action=request.action)


@router.post("/devices/{device_id}/register", response_model=CommandResponse)
async def register_device(
    device_id: str,
    placeholder: str | None = Query(None, description="Placeholder image URL"),
    runtime: SyncRuntime = Depends(get_runtime),
) -> CommandResponse:
    """Publish the pairing payload of a device."""
    await runtime.broadcaster.push_device_registration(device_id, placeholder)
    return CommandResponse(success=True, device_id=device_id, action=DeviceAction.REGISTER.value)
