"""
Playlist push over MQTT.

Group playlists go to ``ads/{group_id}`` with QoS 2 and the retain flag, so a
player that (re)connects immediately receives the latest playlist. Device
commands go to ``device/{device_id}`` and are never retained.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from adcast.common.broker import (
    QOS_AT_LEAST_ONCE,
    QOS_EXACTLY_ONCE,
    MessageBroker,
    Topics,
)
from adcast.common.config import BrokerSettings, PushSettings, get_settings
from adcast.common.exceptions import (
    BrokerError,
    DeviceNotFoundError,
    MissingParameterError,
    PublishFailedError,
)
from adcast.common.logger import get_logger
from adcast.common.utils import dedupe, json_dumps, utcnow
from adcast.models import Device, DeviceAction, DeviceGroup
from adcast.schemas.internal import PushReport
from adcast.schemas.playlist import Playlist
from adcast.server.middleware.metrics import record_publish
from adcast.server.services.playlist_assembler import PlaylistAssembler

logger = get_logger(__name__)


class PushBroadcaster:
    """Publishes group playlists and single-device commands."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        assembler: PlaylistAssembler,
        broker: MessageBroker,
        settings: PushSettings | None = None,
        broker_settings: BrokerSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.assembler = assembler
        self.broker = broker
        self.settings = settings or get_settings().push
        self.broker_settings = broker_settings or get_settings().broker
        self.clock = clock

    # ==================== Group playlists ====================

    async def push_to_groups(
        self, group_ids: list[str], placeholder: str | None = None
    ) -> PushReport:
        """
        Assemble and publish the playlist of every group.

        Groups are handled independently with bounded concurrency; one
        failure never stops the others.

        Raises:
            PublishFailedError: after all attempts, if any group failed.
                ``details["failed_groups"]`` names them.
        """
        groups = dedupe(group_ids)
        semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrency))

        async def _bounded(group_id: str) -> Playlist:
            async with semaphore:
                return await self.push_group(group_id, placeholder)

        results = await asyncio.gather(
            *(_bounded(group_id) for group_id in groups), return_exceptions=True
        )

        report = PushReport()
        for group_id, result in zip(groups, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                report.failed[group_id] = str(result) or result.__class__.__name__
                record_publish(False)
                logger.error(
                    "Playlist publish failed",
                    group_id=group_id,
                    error=report.failed[group_id],
                    error_type=result.__class__.__name__,
                )
            else:
                report.published.append(group_id)
                record_publish(True)

        logger.info(
            "Playlist push finished",
            published=len(report.published),
            failed=len(report.failed),
        )

        if not report.ok:
            raise PublishFailedError(
                f"Failed to publish playlists for {len(report.failed)} group(s)",
                {
                    "failed_groups": list(report.failed),
                    "errors": report.failed,
                    "published_groups": report.published,
                },
            )
        return report

    async def push_group(self, group_id: str, placeholder: str | None = None) -> Playlist:
        """Publish one group's playlist and stamp ``last_pushed``."""
        playlist = await self.assembler.assemble(group_id, placeholder)
        payload = json_dumps(playlist.to_payload())

        await self._publish(
            Topics.group_playlist(group_id), payload, qos=QOS_EXACTLY_ONCE, retain=True
        )

        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(DeviceGroup)
                    .where(DeviceGroup.group_id == group_id)
                    .values(last_pushed=self.clock())
                )

        logger.info(
            "Playlist published",
            group_id=group_id,
            items=len(playlist.items),
            bytes=len(payload),
        )
        return playlist

    async def push_all_groups(self, placeholder: str | None = None) -> PushReport:
        """Re-publish every group."""
        async with self.session_factory() as session:
            group_ids = list(
                (await session.execute(select(DeviceGroup.group_id).order_by(DeviceGroup.group_id)))
                .scalars()
            )
        if not group_ids:
            logger.info("No device groups to push")
            return PushReport()
        return await self.push_to_groups(group_ids, placeholder)

    # ==================== Device commands ====================

    async def notify_device_exit(self, device_id: str) -> None:
        """Tell a player to close the app."""
        await self._command(device_id, {"action": DeviceAction.EXIT.value})

    async def notify_group_change(self, device_id: str, group_id: str) -> None:
        """Tell a player it moved to another group."""
        await self._command(
            device_id,
            {
                "action": DeviceAction.UPDATE_GROUP.value,
                "group_id": group_id,
                "device_id": device_id,
            },
        )

    async def notify_metadata_change(
        self,
        device_id: str,
        device_orientation: str | None = None,
        device_resolution: str | None = None,
    ) -> None:
        """Push new display settings to a player."""
        await self._command(
            device_id,
            {
                "action": DeviceAction.UPDATE_METADATA.value,
                "device_orientation": device_orientation,
                "device_resolution": device_resolution,
            },
        )

    async def notify_power(self, device_id: str, on: bool) -> None:
        """Switch a player's screen on or off."""
        action = DeviceAction.ON if on else DeviceAction.OFF
        await self._command(device_id, {"action": action.value})

    async def send_command(
        self, device_id: str, action: str, extra: dict[str, Any] | None = None
    ) -> None:
        """
        Send a command to one player.

        Known actions go through their helper above; any other action is sent
        as-is with ``extra`` merged into the message.

        Raises:
            MissingParameterError: ``updateGroup`` without ``extra.group_id``.
        """
        extra = extra or {}
        if action == DeviceAction.EXIT:
            await self.notify_device_exit(device_id)
        elif action in (DeviceAction.ON, DeviceAction.OFF):
            await self.notify_power(device_id, on=action == DeviceAction.ON)
        elif action == DeviceAction.UPDATE_GROUP:
            group_id = extra.get("group_id")
            if not group_id:
                raise MissingParameterError(
                    "updateGroup needs extra.group_id", {"missing": ["group_id"]}
                )
            await self.notify_group_change(device_id, group_id)
        elif action == DeviceAction.UPDATE_METADATA:
            await self.notify_metadata_change(
                device_id,
                extra.get("device_orientation"),
                extra.get("device_resolution"),
            )
        else:
            await self._command(device_id, {**extra, "action": action})

    async def push_device_registration(
        self, device_id: str, placeholder: str | None = None
    ) -> None:
        """
        Send a newly paired device its identity, broker URL and playlist.

        Raises:
            DeviceNotFoundError: unknown device.
        """
        async with self.session_factory() as session:
            device = await session.get(Device, device_id)
            if device is None:
                raise DeviceNotFoundError(f"Device {device_id} not found", {"device_id": device_id})
            identity = {
                "android_id": device.android_id,
                "device_id": device.device_id,
                "device_name": device.device_name,
                "group_id": device.group_id,
                "device_orientation": device.device_orientation,
                "device_resolution": device.device_resolution,
                "device_type": device.device_type,
            }

        playlist = await self.assembler.assemble(identity["group_id"], placeholder)
        payload = {
            "action": DeviceAction.REGISTER.value,
            "config": {"mqtt_url": self.broker_settings.url},
            **identity,
            **playlist.to_payload(),
        }
        await self._publish(
            Topics.device_register(device_id),
            json_dumps(payload),
            qos=QOS_EXACTLY_ONCE,
            retain=False,
        )
        logger.info("Device registration published", device_id=device_id)

    async def _command(self, device_id: str, message: dict[str, Any]) -> None:
        await self._publish(
            Topics.device(device_id), json_dumps(message), qos=QOS_AT_LEAST_ONCE, retain=False
        )
        logger.info("Device command published", device_id=device_id, action=message["action"])

    async def _publish(self, topic: str, payload: str, qos: int, retain: bool) -> None:
        timeout = self.settings.publish_timeout_seconds
        try:
            await asyncio.wait_for(
                self.broker.publish(topic, payload, qos=qos, retain=retain, timeout=timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise BrokerError(f"Publish to {topic} timed out", {"topic": topic}) from e
