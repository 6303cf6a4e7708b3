"""
MQTT broker client with async support.

One long-lived connection is shared by the push broadcaster and the heartbeat
batcher. Publishing is safe from many tasks at once; inbound messages are
dispatched from a single listener task to the handlers registered per topic
filter. The listener reconnects and re-subscribes on connection loss.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack
from typing import Any, Protocol

import aiomqtt

from adcast.common.config import BrokerSettings, get_settings
from adcast.common.exceptions import BrokerError
from adcast.common.logger import get_logger

logger = get_logger(__name__)

MessageHandler = Callable[[str, bytes], Awaitable[None] | None]

# MQTT delivery guarantees
QOS_AT_MOST_ONCE = 0
QOS_AT_LEAST_ONCE = 1
QOS_EXACTLY_ONCE = 2


class MessageBroker(Protocol):
    """What the services need from a broker."""

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def health_check(self) -> bool: ...

    async def publish(
        self,
        topic: str,
        payload: str | bytes,
        qos: int = QOS_EXACTLY_ONCE,
        retain: bool = False,
        timeout: float | None = None,
    ) -> None: ...

    async def subscribe(
        self, topic: str, handler: MessageHandler, qos: int = QOS_EXACTLY_ONCE
    ) -> None: ...


class MqttBroker:
    """
    Async MQTT client wrapper.

    Usage:
        broker = MqttBroker()
        await broker.connect()
        await broker.subscribe("device/sync", on_sync)
        await broker.publish("ads/g-1", payload, qos=2, retain=True)
    """

    def __init__(
        self,
        settings: BrokerSettings | None = None,
        reconnect_interval: float = 5.0,
    ) -> None:
        self._settings = settings or get_settings().broker
        self._reconnect_interval = reconnect_interval
        self._client: aiomqtt.Client | None = None
        self._stack: AsyncExitStack | None = None
        self._handlers: dict[str, tuple[MessageHandler, int]] = {}
        self._listener: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def client(self) -> aiomqtt.Client:
        """Get the MQTT client."""
        if self._client is None:
            raise BrokerError("Broker not connected. Call connect() first.")
        return self._client

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """
        Open the connection and start the inbound listener.

        A broker that is down at startup is not fatal: the listener keeps
        retrying and publishes fail with BrokerError until it is back.
        """
        self._closing = False
        try:
            await self._open()
            logger.info(
                "MQTT connected",
                host=self._settings.host,
                port=self._settings.port,
                client_id=self._settings.client_id,
            )
        except BrokerError as e:
            logger.error("MQTT unavailable at startup, will retry", error=e.message)
        self._listener = asyncio.create_task(self._listen(), name="mqtt-listener")

    async def _open(self) -> None:
        stack = AsyncExitStack()
        client = aiomqtt.Client(
            hostname=self._settings.host,
            port=self._settings.port,
            username=self._settings.username or None,
            password=self._settings.password or None,
            identifier=self._settings.client_id,
            keepalive=self._settings.keepalive,
        )
        try:
            await stack.enter_async_context(client)
        except aiomqtt.MqttError as e:
            await stack.aclose()
            raise BrokerError(f"MQTT connection failed: {e}", {"url": self._settings.url}) from e
        self._stack = stack
        self._client = client

        for topic, (_, qos) in self._handlers.items():
            await client.subscribe(topic, qos=qos)

    async def _drop(self) -> None:
        stack, self._stack, self._client = self._stack, None, None
        if stack is not None:
            try:
                await stack.aclose()
            except aiomqtt.MqttError as e:
                logger.debug("MQTT disconnect error ignored", error=str(e))

    async def close(self) -> None:
        """Stop the listener and disconnect."""
        self._closing = True
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self._drop()
        logger.info("MQTT connection closed")

    async def health_check(self) -> bool:
        """Broker is healthy while a live connection is held."""
        return self.connected

    # ==================== Publish / Subscribe ====================

    async def publish(
        self,
        topic: str,
        payload: str | bytes,
        qos: int = QOS_EXACTLY_ONCE,
        retain: bool = False,
        timeout: float | None = None,
    ) -> None:
        """Publish one message, raising BrokerError on failure or timeout."""
        try:
            await self.client.publish(
                topic, payload=payload, qos=qos, retain=retain, timeout=timeout
            )
        except aiomqtt.MqttError as e:
            raise BrokerError(f"Publish to {topic} failed: {e}", {"topic": topic}) from e

    async def subscribe(
        self, topic: str, handler: MessageHandler, qos: int = QOS_EXACTLY_ONCE
    ) -> None:
        """Register a handler for a topic filter; survives reconnects."""
        self._handlers[topic] = (handler, qos)
        if self._client is not None:
            await self._client.subscribe(topic, qos=qos)
        logger.info("Subscribed to MQTT topic", topic=topic, qos=qos)

    # ==================== Listener ====================

    async def _listen(self) -> None:
        while not self._closing:
            try:
                if self._client is None:
                    await self._open()
                    logger.info("MQTT reconnected", host=self._settings.host)
                async for message in self.client.messages:
                    await self._dispatch(str(message.topic), message.payload)
            except (aiomqtt.MqttError, BrokerError) as e:
                logger.warning("MQTT connection lost", error=str(e))
                await self._drop()
                await asyncio.sleep(self._reconnect_interval)

    async def _dispatch(self, topic: str, payload: Any) -> None:
        body = payload if isinstance(payload, bytes) else str(payload).encode()
        for topic_filter, (handler, _) in self._handlers.items():
            if not aiomqtt.Topic(topic).matches(topic_filter):
                continue
            try:
                result = handler(topic, body)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("MQTT handler failed", topic=topic, error=str(e))


# ==================== Topic Builders ====================


class Topics:
    """MQTT topic builders."""

    DEVICE_SYNC = "device/sync"

    @staticmethod
    def group_playlist(group_id: str) -> str:
        return f"ads/{group_id}"

    @staticmethod
    def device(device_id: str) -> str:
        return f"device/{device_id}"

    @staticmethod
    def device_register(device_id: str) -> str:
        return f"device/register/{device_id}"
