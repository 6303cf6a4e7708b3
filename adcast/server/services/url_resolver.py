"""
Playable URL resolution for stored media.

Ads keep only a storage key; players need a URL they can fetch. Two resolvers
are provided: S3 presigned GET URLs, and a CDN/egress endpoint that serves
objects as ``{base}/{ad_id}.{ext}``.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from adcast.common.config import StorageSettings, get_settings
from adcast.common.exceptions import ConfigError, UrlResolutionError
from adcast.common.logger import get_logger
from adcast.common.utils import file_extension, utcnow
from adcast.schemas.internal import ResolvedUrl

logger = get_logger(__name__)


class UrlResolver(Protocol):
    """Turns a storage key into a playable URL."""

    async def resolve(self, storage_key: str, object_id: str | None = None) -> ResolvedUrl: ...


class S3UrlResolver:
    """
    Presigned S3 GET URLs.

    The object is checked with ``head_object`` first so a dangling key fails
    here instead of on the player. boto3 is blocking, so both calls run in a
    worker thread.
    """

    def __init__(self, settings: StorageSettings | None = None, client: Any = None):
        self.settings = settings or get_settings().storage
        if not self.settings.bucket:
            raise ConfigError("storage.bucket is required for the s3 resolver")
        self._client = client or boto3.client("s3", region_name=self.settings.region)

    async def resolve(self, storage_key: str, object_id: str | None = None) -> ResolvedUrl:
        if not storage_key:
            raise UrlResolutionError("Empty storage key", {"object_id": object_id})
        try:
            url = await asyncio.to_thread(self._sign, storage_key)
        except (BotoCoreError, ClientError) as e:
            raise UrlResolutionError(
                f"Could not sign {storage_key}: {e}",
                {"storage_key": storage_key, "object_id": object_id},
            ) from e

        expiry = self.settings.url_expiry_seconds
        return ResolvedUrl(url=url, expires_at=utcnow() + timedelta(seconds=expiry))

    def _sign(self, storage_key: str) -> str:
        params = {"Bucket": self.settings.bucket, "Key": storage_key}
        self._client.head_object(**params)
        return self._client.generate_presigned_url(
            "get_object",
            Params=params,
            ExpiresIn=self.settings.url_expiry_seconds,
        )


class EgressUrlResolver:
    """URLs served by a CDN / egress function in front of the bucket."""

    def __init__(self, settings: StorageSettings | None = None):
        self.settings = settings or get_settings().storage
        if not self.settings.egress_base_url:
            raise ConfigError("storage.egress_base_url is required for the egress resolver")
        self.base_url = self.settings.egress_base_url.rstrip("/")

    async def resolve(self, storage_key: str, object_id: str | None = None) -> ResolvedUrl:
        if not storage_key:
            raise UrlResolutionError("Empty storage key", {"object_id": object_id})
        if object_id is None:
            return ResolvedUrl(url=f"{self.base_url}/{storage_key.lstrip('/')}")

        ext = file_extension(storage_key)
        name = f"{object_id}.{ext}" if ext else object_id
        return ResolvedUrl(url=f"{self.base_url}/{name}")


def create_url_resolver(settings: StorageSettings | None = None) -> UrlResolver:
    """Build the resolver selected by ``storage.resolver``."""
    settings = settings or get_settings().storage
    if settings.resolver == "egress":
        resolver: UrlResolver = EgressUrlResolver(settings)
    else:
        resolver = S3UrlResolver(settings)
    logger.info("URL resolver configured", resolver=settings.resolver)
    return resolver
