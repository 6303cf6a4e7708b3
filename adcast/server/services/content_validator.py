"""
Content lookup for scheduling requests.

Schedules may reference an ad, a live content item or a carousel. All three
are soft-deleted, so a row that exists with ``is_deleted`` set is treated the
same as a missing one.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adcast.common.exceptions import ContentNotFoundError
from adcast.common.logger import get_logger
from adcast.models import Ad, Carousel, ContentType, LiveContent

logger = get_logger(__name__)

SchedulableContent = Ad | LiveContent | Carousel

_CONTENT_MODELS: dict[ContentType, tuple[type[SchedulableContent], str]] = {
    ContentType.AD: (Ad, "ad_id"),
    ContentType.LIVE_CONTENT: (LiveContent, "live_content_id"),
    ContentType.CAROUSEL: (Carousel, "carousel_id"),
}


class ContentValidator:
    """Resolves (content_id, content_type) to a live content row."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_content(
        self, content_id: str, content_type: ContentType | str
    ) -> SchedulableContent | None:
        """Return the content row, or None when missing or soft-deleted."""
        try:
            model, pk = _CONTENT_MODELS[ContentType(content_type)]
        except ValueError:
            return None

        result = await self.session.execute(
            select(model).where(
                getattr(model, pk) == content_id,
                model.is_deleted.is_(False),
            )
        )
        return result.scalar_one_or_none()

    async def require_content(
        self, content_id: str, content_type: ContentType | str
    ) -> SchedulableContent:
        """Like find_content but raises ContentNotFoundError."""
        content = await self.find_content(content_id, content_type)
        if content is None:
            logger.info(
                "Content not found",
                content_id=content_id,
                content_type=str(content_type),
            )
            raise ContentNotFoundError(
                f"{content_type} {content_id} not found",
                {"content_id": content_id, "content_type": str(content_type)},
            )
        return content


async def load_contents(
    session: AsyncSession, wanted: dict[ContentType, set[str]]
) -> dict[tuple[str, str], SchedulableContent]:
    """
    Bulk-load non-deleted content rows keyed by (content_type, content_id).

    Used by the playlist assembler, which joins many schedule rows at once.
    """
    found: dict[tuple[str, str], SchedulableContent] = {}
    for content_type, ids in wanted.items():
        if not ids:
            continue
        model, pk = _CONTENT_MODELS[content_type]
        result = await session.execute(
            select(model).where(getattr(model, pk).in_(ids), model.is_deleted.is_(False))
        )
        for row in result.scalars():
            found[(content_type.value, getattr(row, pk))] = row
    return found
