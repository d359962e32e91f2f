"""
Statistics Service

This service handles retrieving statistics for short links.

Design Decisions:
- Expired links stay queryable: expiry only hides a link from redirects
- Analytics are computed on every request from the click log, nothing is
  cached server-side
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DatabaseError, ShortLinkNotFoundError
from app.db.models import ClickEvent, ShortLink
from app.services.click_analytics import ClickAnalytics, aggregate_clicks
from app.services.url_service import URLShorteningService


@dataclass
class LinkStats:
    link: ShortLink
    clicks: ClickAnalytics


class StatsService:
    """
    Service for retrieving link statistics.

    Combines the stored link record with analytics aggregated from its
    click events.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.url_service = URLShorteningService(session)

    async def get_click_events(self, short_link: ShortLink) -> list[ClickEvent]:
        """All click events of a link, oldest first."""
        try:
            statement = (
                select(ClickEvent)
                .where(ClickEvent.short_link_id == short_link.id)
                .order_by(ClickEvent.timestamp.asc())
            )
            result = await self.session.execute(statement)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to load clicks for '{short_link.slug}'", original_error=e
            )

    async def get_stats(self, slug: str) -> LinkStats:
        """
        Get the link record and its click analytics.

        Raises:
            ShortLinkNotFoundError: If the slug is unknown
            DatabaseError: If a query fails
        """
        short_link = await self.url_service.get_by_slug(slug)
        if short_link is None:
            raise ShortLinkNotFoundError(slug)

        events = await self.get_click_events(short_link)
        return LinkStats(link=short_link, clicks=aggregate_clicks(events))
