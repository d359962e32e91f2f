"""
Background Task Helpers

Provides helper functions for background tasks that create their own database sessions.
Background tasks cannot use the endpoint's session as it's closed after the endpoint returns.

Tracking runs after the redirect response has been sent. Any failure is
logged and swallowed here: a broken click log must never turn into a
failed redirect.
"""

import logging
from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.db.models import ShortLink
from app.services.click_count_service import ClickCountService
from app.services.click_tracker import ClickTrackingService, RequestContext

logger = logging.getLogger(__name__)


async def track_click_background(
    session_factory: async_sessionmaker,
    slug: str,
    context: RequestContext,
    clicked_at: datetime,
    short_link_id: Optional[uuid.UUID] = None
) -> None:
    """
    Background task to record a click and bump the link's counter.

    Both writes share one transaction. When the redirect was served from
    the cache the link id is not known yet and is looked up by slug.

    Args:
        session_factory: Factory for a fresh database session
        slug: The slug that was accessed
        context: IP, User-Agent and Referer of the visitor
        clicked_at: Time of the click
        short_link_id: Id of the link, if already loaded
    """
    try:
        async with session_factory() as session:
            if short_link_id is None:
                result = await session.execute(
                    select(ShortLink.id).where(ShortLink.slug == slug)
                )
                short_link_id = result.scalar_one_or_none()
                if short_link_id is None:
                    logger.warning(f"Cached slug '{slug}' has no stored link, click not tracked")
                    return

            await ClickTrackingService(session).record_click(short_link_id, context, clicked_at)
            await ClickCountService(session).increment_click_count(short_link_id, clicked_at)
            await session.commit()
    except Exception as e:
        logger.error(
            f"Failed to track click for {slug}: {str(e)}",
            exc_info=True
        )
