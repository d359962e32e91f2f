"""
Redirect Service

This service handles URL redirection logic: cache lookup, storage fallback,
expiry check and scheduling of click tracking.

Design Decisions:
- The hot-path cache is consulted first; a hit answers without touching storage
- Cache hits are NOT re-checked for expiry (entries have no TTL); only the
  storage path enforces expires_at
- Tracking (click row + counter) is handed to a scheduler and runs after
  the response, so it can never delay or fail a redirect
"""

import logging
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import Clock, utc_now
from app.core.exceptions import ShortLinkNotFoundError
from app.services.background_tasks import track_click_background
from app.services.click_tracker import RequestContext
from app.services.url_cache import URLCache
from app.services.url_service import URLShorteningService

logger = logging.getLogger(__name__)

# Matches BackgroundTasks.add_task(func, *args, **kwargs)
Scheduler = Callable[..., Any]


class RedirectService:
    """
    Service for resolving slugs to destinations and tracking the visit.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: URLCache,
        session_factory: async_sessionmaker,
        clock: Clock = utc_now
    ):
        """
        Args:
            session: Request-scoped session used for the storage lookup
            cache: Shared hot-path cache
            session_factory: Factory the background tracking task opens its session from
            clock: Source of the current time
        """
        self.session = session
        self.cache = cache
        self.session_factory = session_factory
        self.clock = clock
        self.url_service = URLShorteningService(session, clock=clock)

    async def resolve_and_track(
        self,
        slug: str,
        context: RequestContext,
        schedule: Scheduler
    ) -> str:
        """
        Resolve a slug to its destination URL and schedule click tracking.

        Args:
            slug: The slug from the request path
            context: Visitor facts recorded with the click
            schedule: Callable that runs a coroutine function after the response

        Returns:
            Destination URL

        Raises:
            ShortLinkNotFoundError: If the slug is unknown, or expired when
                resolved from storage
        """
        now = self.clock()

        cached_url = self.cache.get(slug)
        if cached_url is not None:
            logger.debug(f"Cache hit for '{slug}'")
            schedule(
                track_click_background,
                session_factory=self.session_factory,
                slug=slug,
                context=context,
                clicked_at=now,
            )
            return cached_url

        short_link = await self.url_service.get_by_slug(slug)
        if short_link is None or short_link.is_expired(now):
            raise ShortLinkNotFoundError(slug)

        schedule(
            track_click_background,
            session_factory=self.session_factory,
            slug=slug,
            context=context,
            clicked_at=now,
            short_link_id=short_link.id,
        )

        self.cache.put(slug, short_link.original_url)
        return short_link.original_url
