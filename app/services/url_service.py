"""
URL Shortening Service

This service handles the core business logic for creating short links:
- Validating the submitted URL
- Unwrapping redirect chains (best effort)
- Appending UTM campaign parameters
- Choosing a unique slug (custom or generated)

Design Decisions:
- Random hex slugs: no coordination between instances is needed; the
  uniqueness check against storage is repeated until an unused slug is found
- Custom slugs are validated and rejected on conflict, never altered
- The unique index on slug is the final guard against two concurrent
  creations picking the same slug: a custom slug that loses the race is a
  conflict, a generated one is replaced and the insert retried
- Unwrapping can never fail a creation: on error the submitted URL is kept
"""

import logging
from datetime import datetime
from typing import Optional, TYPE_CHECKING
from urllib.parse import urlencode, urlsplit, urlunsplit

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, ensure_utc, utc_now
from app.core.exceptions import (
    DatabaseError,
    InvalidSlugError,
    InvalidURLError,
    SlugConflictError,
)
from app.core.validators import is_valid_slug, is_valid_url
from app.db.models import ShortLink
from app.services.slug_generator import DEFAULT_SLUG_LENGTH, generate_slug
from app.services.unwrapper import UnwrapResult

if TYPE_CHECKING:
    from app.services.unwrapper import RedirectUnwrapper

logger = logging.getLogger(__name__)

UTM_KEYS = ("source", "medium", "campaign", "term", "content")

# Inserts of a generated slug that lose a race on the unique index
MAX_INSERT_ATTEMPTS = 5


def append_utm_parameters(url: str, utm_parameters: Optional[dict[str, str]]) -> str:
    """
    Append UTM parameters to a URL's query string.

    Existing query parameters are kept as they are and the UTM pairs are
    added after them as utm_<key>=<value>. A key that is already present
    is appended again rather than replaced.

    Example:
        append_utm_parameters("https://e.com/p?z=1", {"source": "x"})
        -> "https://e.com/p?z=1&utm_source=x"
    """
    pairs = [
        (f"utm_{key}", value)
        for key, value in (utm_parameters or {}).items()
        if key in UTM_KEYS and value
    ]
    if not pairs:
        return url

    parts = urlsplit(url)
    encoded = urlencode(pairs)
    query = f"{parts.query}&{encoded}" if parts.query else encoded
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


class URLShorteningService:
    """
    Core business logic for creating short links.

    Handles URL validation, unwrapping, UTM tagging, slug selection and
    persistence. Separated from API layer for testability and maintainability.
    """

    def __init__(
        self,
        session: AsyncSession,
        unwrapper: Optional['RedirectUnwrapper'] = None,
        clock: Clock = utc_now,
        slug_length: int = DEFAULT_SLUG_LENGTH
    ):
        """
        Initialize the URL shortening service.

        Args:
            session: Database session
            unwrapper: Redirect unwrapper; when None, URLs are stored as submitted
            clock: Source of the current time
            slug_length: Length of generated slugs
        """
        self.session = session
        self.unwrapper = unwrapper
        self.clock = clock
        self.slug_length = slug_length

    async def get_by_slug(self, slug: str) -> Optional[ShortLink]:
        """
        Retrieve a short link by slug, expired or not.

        Raises:
            DatabaseError: If the lookup fails
        """
        try:
            statement = select(ShortLink).where(ShortLink.slug == slug)
            result = await self.session.execute(statement)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to load slug '{slug}'", original_error=e)

    async def slug_exists(self, slug: str) -> bool:
        try:
            statement = select(ShortLink.id).where(ShortLink.slug == slug).limit(1)
            result = await self.session.execute(statement)
            return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to check slug '{slug}'", original_error=e)

    async def _unwrap(self, url: str) -> tuple[str, UnwrapResult]:
        """Return the URL to store together with the unwrap report."""
        if self.unwrapper is None:
            return url, UnwrapResult.passthrough(url)

        result = await self.unwrapper.unwrap(url)
        if result.error:
            return url, result
        if not is_valid_url(result.unwrapped_url):
            logger.warning(
                f"Ignoring unwrapped destination {result.unwrapped_url} for {url}: not a valid URL"
            )
            return url, result
        return result.unwrapped_url, result

    async def _resolve_slug(self, custom_slug: Optional[str]) -> str:
        if custom_slug is not None:
            if not is_valid_slug(custom_slug):
                raise InvalidSlugError(
                    custom_slug,
                    reason="Slug may only contain letters, digits, '-' and '_' (max 20 characters)"
                )
            if await self.slug_exists(custom_slug):
                raise SlugConflictError(custom_slug)
            return custom_slug

        slug = generate_slug(self.slug_length)
        while await self.slug_exists(slug):
            logger.debug(f"Generated slug '{slug}' already taken, retrying")
            slug = generate_slug(self.slug_length)
        return slug

    async def create_short_link(
        self,
        original_url: str,
        slug: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        utm_parameters: Optional[dict[str, str]] = None
    ) -> tuple[ShortLink, UnwrapResult]:
        """
        Create a new short link.

        Args:
            original_url: The long URL to shorten
            slug: Optional custom slug
            expires_at: Optional expiry time
            utm_parameters: Optional UTM values keyed by source/medium/campaign/term/content

        Returns:
            The persisted ShortLink and the unwrap report for the submitted URL

        Raises:
            InvalidURLError: If URL format is invalid
            InvalidSlugError: If the custom slug is malformed
            SlugConflictError: If the custom slug is already taken
            DatabaseError: If database operation fails, or no generated slug could be stored
        """
        if not is_valid_url(original_url):
            raise InvalidURLError(
                original_url,
                reason="Invalid URL format. URL must use http:// or https:// and have a valid domain"
            )

        destination, unwrap_result = await self._unwrap(original_url)

        utm = {key: value for key, value in (utm_parameters or {}).items() if value}
        destination = append_utm_parameters(destination, utm)

        for _ in range(MAX_INSERT_ATTEMPTS):
            chosen_slug = await self._resolve_slug(slug)

            now = self.clock()
            short_link = ShortLink(
                original_url=destination,
                slug=chosen_slug,
                expires_at=ensure_utc(expires_at),
                click_count=0,
                utm_parameters=utm or None,
                created_at=now,
                updated_at=now
            )

            try:
                self.session.add(short_link)
                await self.session.flush()
                await self.session.commit()
                await self.session.refresh(short_link)
                break
            except IntegrityError as e:
                await self.session.rollback()
                logger.info(f"Slug '{chosen_slug}' was taken concurrently: {e.orig}")
                if slug is not None:
                    raise SlugConflictError(chosen_slug)
            except SQLAlchemyError as e:
                await self.session.rollback()
                raise DatabaseError(
                    f"Failed to create short URL: {str(e)}",
                    original_error=e
                )
        else:
            raise DatabaseError(
                f"Failed to store a generated slug after {MAX_INSERT_ATTEMPTS} attempts"
            )

        logger.info(f"Created short link '{chosen_slug}' -> {destination}")
        return short_link, unwrap_result
