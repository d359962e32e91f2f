"""
FastAPI Endpoints for URL Shortener Service

This module defines all REST API endpoints with minimal logic.
Endpoints only handle:
- Request validation (Pydantic models)
- Error handling and HTTP responses
- Delegating to service layer

All business logic is in services.

Design Principles:
- Thin endpoints: Only validation and translation of service errors
- Service layer: All business logic
- Error handling: Proper HTTP status codes
"""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.dependencies import (
    get_client_ip,
    get_clock,
    get_http_client,
    get_unwrapper,
    get_url_cache,
)
from app.api.schemas import (
    ClickAnalyticsSchema,
    LinkStatsSchema,
    MetadataResponse,
    ShortenRequest,
    ShortenResponse,
    ShortLinkSchema,
    StatsResponse,
    UnwrapResultSchema,
)
from app.core.clock import Clock
from app.core.exceptions import (
    DatabaseError,
    InvalidSlugError,
    InvalidURLError,
    MetadataFetchError,
    ShortLinkNotFoundError,
    SlugConflictError,
)
from app.core.setting import settings
from app.core.validators import is_valid_url, sanitize_slug
from app.db.session import get_session, get_session_factory
from app.services.click_tracker import RequestContext
from app.services.metadata_service import fetch_page_metadata
from app.services.redirect_service import RedirectService
from app.services.stats_service import StatsService
from app.services.unwrapper import RedirectUnwrapper
from app.services.url_cache import URLCache
from app.services.url_service import URLShorteningService

logger = logging.getLogger(__name__)

router = APIRouter()


def _not_found(slug: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"URL '{slug}' not found or has expired"
    )


@router.post(
    "/api/urls/shorten",
    response_model=ShortenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a short URL",
    description="Takes a long URL and returns a short link, optionally with a custom slug, expiry and UTM parameters"
)
async def create_short_url(
    body: ShortenRequest,
    session: AsyncSession = Depends(get_session),
    unwrapper: Optional[RedirectUnwrapper] = Depends(get_unwrapper),
    clock: Clock = Depends(get_clock)
) -> ShortenResponse:
    """
    Create a new short link from a long URL.

    Returns:
        ShortenResponse with the stored link and the redirect-unwrapping report
    """
    try:
        url_service = URLShorteningService(
            session,
            unwrapper=unwrapper,
            clock=clock,
            slug_length=settings.SLUG_LENGTH
        )

        utm = body.utm_parameters.model_dump(exclude_none=True) if body.utm_parameters else None
        short_link, unwrap_result = await url_service.create_short_link(
            body.original_url,
            slug=body.slug,
            expires_at=body.expires_at,
            utm_parameters=utm
        )

        return ShortenResponse(
            short_url=ShortLinkSchema.model_validate(short_link),
            unwrapped_url=UnwrapResultSchema.model_validate(unwrap_result)
        )

    except (InvalidURLError, InvalidSlugError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except SlugConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    except DatabaseError as e:
        logger.error(f"Error creating short URL: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create shortened URL"
        )
    except Exception as e:
        logger.error(f"Unexpected error creating short URL: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create shortened URL: {str(e)}"
        )


@router.get(
    "/api/urls/metadata",
    response_model=MetadataResponse,
    summary="Get page metadata",
    description="Fetches a page and returns its title, description, OpenGraph image and favicon"
)
async def get_url_metadata(
    url: str = Query(..., description="URL of the page to preview"),
    client: httpx.AsyncClient = Depends(get_http_client)
) -> MetadataResponse:
    if not is_valid_url(url):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid URL format"
        )

    try:
        metadata = await fetch_page_metadata(client, url, timeout=settings.METADATA_TIMEOUT)
    except MetadataFetchError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

    return MetadataResponse.model_validate(metadata)


@router.get(
    "/api/urls/{slug}/stats",
    response_model=StatsResponse,
    summary="Get URL statistics",
    description="Returns the stored link together with click analytics"
)
async def get_url_stats(
    slug: str,
    session: AsyncSession = Depends(get_session)
) -> StatsResponse:
    """
    Get statistics for a short link.

    Expired links are still reported here.

    Raises:
        HTTPException 404: If slug not found
    """
    sanitized_slug = sanitize_slug(slug)
    if not sanitized_slug:
        raise _not_found(slug)

    try:
        stats = await StatsService(session).get_stats(sanitized_slug)
    except ShortLinkNotFoundError:
        raise _not_found(sanitized_slug)
    except DatabaseError as e:
        logger.error(f"Error getting URL stats: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get URL stats"
        )

    link = ShortLinkSchema.model_validate(stats.link)
    return StatsResponse(
        stats=LinkStatsSchema(
            **link.model_dump(),
            clicks=ClickAnalyticsSchema.model_validate(stats.clicks)
        )
    )


@router.get(
    "/{slug}",
    status_code=status.HTTP_302_FOUND,
    summary="Redirect to original URL",
    description="Takes a slug and redirects to the destination URL"
)
async def redirect_to_url(
    slug: str,
    request: Request,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    cache: URLCache = Depends(get_url_cache),
    clock: Clock = Depends(get_clock)
) -> RedirectResponse:
    """
    Redirect to the destination URL for a given slug.

    Click tracking is added as a background task and runs after the
    redirect has been sent.

    Raises:
        HTTPException 404: If slug is malformed, unknown or expired
    """
    sanitized_slug = sanitize_slug(slug)
    if not sanitized_slug:
        raise _not_found(slug)

    context = RequestContext(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        referer=request.headers.get("Referer")
    )

    redirect_service = RedirectService(session, cache, session_factory, clock=clock)
    try:
        original_url = await redirect_service.resolve_and_track(
            sanitized_slug, context, background_tasks.add_task
        )
    except ShortLinkNotFoundError:
        raise _not_found(sanitized_slug)
    except DatabaseError as e:
        logger.error(f"Error redirecting to URL: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to redirect to URL"
        )

    return RedirectResponse(
        url=original_url,
        status_code=status.HTTP_302_FOUND
    )
