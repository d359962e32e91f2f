"""
FastAPI dependencies for application-scoped components.

The cache and the outbound HTTP client live on ``app.state`` and are handed
to endpoints through these functions, so tests can swap any of them with
``app.dependency_overrides``.
"""

from typing import Optional

import httpx
from fastapi import Depends, Request

from app.core.clock import Clock, utc_now
from app.core.setting import settings
from app.services.unwrapper import RedirectUnwrapper
from app.services.url_cache import URLCache


def get_url_cache(request: Request) -> URLCache:
    return request.app.state.url_cache


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_clock() -> Clock:
    return utc_now


def get_unwrapper(
    client: httpx.AsyncClient = Depends(get_http_client)
) -> Optional[RedirectUnwrapper]:
    """Unwrapper bound to the shared client, or None when unwrapping is disabled."""
    if not settings.UNWRAP_ENABLED:
        return None
    return RedirectUnwrapper(
        client,
        max_hops=settings.UNWRAP_MAX_HOPS,
        hop_timeout=settings.UNWRAP_HOP_TIMEOUT,
        get_fallback=settings.UNWRAP_GET_FALLBACK
    )


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Handles proxies and load balancers by checking X-Forwarded-For header.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first one
        return forwarded_for.split(",")[0].strip()

    return request.client.host if request.client else "unknown"
