"""
Access Logging Middleware

One log line per request on the "url_shortener" logger:

    GET /promo 302 1.84ms IP:203.0.113.7 -> https://example.com/landing

Redirects carry their target so resolved slugs can be followed in the log,
and 5xx responses are logged at WARNING. The measured time is also returned
in the X-Process-Time header.

Runs as a Starlette BaseHTTPMiddleware. Click tracking is a background task
of the wrapped response, so it is not part of the measured time.
"""

import time
import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.dependencies import get_client_ip

logger = logging.getLogger("url_shortener")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log and X-Process-Time header for every request."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time = time.perf_counter() - start_time

        message = (
            f"{request.method} {request.url.path} "
            f"{response.status_code} {process_time*1000:.2f}ms "
            f"IP:{get_client_ip(request)}"
        )
        location = response.headers.get("location")
        if location and 300 <= response.status_code < 400:
            message = f"{message} -> {location}"

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, message)

        response.headers["X-Process-Time"] = str(process_time)

        return response


def add_logging_middleware(app):
    app.add_middleware(LoggingMiddleware)
