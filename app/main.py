"""
FastAPI Application Entry Point

This module initializes the FastAPI application and configures:
- API routes
- Middleware (logging, CORS)
- Application-scoped components (hot-path cache, outbound HTTP client)
- Application metadata

Design Decisions:
- Clean separation: Routes, middleware, and app config are separate
- Shared components are created here and reach endpoints through
  dependencies, never through module globals
"""

import logging

import httpx
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import endpoints
from app.core.setting import settings
from app.db.session import engine, init_db
from app.middleware.logging import add_logging_middleware
from app.services.url_cache import URLCache

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="URL Shortener Service",
    description="Short links with click analytics, redirect unwrapping and UTM tagging",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.url_cache = URLCache(max_size=settings.CACHE_MAX_SIZE)

add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a client error (400), not FastAPI's default 422."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


# Health endpoints defined before router to match before catch-all route
@app.get("/", tags=["Health"])
async def root():
    """
    Root endpoint for health checks.

    Returns:
        Simple JSON response indicating service is running
    """
    return {
        "message": "URL Shortener Service",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}


app.include_router(endpoints.router, tags=["URL Shortener"])


@app.on_event("startup")
async def startup_event():
    """Create missing tables and open the shared HTTP client."""
    await init_db()
    app.state.http_client = httpx.AsyncClient()
    logger.info(
        f"URL shortener started: cache_size={settings.CACHE_MAX_SIZE}, "
        f"unwrap_enabled={settings.UNWRAP_ENABLED}"
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    client = getattr(app.state, "http_client", None)
    if client is not None:
        await client.aclose()
    await engine.dispose()
