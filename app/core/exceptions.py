"""
Custom Exceptions

This module defines custom exceptions for better error handling
and more specific error messages.

Each exception maps to exactly one HTTP status in the API layer:
- InvalidURLError, InvalidSlugError -> 400
- SlugConflictError -> 409
- ShortLinkNotFoundError -> 404
- DatabaseError, MetadataFetchError -> 500
"""


class URLShortenerException(Exception):
    """Base exception for URL shortener service."""
    pass


class InvalidURLError(URLShortenerException):
    """Raised when URL validation fails."""

    def __init__(self, url: str, reason: str = "Invalid URL format"):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url}")


class InvalidSlugError(URLShortenerException):
    """Raised when a custom slug contains characters outside [A-Za-z0-9_-]."""

    def __init__(self, slug: str, reason: str = "Invalid slug format"):
        self.slug = slug
        self.reason = reason
        super().__init__(f"{reason}: '{slug}'")


class SlugConflictError(URLShortenerException):
    """Raised when a custom slug is already taken."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Custom slug '{slug}' already exists")


class ShortLinkNotFoundError(URLShortenerException):
    """Raised when a slug is unknown (or expired, on the redirect path)."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"URL '{slug}' not found or has expired")


class DatabaseError(URLShortenerException):
    """Raised when database operations fail."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


class MetadataFetchError(URLShortenerException):
    """Raised when a page could not be fetched or parsed for metadata."""

    def __init__(self, url: str, original_error: Exception = None):
        self.url = url
        self.original_error = original_error
        super().__init__(f"Failed to fetch URL metadata: {url}")
