"""
Input Validators and Sanitizers

This module provides validation and sanitization functions for user inputs.
These functions help prevent security issues and ensure data integrity.

Security Considerations:
- Input validation prevents injection attacks
- Only http/https destinations are accepted
- Length limits prevent DoS attacks
"""

import re
from typing import Optional
from urllib.parse import urlparse

MAX_URL_LENGTH = 2048
MAX_SLUG_LENGTH = 20  # Width of the short_links.slug column

SLUG_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def is_valid_slug(slug: str) -> bool:
    """
    Check that a slug only uses URL-path-safe characters: [A-Za-z0-9_-]

    Slugs are case-sensitive and are never rewritten, so no stripping
    or case folding happens here.
    """
    if not slug or not isinstance(slug, str):
        return False
    if len(slug) > MAX_SLUG_LENGTH:
        return False
    return SLUG_PATTERN.match(slug) is not None


def sanitize_slug(slug: str) -> Optional[str]:
    """
    Sanitize and validate a slug taken from a request path.

    Args:
        slug: The slug to sanitize

    Returns:
        Sanitized slug if valid, None otherwise

    Security:
    - Prevents SQL injection (slug is used in queries)
    - Prevents path traversal attacks
    """
    if not slug or not isinstance(slug, str):
        return None

    slug = slug.strip()

    if not is_valid_slug(slug):
        return None

    return slug


def validate_url_length(url: str, max_length: int = MAX_URL_LENGTH) -> bool:
    """
    Validate URL length to prevent DoS attacks.

    Args:
        url: The URL to validate
        max_length: Maximum allowed length (default: 2048 per RFC 7230)

    Returns:
        True if URL length is valid, False otherwise
    """
    return bool(url) and len(url) <= max_length


def is_valid_url(url: str) -> bool:
    """
    Validate URL format and security.

    Checks that URL uses http/https, has valid domain, and doesn't contain
    malicious patterns. Prevents javascript:, file:, and other dangerous schemes.

    Args:
        url: The URL string to validate

    Returns:
        True if valid and safe, False otherwise
    """
    if not url or not isinstance(url, str):
        return False

    if not validate_url_length(url):
        return False

    try:
        result = urlparse(url)
    except ValueError:
        return False

    if not result.scheme or not result.netloc:
        return False

    if result.scheme.lower() not in {"http", "https"}:
        return False

    domain = result.hostname or ""
    if domain != "localhost" and "." not in domain:
        return False

    malicious_patterns = ["javascript:", "data:", "file:", "vbscript:"]
    url_lower = url.lower()
    if any(pattern in url_lower for pattern in malicious_patterns):
        return False

    return True
