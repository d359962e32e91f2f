"""
Slug Generator

Generates short random slugs for new links. Slugs are hex strings built from
a cryptographically secure random source, so they are URL-safe as-is.

Uniqueness is not guaranteed here: callers check storage and call again on
collision (see URLShorteningService).
"""

import secrets

DEFAULT_SLUG_LENGTH = 8


def generate_slug(length: int = DEFAULT_SLUG_LENGTH) -> str:
    """
    Generate a random hexadecimal slug.

    Args:
        length: Number of characters in the slug (default: 8)

    Returns:
        Lowercase hex string of exactly ``length`` characters

    Example:
        generate_slug() -> "9f86d081"
    """
    if length < 1:
        raise ValueError("Slug length must be positive")
    # token_hex(n) yields 2n characters; one byte per character is plenty
    return secrets.token_hex(length)[:length]
