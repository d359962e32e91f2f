"""
Tests for slug generation and input validation.
"""

import re

import pytest

from app.core.validators import is_valid_slug, is_valid_url, sanitize_slug
from app.services.slug_generator import DEFAULT_SLUG_LENGTH, generate_slug


class TestSlugGenerator:

    def test_default_length(self):
        slug = generate_slug()
        assert len(slug) == DEFAULT_SLUG_LENGTH == 8

    @pytest.mark.parametrize("length", [1, 5, 8, 13, 20])
    def test_requested_length_is_exact(self, length):
        assert len(generate_slug(length)) == length

    def test_lowercase_hex(self):
        for _ in range(50):
            assert re.fullmatch(r"[0-9a-f]{8}", generate_slug())

    def test_generated_slugs_are_valid_slugs(self):
        assert all(is_valid_slug(generate_slug()) for _ in range(50))

    def test_mostly_distinct(self):
        slugs = {generate_slug() for _ in range(500)}
        assert len(slugs) > 490

    def test_rejects_non_positive_length(self):
        with pytest.raises(ValueError):
            generate_slug(0)


class TestSlugValidation:

    @pytest.mark.parametrize("slug", ["abc", "My-Link_2", "A", "x" * 20, "0123456789"])
    def test_valid(self, slug):
        assert is_valid_slug(slug)

    @pytest.mark.parametrize(
        "slug",
        ["", "has space", "slash/inside", "dot.slug", "émoji", "x" * 21, "../etc", "a?b"],
    )
    def test_invalid(self, slug):
        assert not is_valid_slug(slug)

    def test_case_is_preserved(self):
        assert sanitize_slug("AbC") == "AbC"

    def test_sanitize_strips_whitespace(self):
        assert sanitize_slug("  abc  ") == "abc"

    def test_sanitize_rejects_bad_input(self):
        assert sanitize_slug("bad slug") is None
        assert sanitize_slug("") is None
        assert sanitize_slug(None) is None


class TestURLValidation:

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com",
            "http://example.com/path?q=1#frag",
            "https://sub.domain.example.org:8443/a/b",
            "http://localhost:8000/health",
        ],
    )
    def test_valid(self, url):
        assert is_valid_url(url)

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "example.com",
            "ftp://example.com/file",
            "javascript:alert(1)",
            "https://",
            "https://nodot",
            "https://example.com/?next=javascript:alert(1)",
            "https://example.com/" + "a" * 2048,
        ],
    )
    def test_invalid(self, url):
        assert not is_valid_url(url)
