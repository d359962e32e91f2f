"""
Tests for short link creation.

Uses a real SQLite database per test (see conftest) and a mocked web for
redirect unwrapping.
"""

import re
from datetime import datetime, timezone

import pytest
from sqlalchemy import delete, func, select

from app.core.clock import ensure_utc
from app.core.exceptions import (
    DatabaseError,
    InvalidSlugError,
    InvalidURLError,
    SlugConflictError,
)
from app.db.models import ClickEvent, ShortLink
from app.services.unwrapper import RedirectUnwrapper
from app.services.url_service import URLShorteningService, append_utm_parameters


async def count_links(session) -> int:
    result = await session.execute(select(func.count()).select_from(ShortLink))
    return result.scalar_one()


class TestAppendUTMParameters:

    def test_appended_after_existing_query(self):
        url = append_utm_parameters("https://e.com/p?z=1", {"source": "x", "medium": "y"})
        assert url == "https://e.com/p?z=1&utm_source=x&utm_medium=y"

    def test_no_existing_query(self):
        url = append_utm_parameters("https://e.com/p", {"campaign": "spring sale"})
        assert url == "https://e.com/p?utm_campaign=spring+sale"

    def test_fragment_kept_last(self):
        url = append_utm_parameters("https://e.com/p#top", {"term": "shoes"})
        assert url == "https://e.com/p?utm_term=shoes#top"

    def test_empty_or_unknown_keys_ignored(self):
        assert append_utm_parameters("https://e.com/p", None) == "https://e.com/p"
        assert append_utm_parameters("https://e.com/p", {"source": ""}) == "https://e.com/p"
        assert append_utm_parameters("https://e.com/p", {"other": "x"}) == "https://e.com/p"

    def test_existing_utm_key_is_not_replaced(self):
        url = append_utm_parameters("https://e.com/p?utm_source=old", {"source": "new"})
        assert url == "https://e.com/p?utm_source=old&utm_source=new"


class TestCreateShortLink:
    """URLShorteningService.create_short_link"""

    @pytest.mark.asyncio
    async def test_generated_slug(self, session, clock):
        service = URLShorteningService(session, clock=clock)

        link, unwrap = await service.create_short_link("https://example.com/page")

        assert re.fullmatch(r"[A-Za-z0-9_-]{8}", link.slug)
        assert link.original_url == "https://example.com/page"
        assert link.click_count == 0
        assert link.last_accessed_at is None
        assert ensure_utc(link.created_at) == ensure_utc(link.updated_at) == clock()
        assert unwrap.hop_count == 0
        assert unwrap.unwrapped_url == "https://example.com/page"

    @pytest.mark.asyncio
    async def test_slug_length_is_configurable(self, session):
        link, _ = await URLShorteningService(session, slug_length=12).create_short_link(
            "https://example.com"
        )
        assert len(link.slug) == 12

    @pytest.mark.asyncio
    async def test_custom_slug_used_verbatim(self, session):
        link, _ = await URLShorteningService(session).create_short_link(
            "https://example.com", slug="My-Promo_1"
        )
        assert link.slug == "My-Promo_1"

    @pytest.mark.asyncio
    async def test_custom_slug_conflict_adds_nothing(self, session):
        service = URLShorteningService(session)
        await service.create_short_link("https://example.com/a", slug="taken")

        with pytest.raises(SlugConflictError):
            await service.create_short_link("https://example.com/b", slug="taken")

        assert await count_links(session) == 1
        stored = await service.get_by_slug("taken")
        assert stored.original_url == "https://example.com/a"

    @pytest.mark.asyncio
    async def test_slugs_are_case_sensitive(self, session):
        service = URLShorteningService(session)
        await service.create_short_link("https://example.com/a", slug="Promo")
        link, _ = await service.create_short_link("https://example.com/b", slug="promo")

        assert link.slug == "promo"
        assert await count_links(session) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("slug", ["has space", "a/b", "dots.here", "x" * 21])
    async def test_invalid_custom_slug(self, session, slug):
        with pytest.raises(InvalidSlugError):
            await URLShorteningService(session).create_short_link("https://example.com", slug=slug)
        assert await count_links(session) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["not a url", "ftp://example.com", "javascript:alert(1)"])
    async def test_invalid_url(self, session, url):
        with pytest.raises(InvalidURLError):
            await URLShorteningService(session).create_short_link(url)
        assert await count_links(session) == 0

    @pytest.mark.asyncio
    async def test_utm_parameters_appended_and_stored(self, session):
        link, _ = await URLShorteningService(session).create_short_link(
            "https://e.com/p?z=1",
            utm_parameters={"source": "x", "medium": "y"}
        )

        assert link.original_url == "https://e.com/p?z=1&utm_source=x&utm_medium=y"
        assert link.utm_parameters == {"source": "x", "medium": "y"}

    @pytest.mark.asyncio
    async def test_expiry_is_stored(self, session):
        expires_at = datetime(2030, 1, 1, tzinfo=timezone.utc)
        link, _ = await URLShorteningService(session).create_short_link(
            "https://example.com", expires_at=expires_at
        )
        assert ensure_utc(link.expires_at) == expires_at

    @pytest.mark.asyncio
    async def test_stores_unwrapped_destination(self, session, fake_web, http_client):
        fake_web.redirect("https://bit.example/abc", "https://mid.example/x")
        fake_web.redirect("https://mid.example/x", "https://final.example/landing")
        service = URLShorteningService(session, unwrapper=RedirectUnwrapper(http_client))

        link, unwrap = await service.create_short_link("https://bit.example/abc")

        assert link.original_url == "https://final.example/landing"
        assert unwrap.original_url == "https://bit.example/abc"
        assert unwrap.hop_count == 2

    @pytest.mark.asyncio
    async def test_utm_applied_to_unwrapped_destination(self, session, fake_web, http_client):
        fake_web.redirect("https://bit.example/abc", "https://final.example/landing?ref=1")
        service = URLShorteningService(session, unwrapper=RedirectUnwrapper(http_client))

        link, _ = await service.create_short_link(
            "https://bit.example/abc", utm_parameters={"source": "news"}
        )

        assert link.original_url == "https://final.example/landing?ref=1&utm_source=news"

    @pytest.mark.asyncio
    async def test_unwrap_error_keeps_submitted_url(self, session, fake_web, http_client):
        fake_web.redirect("https://bit.example/abc", "https://down.example/x")
        fake_web.fail("https://down.example/x")
        service = URLShorteningService(session, unwrapper=RedirectUnwrapper(http_client))

        link, unwrap = await service.create_short_link("https://bit.example/abc")

        assert link.original_url == "https://bit.example/abc"
        assert unwrap.error is not None

    @pytest.mark.asyncio
    async def test_malformed_redirect_keeps_submitted_url(self, session, fake_web, http_client):
        fake_web.redirect("https://short.example/a", "http://[broken/path")
        service = URLShorteningService(session, unwrapper=RedirectUnwrapper(http_client))

        link, unwrap = await service.create_short_link("https://short.example/a")

        assert link.original_url == "https://short.example/a"
        assert unwrap.error.startswith("ValueError")
        assert await count_links(session) == 1

    @pytest.mark.asyncio
    async def test_retries_generated_slug_on_collision(self, session, monkeypatch):
        service = URLShorteningService(session)
        await service.create_short_link("https://example.com/a", slug="aaaaaaaa")

        candidates = iter(["aaaaaaaa", "aaaaaaaa", "bbbbbbbb"])
        monkeypatch.setattr(
            "app.services.url_service.generate_slug", lambda length: next(candidates)
        )

        link, _ = await service.create_short_link("https://example.com/b")

        assert link.slug == "bbbbbbbb"
        assert await count_links(session) == 2

    @pytest.mark.asyncio
    async def test_concurrent_insert_maps_to_conflict(self, session, monkeypatch):
        """The unique index catches a slug taken between check and insert."""
        service = URLShorteningService(session)
        await service.create_short_link("https://example.com/a", slug="race")

        async def never_exists(slug):
            return False

        monkeypatch.setattr(service, "slug_exists", never_exists)

        with pytest.raises(SlugConflictError):
            await service.create_short_link("https://example.com/b", slug="race")

        assert await count_links(session) == 1

    @pytest.mark.asyncio
    async def test_concurrent_insert_of_generated_slug_retries(self, session, monkeypatch):
        """A generated slug that loses the race is replaced, never a 409."""
        service = URLShorteningService(session)
        await service.create_short_link("https://example.com/a", slug="abcd1234")

        async def never_exists(slug):
            return False

        candidates = iter(["abcd1234", "efgh5678"])
        monkeypatch.setattr(service, "slug_exists", never_exists)
        monkeypatch.setattr(
            "app.services.url_service.generate_slug", lambda length: next(candidates)
        )

        link, _ = await service.create_short_link("https://example.com/b")

        assert link.slug == "efgh5678"
        assert link.original_url == "https://example.com/b"
        assert await count_links(session) == 2

    @pytest.mark.asyncio
    async def test_generated_slug_retries_are_bounded(self, session, monkeypatch):
        service = URLShorteningService(session)
        await service.create_short_link("https://example.com/a", slug="abcd1234")

        async def never_exists(slug):
            return False

        monkeypatch.setattr(service, "slug_exists", never_exists)
        monkeypatch.setattr("app.services.url_service.generate_slug", lambda length: "abcd1234")

        with pytest.raises(DatabaseError):
            await service.create_short_link("https://example.com/b")

        assert await count_links(session) == 1


class TestCascadeDelete:

    @pytest.mark.asyncio
    async def test_deleting_link_removes_its_clicks(self, session, clock):
        link, _ = await URLShorteningService(session).create_short_link("https://example.com")
        session.add(ClickEvent(short_link_id=link.id, timestamp=clock()))
        session.add(ClickEvent(short_link_id=link.id, timestamp=clock()))
        await session.commit()

        await session.execute(delete(ShortLink).where(ShortLink.id == link.id))
        await session.commit()

        result = await session.execute(select(func.count()).select_from(ClickEvent))
        assert result.scalar_one() == 0
