"""
Tests for the redirect unwrapper.

Redirect chains are served by httpx.MockTransport (see FakeWeb in conftest).
"""

import httpx
import pytest

from app.services.unwrapper import RedirectUnwrapper, UnwrapResult


def refuses_head(request: httpx.Request) -> httpx.Response:
    """Server that answers 405 to HEAD and redirects start -> end on GET."""
    if request.method == "HEAD":
        return httpx.Response(405)
    if str(request.url) == "https://a.example/start":
        return httpx.Response(301, headers={"Location": "https://b.example/end"})
    return httpx.Response(200, text="body is never read")


class TestRedirectUnwrapper:
    """RedirectUnwrapper.unwrap"""

    @pytest.mark.asyncio
    async def test_no_redirect_returns_input(self, fake_web, http_client):
        """A URL answering 200 right away is its own destination."""
        result = await RedirectUnwrapper(http_client).unwrap("https://example.com/page")

        assert result.hop_count == 0
        assert result.unwrapped_url == result.original_url == "https://example.com/page"
        assert result.redirect_chain == ["https://example.com/page"]
        assert result.error is None
        assert result.elapsed_time >= 0

    @pytest.mark.asyncio
    async def test_follows_three_redirects(self, fake_web, http_client):
        fake_web.redirect("https://a.example/start", "https://b.example/one")
        fake_web.redirect("https://b.example/one", "https://c.example/two", status_code=302)
        fake_web.redirect("https://c.example/two", "https://d.example/final", status_code=307)

        result = await RedirectUnwrapper(http_client).unwrap("https://a.example/start")

        assert result.hop_count == 3
        assert len(result.redirect_chain) == 4
        assert result.redirect_chain[0] == "https://a.example/start"
        assert result.unwrapped_url == "https://d.example/final"
        assert result.error is None

    @pytest.mark.asyncio
    async def test_uses_head_without_following(self, fake_web, http_client):
        fake_web.redirect("https://a.example/start", "https://b.example/end")

        await RedirectUnwrapper(http_client).unwrap("https://a.example/start")

        assert [r.method for r in fake_web.requests] == ["HEAD", "HEAD"]

    @pytest.mark.asyncio
    async def test_relative_location_resolved_against_current_url(self, fake_web, http_client):
        fake_web.redirect("https://a.example/old/page", "/new/page")

        result = await RedirectUnwrapper(http_client).unwrap("https://a.example/old/page")

        assert result.unwrapped_url == "https://a.example/new/page"
        assert result.hop_count == 1

    @pytest.mark.asyncio
    async def test_cycle_stops_at_current_url(self, fake_web, http_client):
        fake_web.redirect("https://a.example/x", "https://a.example/y")
        fake_web.redirect("https://a.example/y", "https://a.example/x")

        result = await RedirectUnwrapper(http_client, max_hops=10).unwrap("https://a.example/x")

        assert result.unwrapped_url == "https://a.example/y"
        assert result.redirect_chain == ["https://a.example/x", "https://a.example/y"]
        assert result.hop_count == 1
        assert result.error is None

    @pytest.mark.asyncio
    async def test_stops_at_max_hops(self, fake_web, http_client):
        for i in range(10):
            fake_web.redirect(f"https://hop.example/{i}", f"https://hop.example/{i + 1}")

        result = await RedirectUnwrapper(http_client, max_hops=3).unwrap("https://hop.example/0")

        assert result.hop_count == 3
        assert result.unwrapped_url == "https://hop.example/3"
        assert len(result.redirect_chain) == 4

    @pytest.mark.asyncio
    async def test_hop_error_is_reported_not_raised(self, fake_web, http_client):
        fake_web.redirect("https://a.example/start", "https://down.example/next")
        fake_web.fail("https://down.example/next")

        result = await RedirectUnwrapper(http_client).unwrap("https://a.example/start")

        assert result.error is not None
        assert "ConnectError" in result.error
        assert result.unwrapped_url == "https://down.example/next"
        assert result.hop_count == 1

    @pytest.mark.asyncio
    async def test_malformed_location_is_reported_not_raised(self, fake_web, http_client):
        fake_web.redirect("https://short.example/a", "http://[broken/path")

        result = await RedirectUnwrapper(http_client).unwrap("https://short.example/a")

        assert result.error.startswith("ValueError")
        assert result.unwrapped_url == "https://short.example/a"
        assert result.redirect_chain == ["https://short.example/a"]
        assert result.hop_count == 0

    @pytest.mark.asyncio
    async def test_malformed_location_after_valid_hops(self, fake_web, http_client):
        fake_web.redirect("https://short.example/a", "https://mid.example/b")
        fake_web.redirect("https://mid.example/b", "http://[broken/path")

        result = await RedirectUnwrapper(http_client).unwrap("https://short.example/a")

        assert result.error is not None
        assert result.unwrapped_url == "https://mid.example/b"
        assert result.hop_count == 1

    @pytest.mark.asyncio
    async def test_redirect_without_location_is_final(self, fake_web, http_client):
        fake_web.page("https://a.example/odd", status_code=302)

        result = await RedirectUnwrapper(http_client).unwrap("https://a.example/odd")

        assert result.hop_count == 0
        assert result.unwrapped_url == "https://a.example/odd"

    @pytest.mark.asyncio
    async def test_head_not_allowed_falls_back_to_get(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(refuses_head)) as client:
            result = await RedirectUnwrapper(client).unwrap("https://a.example/start")

        assert result.unwrapped_url == "https://b.example/end"
        assert result.hop_count == 1

    @pytest.mark.asyncio
    async def test_without_get_fallback_each_hop_is_one_head(self):
        methods = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return refuses_head(request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await RedirectUnwrapper(client, get_fallback=False).unwrap(
                "https://a.example/start"
            )

        assert methods == ["HEAD"]
        assert result.unwrapped_url == "https://a.example/start"
        assert result.hop_count == 0
        assert result.error is None

    def test_passthrough_result(self):
        result = UnwrapResult.passthrough("https://example.com/a")

        assert result.hop_count == 0
        assert result.redirect_chain == ["https://example.com/a"]
        assert result.unwrapped_url == "https://example.com/a"
