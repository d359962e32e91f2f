"""
Shared fixtures.

Every test gets its own SQLite file under tmp_path, so sessions opened by
background tasks see exactly what the test committed and nothing leaks
between tests.
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from sqlmodel import SQLModel

from app.api.dependencies import get_clock, get_http_client, get_url_cache
from app.db.session import build_session_maker, get_session, get_session_factory
from app.db.sqlite_adapter import SQLiteAdapter
from app.main import app
from app.services.url_cache import URLCache


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeWeb:
    """
    Canned HTTP responses for httpx.MockTransport.

    Unknown URLs answer 200 with an empty body.
    """

    def __init__(self):
        self.routes: dict[str, tuple[int, dict, str]] = {}
        self.failures: set[str] = set()
        self.requests: list[httpx.Request] = []

    def redirect(self, source: str, target: str, status_code: int = 301) -> None:
        self.routes[source] = (status_code, {"Location": target}, "")

    def page(self, url: str, html: str = "", status_code: int = 200) -> None:
        self.routes[url] = (status_code, {"Content-Type": "text/html"}, html)

    def fail(self, url: str) -> None:
        self.failures.add(url)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url in self.failures:
            raise httpx.ConnectError("connection refused", request=request)
        if url in self.routes:
            status_code, headers, body = self.routes[url]
            return httpx.Response(status_code, headers=headers, text=body)
        return httpx.Response(200)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def fake_web():
    return FakeWeb()


@pytest_asyncio.fixture
async def http_client(fake_web):
    async with fake_web.client() as client:
        yield client


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = SQLiteAdapter().create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def url_cache():
    return URLCache(max_size=10)


@pytest_asyncio.fixture
async def api_client(session_factory, url_cache, http_client, clock):
    """HTTP client wired to the app with test storage, cache, web and clock."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_url_cache] = lambda: url_cache
    app.dependency_overrides[get_http_client] = lambda: http_client
    app.dependency_overrides[get_clock] = lambda: clock

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
