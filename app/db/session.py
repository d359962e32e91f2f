"""
Database Session Management with Connection Pooling

This module handles async database connections using SQLAlchemy's async engine.
Uses a database abstraction layer to support different database backends.

Key Features:
- Database abstraction: Easy to switch between SQLite, PostgreSQL, etc.
- Async session management: Proper async context management
- Error handling: Automatic rollback on exceptions
- Session factory exposed as a dependency so background work (click
  tracking) can open its own sessions after the request session is closed
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from app.core.setting import settings
from app.db import models  # noqa: F401  (registers tables on SQLModel.metadata)
from app.db.sqlite_adapter import get_database_adapter

# Get the database adapter (currently SQLite by default)
db_adapter = get_database_adapter()

engine = db_adapter.create_engine(
    settings.DATABASE_URL
)


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    """Create a session factory configured the way the application expects."""
    return async_sessionmaker(
        bind,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,  # Prevents SQLAlchemy from expiring objects after commit
        autoflush=False,
    )


async_session_maker = build_session_maker(engine)


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Create any missing tables.

    Alembic migrations remain the source of truth for deployed databases;
    this only makes a fresh local SQLite file usable without a migration step.
    """
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function for FastAPI to get database session.

    This function:
    - Creates a new async session
    - Yields it to the endpoint
    - Automatically commits on success
    - Rolls back on exception
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker:
    """Dependency returning the factory used by background tasks."""
    return async_session_maker
