"""
Database Adapter Interface

Everything backend-specific about building the async engine lives behind
this interface: pool class, driver connect args, engine options and
per-connection setup. session.py only ever talks to an adapter, so moving
the link store from SQLite to PostgreSQL means adding one adapter class.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import Pool


class DatabaseAdapter(ABC):
    """Builds and configures the AsyncEngine for one database backend."""

    @abstractmethod
    def create_engine(self, database_url: str, **kwargs) -> AsyncEngine:
        """
        Create the async engine for ``database_url``.

        Keyword arguments override the adapter's defaults (tests use this
        to point at a throwaway database).
        """

    @abstractmethod
    def get_pool_class(self) -> Optional[type[Pool]]:
        """Pool class for this backend, or None for SQLAlchemy's default."""

    @abstractmethod
    def get_connect_args(self) -> dict[str, Any]:
        pass

    @abstractmethod
    def get_engine_kwargs(self) -> dict[str, Any]:
        pass

    @abstractmethod
    def configure_engine(self, engine: AsyncEngine) -> None:
        """
        Apply per-connection settings once the engine exists.

        Click events rely on ON DELETE CASCADE, so backends where foreign
        keys are opt-in must switch enforcement on here.
        """
