"""
Database module with abstraction layer.

This module provides:
- DatabaseAdapter interface: Abstract base class for database implementations
- SQLiteAdapter: SQLite-specific implementation (default)
- Session management: Database session creation and management

To add a new database backend:
1. Create a new adapter class inheriting from DatabaseAdapter
2. Implement all abstract methods
3. Update get_database_adapter() in sqlite_adapter.py to return the new adapter
"""

from app.db.interface import DatabaseAdapter
from app.db.session import (
    async_session_maker,
    build_session_maker,
    engine,
    get_session,
    get_session_factory,
    init_db,
)

__all__ = [
    "DatabaseAdapter",
    "async_session_maker",
    "build_session_maker",
    "engine",
    "get_session",
    "get_session_factory",
    "init_db",
]
