"""
Click Count Service

This service handles incrementing click counts for short links.

Design Decisions:
- Uses database-level atomic increment (UPDATE ... SET n = n + 1)
  instead of read-modify-write, so concurrent clicks are not lost
- last_accessed_at and updated_at move together with the counter
"""

from datetime import datetime
import uuid

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import ShortLink


class ClickCountService:
    """Service for managing the denormalized click counter."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def increment_click_count(self, short_link_id: uuid.UUID, accessed_at: datetime) -> None:
        """
        Increment the click count for a short link atomically.

        Args:
            short_link_id: Id of the resolved link
            accessed_at: Time of the resolution

        Note:
        - Silently does nothing if the link doesn't exist
        - Commit is handled by the caller
        """
        statement = (
            update(ShortLink)
            .where(ShortLink.id == short_link_id)
            .values(
                click_count=ShortLink.click_count + 1,
                last_accessed_at=accessed_at,
                updated_at=accessed_at,
            )
        )

        await self.session.execute(statement)
