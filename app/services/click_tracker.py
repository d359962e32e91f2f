"""
Click Tracking Service

This service writes one ClickEvent per resolved redirect.
Separated from other services to keep concerns separated.

Design Decisions:
- Browser/OS/device facts are derived once here, at write time, and
  stored next to the raw headers
- Rows are only ever inserted; the table is append-only
- Commit is left to the caller so the insert and the counter update can
  share one transaction
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import ClickEvent
from app.services.click_analytics import UserAgentParser, parse_user_agent, tag_click


@dataclass(frozen=True)
class RequestContext:
    """Request facts captured when a short link is followed."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None


class ClickTrackingService:
    """
    Service for recording clicks.

    This service is designed to be called from background tasks
    to avoid blocking the redirect response.
    """

    def __init__(self, session: AsyncSession, parser: UserAgentParser = parse_user_agent):
        """
        Args:
            session: Async database session for database operations
            parser: User-Agent parsing function
        """
        self.session = session
        self.parser = parser

    async def record_click(
        self,
        short_link_id: uuid.UUID,
        context: RequestContext,
        timestamp: datetime
    ) -> ClickEvent:
        """
        Add a click event for a short link to the session.

        Args:
            short_link_id: Id of the resolved link
            context: IP, User-Agent and Referer of the visitor
            timestamp: Time of the click

        Returns:
            The pending ClickEvent
        """
        tags = tag_click(context.user_agent, context.referer, parser=self.parser)

        click = ClickEvent(
            short_link_id=short_link_id,
            timestamp=timestamp,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            referer=tags.referer,
            browser=tags.browser,
            browser_version=tags.browser_version,
            os=tags.os,
            os_version=tags.os_version,
            device=tags.device,
            is_mobile=tags.is_mobile,
            is_bot=tags.is_bot,
        )

        self.session.add(click)
        await self.session.flush()
        return click
