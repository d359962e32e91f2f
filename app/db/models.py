"""
Database Models for URL Shortener Service

This module defines the SQLModel database schemas for:
- ShortLink: Stores the mapping between slugs and destination URLs
- ClickEvent: Append-only log of resolutions, with device/browser facts
  derived from the User-Agent at write time

Design Decisions:
- Separate ClickEvent table for better scalability (can be partitioned independently)
- Unique index on slug for fast lookups (most common operation)
- click_count denormalized in ShortLink for quick stats without joins
- Click events are cascade-deleted with their link
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlmodel import Field, SQLModel

from app.core.clock import ensure_utc, utc_now


class ShortLink(SQLModel, table=True):
    """
    Main table storing slug -> destination mappings.

    Fields:
    - id: Opaque UUID primary key
    - original_url: Destination URL (already unwrapped and UTM-tagged)
    - slug: Unique, case-sensitive path segment
    - expires_at: Optional expiry; a past value hides the link from redirects
    - click_count: Denormalized counter, incremented atomically
    - last_accessed_at: Time of the latest resolution
    - utm_parameters: UTM values, kept as structured data for display
    """
    __tablename__ = "short_links"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    original_url: str = Field(sa_column=Column(Text, nullable=False))
    slug: str = Field(
        sa_column=Column(String(20), nullable=False, unique=True, index=True),
        max_length=20
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    click_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    last_accessed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    utm_parameters: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    def is_expired(self, now: datetime) -> bool:
        """Expiry is derived from the clock at read time, never stored."""
        expires_at = ensure_utc(self.expires_at)
        return expires_at is not None and expires_at < ensure_utc(now)


class ClickEvent(SQLModel, table=True):
    """
    Click log table for detailed analytics.

    Raw request facts (IP, User-Agent, Referer) are stored next to the
    browser/OS/device facts parsed from the User-Agent. The parsed columns
    are written once and never recomputed; rows are never updated.
    """
    __tablename__ = "click_events"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    short_link_id: uuid.UUID = Field(
        sa_column=Column(
            Uuid,
            ForeignKey("short_links.id", ondelete="CASCADE"),
            nullable=False,
            index=True
        )
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    ip_address: Optional[str] = Field(default=None, sa_column=Column(String(45), nullable=True))  # IPv6 max length
    user_agent: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    referer: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    browser: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    browser_version: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    os: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    os_version: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    device: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    is_mobile: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    is_bot: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
