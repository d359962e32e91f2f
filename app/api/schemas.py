"""
API Request and Response Schemas

This module defines all Pydantic models for API requests and responses.
Separated from endpoints to keep concerns separated and enable reuse.

Design Principles:
- Request models: Define input validation (camelCase keys on the wire)
- Response models: Built from service objects via from_attributes and
  serialized with the camelCase names the client expects
"""

import uuid
from datetime import date as date_type, datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.core.clock import ensure_utc


class UTMParameters(BaseModel):
    """UTM values; both "source" and "utm_source" style keys are accepted."""
    source: Optional[str] = Field(None, validation_alias=AliasChoices("source", "utm_source"))
    medium: Optional[str] = Field(None, validation_alias=AliasChoices("medium", "utm_medium"))
    campaign: Optional[str] = Field(None, validation_alias=AliasChoices("campaign", "utm_campaign"))
    term: Optional[str] = Field(None, validation_alias=AliasChoices("term", "utm_term"))
    content: Optional[str] = Field(None, validation_alias=AliasChoices("content", "utm_content"))


class ShortenRequest(BaseModel):
    """Request model for URL shortening endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    original_url: str = Field(..., alias="originalUrl", description="The long URL to shorten")
    slug: Optional[str] = Field(None, description="Optional custom slug")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt", description="Optional expiry time")
    utm_parameters: Optional[UTMParameters] = Field(None, alias="utmParameters")

    @field_validator("original_url")
    @classmethod
    def strip_url(cls, value: str) -> str:
        return value.strip()

    @field_validator("slug")
    @classmethod
    def empty_slug_means_generated(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class _UTCModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @field_validator("*", mode="after")
    @classmethod
    def as_utc(cls, value):
        if isinstance(value, datetime):
            return ensure_utc(value)
        return value


class ShortLinkSchema(_UTCModel):
    """A stored short link as returned to clients."""
    id: uuid.UUID
    original_url: str = Field(..., alias="originalURL")
    slug: str
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")
    click_count: int = Field(..., alias="clickCount")
    last_accessed_at: Optional[datetime] = Field(None, alias="lastAccessedAt")
    utm_parameters: Optional[dict[str, str]] = Field(None, alias="utmParameters")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class UnwrapResultSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    original_url: str = Field(..., alias="originalURL")
    unwrapped_url: str = Field(..., alias="unwrappedURL")
    redirect_chain: list[str] = Field(..., alias="redirectChain")
    hop_count: int = Field(..., alias="hopCount")
    elapsed_time: float = Field(..., alias="elapsedTime", description="Milliseconds")
    error: Optional[str] = None


class ShortenResponse(BaseModel):
    """Response model for URL shortening endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    short_url: ShortLinkSchema = Field(..., alias="shortUrl")
    unwrapped_url: UnwrapResultSchema = Field(..., alias="unwrappedURL")


class DailyClicksSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    date: date_type
    count: int


class MobileVsDesktop(BaseModel):
    mobile: int
    desktop: int


class ClickAnalyticsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    total: int
    browsers: dict[str, int]
    os: dict[str, int]
    devices: dict[str, int]
    referrers: dict[str, int]
    over_time: list[DailyClicksSchema] = Field(..., alias="overTime")
    mobile_vs_desktop: MobileVsDesktop = Field(..., alias="mobileVsDesktop")


class LinkStatsSchema(ShortLinkSchema):
    clicks: ClickAnalyticsSchema


class StatsResponse(BaseModel):
    """Response model for statistics endpoint."""
    stats: LinkStatsSchema


class MetadataResponse(BaseModel):
    """Preview metadata scraped from a page."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    url: str
    title: str
    description: str
    image: str
    site_name: str = Field(..., alias="siteName")
    favicon: str
