"""
Click Analytics

Two halves that both revolve around the click log:

Write path (tagging):
- tag_click() turns a raw User-Agent and Referer into the browser/OS/device
  facts stored on each ClickEvent
- User-Agent parsing is a plain function passed in by the caller, so the
  rest of this module does not depend on one parser's taxonomy

Read path (aggregation):
- aggregate_clicks() folds the stored click events of one link into
  counts per browser, OS, device and referrer host, a daily time series
  and a mobile/desktop split
- Grouping uses the stored values as-is, nothing is re-parsed on read
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, Optional
from urllib.parse import urlparse

from user_agents import parse as parse_ua_string

from app.core.clock import ensure_utc
from app.db.models import ClickEvent

UNKNOWN = "unknown"
DIRECT = "direct"

BOT_PATTERN = re.compile(r"bot|crawler|spider|crawling", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedUserAgent:
    browser: str = UNKNOWN
    browser_version: str = ""
    os: str = UNKNOWN
    os_version: str = ""
    device: str = UNKNOWN
    is_mobile: bool = False


@dataclass(frozen=True)
class ClickTags:
    """Everything derived from the request at the moment of a click."""
    browser: str
    browser_version: str
    os: str
    os_version: str
    device: str
    is_mobile: bool
    is_bot: bool
    referer: Optional[str] = None


UserAgentParser = Callable[[str], ParsedUserAgent]


def _device_class(ua) -> str:
    if ua.is_mobile:
        return "mobile"
    if ua.is_tablet:
        return "tablet"
    if ua.is_pc:
        return "desktop"
    return "other"


def parse_user_agent(user_agent: str) -> ParsedUserAgent:
    """
    Parse a User-Agent string with the user-agents library.

    Device is reduced to a class (mobile, tablet, desktop, other) and
    is_mobile is true only for the "mobile" class, so tablets count as
    non-mobile.
    """
    if not user_agent:
        return ParsedUserAgent()

    ua = parse_ua_string(user_agent)
    device = _device_class(ua)
    return ParsedUserAgent(
        browser=ua.browser.family or UNKNOWN,
        browser_version=ua.browser.version_string or "",
        os=ua.os.family or UNKNOWN,
        os_version=ua.os.version_string or "",
        device=device,
        is_mobile=device == "mobile",
    )


def is_bot(user_agent: Optional[str]) -> bool:
    """Crawler check on the raw User-Agent, independent of device parsing."""
    return bool(user_agent) and BOT_PATTERN.search(user_agent) is not None


def tag_click(
    user_agent: Optional[str],
    referer: Optional[str] = None,
    parser: UserAgentParser = parse_user_agent,
) -> ClickTags:
    """
    Derive the stored click facts from raw request headers.

    An empty or missing User-Agent yields "unknown" for browser, OS and
    device, empty versions, and both flags false.
    """
    parsed = parser(user_agent) if user_agent else ParsedUserAgent()
    return ClickTags(
        browser=parsed.browser,
        browser_version=parsed.browser_version,
        os=parsed.os,
        os_version=parsed.os_version,
        device=parsed.device,
        is_mobile=parsed.is_mobile,
        is_bot=is_bot(user_agent),
        referer=referer or None,
    )


@dataclass
class DailyClicks:
    date: date
    count: int


@dataclass
class ClickAnalytics:
    total: int = 0
    browsers: dict[str, int] = field(default_factory=dict)
    os: dict[str, int] = field(default_factory=dict)
    devices: dict[str, int] = field(default_factory=dict)
    referrers: dict[str, int] = field(default_factory=dict)
    over_time: list[DailyClicks] = field(default_factory=list)
    mobile_vs_desktop: dict[str, int] = field(
        default_factory=lambda: {"mobile": 0, "desktop": 0}
    )


def referrer_host(referer: Optional[str]) -> str:
    """
    Bucket key for a stored referer.

    Missing referers are "direct"; values with no parseable hostname are
    "unknown". Never raises.
    """
    if not referer:
        return DIRECT
    try:
        host = urlparse(referer).hostname
    except ValueError:
        return UNKNOWN
    return host or UNKNOWN


def aggregate_clicks(events: Iterable[ClickEvent]) -> ClickAnalytics:
    """
    Summarize the click events of a single link.

    Args:
        events: Click events (any order; the time series is sorted here)

    Returns:
        ClickAnalytics where mobile + desktop always equals total, since
        "desktop" means "not flagged mobile" (bots included)
    """
    browsers: Counter = Counter()
    systems: Counter = Counter()
    devices: Counter = Counter()
    referrers: Counter = Counter()
    per_day: Counter = Counter()
    mobile = 0
    total = 0

    for event in events:
        total += 1
        browsers[event.browser or UNKNOWN] += 1
        systems[event.os or UNKNOWN] += 1
        devices[event.device or UNKNOWN] += 1
        referrers[referrer_host(event.referer)] += 1
        per_day[ensure_utc(event.timestamp).date()] += 1
        if event.is_mobile:
            mobile += 1

    return ClickAnalytics(
        total=total,
        browsers=dict(browsers),
        os=dict(systems),
        devices=dict(devices),
        referrers=dict(referrers),
        over_time=[DailyClicks(date=day, count=per_day[day]) for day in sorted(per_day)],
        mobile_vs_desktop={"mobile": mobile, "desktop": total - mobile},
    )
