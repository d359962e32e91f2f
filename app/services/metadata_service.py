"""
Page Metadata Service

Fetches a page and extracts the title, description, OpenGraph image, site
name and favicon used for link previews.
"""

import logging
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from app.core.exceptions import MetadataFetchError

logger = logging.getLogger(__name__)

DEFAULT_METADATA_TIMEOUT = 12.0
METADATA_USER_AGENT = "Mozilla/5.0 (compatible; URLShortenerBot/1.0)"

FAVICON_RELS = ("icon", "shortcut icon", "apple-touch-icon")


@dataclass
class PageMetadata:
    url: str
    title: str = ""
    description: str = ""
    image: str = ""
    site_name: str = ""
    favicon: str = ""


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def _favicon_url(soup: BeautifulSoup, page_url: str) -> str:
    parts = urlsplit(page_url)
    origin = f"{parts.scheme}://{parts.netloc}"

    # rel is a multi-valued attribute, bs4 hands it back as a list
    links = [
        (" ".join(link.get("rel") or []).lower(), link["href"])
        for link in soup.find_all("link", href=True)
    ]
    for rel in FAVICON_RELS:
        for link_rel, href in links:
            if link_rel == rel:
                return urljoin(f"{origin}/", href)

    return f"{origin}/favicon.ico"


def extract_metadata(html: str, url: str) -> PageMetadata:
    """Pull preview fields out of an HTML document."""
    soup = BeautifulSoup(html, "html.parser")

    title = soup.title.get_text(strip=True) if soup.title else ""
    return PageMetadata(
        url=url,
        title=title or _meta_content(soup, property="og:title"),
        description=(
            _meta_content(soup, name="description")
            or _meta_content(soup, property="og:description")
        ),
        image=_meta_content(soup, property="og:image"),
        site_name=_meta_content(soup, property="og:site_name"),
        favicon=_favicon_url(soup, url),
    )


async def fetch_page_metadata(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = DEFAULT_METADATA_TIMEOUT
) -> PageMetadata:
    """
    Download ``url`` and extract its preview metadata.

    Raises:
        MetadataFetchError: If the page can't be fetched
    """
    try:
        response = await client.get(
            url,
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": METADATA_USER_AGENT}
        )
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Error fetching URL metadata for {url}: {e}")
        raise MetadataFetchError(url, original_error=e)

    return extract_metadata(response.text, url)
