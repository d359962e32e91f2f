"""
Redirect Unwrapper

Follows the redirect chain of a submitted URL (t.co, bit.ly, tracking
links, ...) so the stored destination is the final page rather than
another shortener.

Design Decisions:
- One lightweight HEAD request per hop, redirects are never followed by
  the HTTP client itself so every hop can be recorded
- Servers that refuse HEAD (405/501) get a single streamed GET whose body
  is never read. This is the one case where a hop costs two requests; it
  is switched off with get_fallback=False (UNWRAP_GET_FALLBACK), which
  makes every hop exactly one HEAD
- Each hop has its own timeout; a failing hop ends the walk and is
  reported in the result instead of raised. A Location header that can't
  be parsed counts as a failing hop
- The walk stops on a cycle or once max_hops redirects were followed
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urljoin

import httpx

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 10
DEFAULT_HOP_TIMEOUT = 5.0

HEAD_NOT_ALLOWED = {405, 501}


@dataclass
class UnwrapResult:
    """Outcome of following a redirect chain."""
    original_url: str
    unwrapped_url: str
    redirect_chain: list[str] = field(default_factory=list)
    hop_count: int = 0
    elapsed_time: float = 0.0  # milliseconds
    error: Optional[str] = None

    @classmethod
    def passthrough(cls, url: str) -> "UnwrapResult":
        """Result for a URL that was not unwrapped at all."""
        return cls(original_url=url, unwrapped_url=url, redirect_chain=[url])


class RedirectUnwrapper:
    """
    Resolves a URL to its final destination by walking HTTP redirects.

    The HTTP client is injected so the application can share one connection
    pool and tests can plug in httpx.MockTransport.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_hops: int = DEFAULT_MAX_HOPS,
        hop_timeout: float = DEFAULT_HOP_TIMEOUT,
        get_fallback: bool = True,
    ):
        """
        Args:
            client: Shared async HTTP client
            max_hops: Maximum number of redirects followed
            hop_timeout: Timeout in seconds for each hop
            get_fallback: Retry a hop as a streamed GET when HEAD is refused
                (405/501); when False every hop is a single HEAD request
        """
        self.client = client
        self.max_hops = max_hops
        self.hop_timeout = hop_timeout
        self.get_fallback = get_fallback

    async def _hop(self, url: str) -> httpx.Response:
        """Issue one hop without following redirects."""
        response = await self.client.head(
            url, follow_redirects=False, timeout=self.hop_timeout
        )
        if not self.get_fallback or response.status_code not in HEAD_NOT_ALLOWED:
            return response

        async with self.client.stream(
            "GET", url, follow_redirects=False, timeout=self.hop_timeout
        ) as streamed:
            return streamed

    @staticmethod
    def _next_location(current_url: str, response: httpx.Response) -> Optional[str]:
        """
        Absolute URL the response redirects to, or None if it is final.

        Raises:
            ValueError: If the Location header is not a parseable URL
        """
        if not 300 <= response.status_code < 400:
            return None
        location = response.headers.get("location")
        if not location:
            return None
        # Relative locations resolve against the URL that issued them
        return urljoin(current_url, location)

    async def unwrap(self, url: str) -> UnwrapResult:
        """
        Follow redirects starting at ``url``.

        Args:
            url: The URL submitted by the user

        Returns:
            UnwrapResult with the final URL, the visited chain (input first),
            the number of redirects followed and the elapsed time in ms.
            ``error`` is set when a hop failed (transport error or a
            malformed Location); ``unwrapped_url`` is then the last URL
            reached before the failure.
        """
        started = time.perf_counter()
        chain = [url]
        current = url
        error = None

        while len(chain) - 1 < self.max_hops:
            try:
                response = await self._hop(current)
                next_url = self._next_location(current, response)
            except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
                error = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
                logger.warning(f"Unwrap of {url} stopped at {current}: {error}")
                break

            if next_url is None:
                break
            if next_url in chain:
                logger.info(f"Redirect cycle detected while unwrapping {url} at {next_url}")
                break

            chain.append(next_url)
            current = next_url

        return UnwrapResult(
            original_url=url,
            unwrapped_url=current,
            redirect_chain=chain,
            hop_count=len(chain) - 1,
            elapsed_time=(time.perf_counter() - started) * 1000,
            error=error,
        )
