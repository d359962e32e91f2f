"""
Hot-Path URL Cache

Bounded in-memory map from slug to destination URL, consulted before storage
on every redirect.

Design Decisions:
- Eviction is by insertion order (oldest inserted first), not LRU: a hit
  does not refresh an entry's position
- No TTL: entries live until evicted, even if the link expires in storage
- One instance per application, created explicitly and injected into the
  request path, so tests get their own isolated cache
- A lock guards every access; concurrent requests may see slightly stale
  values, which is acceptable
"""

import logging
import threading
from collections import OrderedDict
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 1000


class URLCache:
    """Insertion-ordered, size-bounded slug -> URL cache."""

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        if max_size < 1:
            raise ValueError("Cache size must be at least 1")
        self.max_size = max_size
        self._entries: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, slug: str) -> Optional[str]:
        """Return the cached URL for ``slug`` or None on a miss."""
        with self._lock:
            return self._entries.get(slug)

    def put(self, slug: str, url: str) -> None:
        """
        Insert or replace an entry.

        Replacing an existing slug keeps its original insertion position.
        Inserting a new slug into a full cache evicts exactly one entry,
        the oldest inserted.
        """
        with self._lock:
            if slug in self._entries:
                self._entries[slug] = url
                return

            if len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted '{evicted}' from URL cache")

            self._entries[slug] = url

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, slug: str) -> bool:
        with self._lock:
            return slug in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
