"""
MTG AU Marketplace — Resolved Image Cache

Memoizes resolved image URLs per (card identity, size). Published card
images don't change, so entries never expire by time; memory is bounded by
size only. When the cache grows past `max_entries`, only the most recently
inserted `retain_entries` survive (recency-biased truncation, not strict LRU).

Force-refresh is the caller's job: the resolver skips get() and overwrites.
"""

from __future__ import annotations

from typing import Iterator

import structlog

from mtgau.config import ImageSize, Settings, settings as default_settings
from mtgau.models.card import CacheEntry

logger = structlog.get_logger(__name__)

CacheKey = tuple[str, ImageSize]


class ImageCache:
    """Insertion-ordered, size-bounded map of CacheKey -> CacheEntry."""

    def __init__(
        self,
        max_entries: int | None = None,
        retain_entries: int | None = None,
        config: Settings | None = None,
    ):
        cfg = config or default_settings
        self._max_entries = max_entries if max_entries is not None else cfg.IMAGE_CACHE_MAX_ENTRIES
        if retain_entries is None:
            retain_entries = (
                cfg.IMAGE_CACHE_RETAIN_ENTRIES if max_entries is None else max(1, max_entries // 2)
            )
        if self._max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {self._max_entries}")
        if not 0 <= retain_entries <= self._max_entries:
            raise ValueError(
                f"retain_entries must be between 0 and max_entries, got {retain_entries}"
            )
        self._retain_entries = retain_entries
        self._entries: dict[CacheKey, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[CacheKey]:
        return iter(self._entries)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: CacheKey) -> CacheEntry | None:
        return self._entries.get(key)

    def set(self, key: CacheKey, entry: CacheEntry) -> None:
        """Store `entry`, making it the most recent, then enforce the bound."""
        self._entries.pop(key, None)
        self._entries[key] = entry
        self.evict_if_oversized()

    def evict_if_oversized(self) -> int:
        """
        Truncate to the most recent `retain_entries` when over the ceiling.

        Returns:
            Number of entries evicted.
        """
        size = len(self._entries)
        if size <= self._max_entries:
            return 0

        keep = list(self._entries.items())[size - self._retain_entries:] if self._retain_entries else []
        self._entries = dict(keep)
        evicted = size - len(self._entries)

        logger.info(
            "image_cache_evicted",
            evicted=evicted,
            retained=len(self._entries),
            max_entries=self._max_entries,
            source="cache",
        )
        return evicted

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        logger.info("image_cache_cleared", cleared=count, source="cache")
