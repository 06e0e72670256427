"""
Tests for the resolved image cache (mtgau/pipeline/cache.py).

Covers get/set, recency on re-insert, size-bounded truncation to the most
recent entries, and clear().
"""

from __future__ import annotations

import pytest

from mtgau.config import ImageSize, SourceTier
from mtgau.models.card import CacheEntry
from mtgau.pipeline.cache import ImageCache


def _entry(n: int) -> CacheEntry:
    return CacheEntry(url=f"https://img.test/{n}.jpg", tier=SourceTier.BY_ID)


def _key(n: int) -> tuple[str, ImageSize]:
    return (f"card-{n}", ImageSize.NORMAL)


def test_get_miss_returns_none() -> None:
    cache = ImageCache(max_entries=10)
    assert cache.get(_key(1)) is None


def test_set_then_get() -> None:
    cache = ImageCache(max_entries=10)
    cache.set(_key(1), _entry(1))

    entry = cache.get(_key(1))
    assert entry is not None
    assert entry.url == "https://img.test/1.jpg"
    assert entry.tier is SourceTier.BY_ID
    assert entry.inserted_at is not None


def test_one_entry_per_key() -> None:
    """Setting the same key twice replaces the entry."""
    cache = ImageCache(max_entries=10)
    cache.set(_key(1), _entry(1))
    cache.set(_key(1), _entry(2))

    assert len(cache) == 1
    assert cache.get(_key(1)).url == "https://img.test/2.jpg"


def test_sizes_are_separate_keys() -> None:
    cache = ImageCache(max_entries=10)
    cache.set(("card-1", ImageSize.SMALL), _entry(1))
    cache.set(("card-1", ImageSize.LARGE), _entry(2))

    assert len(cache) == 2


# ---------------------------------------------------------------------------
# Eviction
# ---------------------------------------------------------------------------


def test_eviction_keeps_most_recent_half() -> None:
    """Crossing the ceiling truncates to the newest half."""
    cache = ImageCache(max_entries=4)
    for n in range(5):
        cache.set(_key(n), _entry(n))

    assert len(cache) == 2
    assert list(cache) == [_key(3), _key(4)]


def test_cache_never_exceeds_ceiling() -> None:
    """Inserting far more than the ceiling never leaves it oversized."""
    cache = ImageCache(max_entries=500)
    for n in range(2000):
        cache.set(_key(n), _entry(n))
        assert len(cache) <= 500


def test_reinsert_moves_entry_to_most_recent() -> None:
    """A refreshed key survives truncation ahead of older keys."""
    cache = ImageCache(max_entries=4)
    for n in range(4):
        cache.set(_key(n), _entry(n))
    cache.set(_key(0), _entry(100))
    cache.set(_key(9), _entry(9))

    assert _key(0) in cache
    assert _key(1) not in cache


def test_single_entry_cache_keeps_newest() -> None:
    """max_entries=1 still holds the entry just stored."""
    cache = ImageCache(max_entries=1)
    cache.set(_key(1), _entry(1))
    cache.set(_key(2), _entry(2))

    assert list(cache) == [_key(2)]
    assert cache.get(_key(2)) is not None


def test_evict_if_oversized_noop_under_ceiling() -> None:
    cache = ImageCache(max_entries=10)
    cache.set(_key(1), _entry(1))

    assert cache.evict_if_oversized() == 0
    assert len(cache) == 1


def test_default_bounds_come_from_settings(test_settings) -> None:
    cache = ImageCache(config=test_settings)
    assert cache.max_entries == test_settings.IMAGE_CACHE_MAX_ENTRIES


def test_invalid_bounds_raise() -> None:
    with pytest.raises(ValueError):
        ImageCache(max_entries=0)
    with pytest.raises(ValueError):
        ImageCache(max_entries=10, retain_entries=20)


def test_clear_drops_everything() -> None:
    cache = ImageCache(max_entries=10)
    for n in range(5):
        cache.set(_key(n), _entry(n))

    cache.clear()

    assert len(cache) == 0
    assert cache.get(_key(1)) is None
