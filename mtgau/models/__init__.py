"""
Models package — export all card and price models.
"""

from mtgau.models.card import CacheEntry, CardFace, CardRef, ImageCandidate
from mtgau.models.price import PriceQuote

__all__ = ["CacheEntry", "CardFace", "CardRef", "ImageCandidate", "PriceQuote"]
