from mtgau.pipeline.cache import ImageCache
from mtgau.pipeline.providers import (
    DirectImageProvider,
    GathererProvider,
    PlaceholderProvider,
    ScryfallCdnProvider,
    ScryfallExactNameProvider,
    ScryfallFuzzyNameProvider,
    ScryfallIdProvider,
    default_providers,
)
from mtgau.pipeline.rate_governor import RateGovernor
from mtgau.pipeline.resolver import CardImageResolver
from mtgau.pipeline.scryfall import ScryfallCard, ScryfallClient
from mtgau.pipeline.validation import ImageValidator

__all__ = [
    "CardImageResolver",
    "DirectImageProvider",
    "GathererProvider",
    "ImageCache",
    "ImageValidator",
    "PlaceholderProvider",
    "RateGovernor",
    "ScryfallCard",
    "ScryfallCdnProvider",
    "ScryfallClient",
    "ScryfallExactNameProvider",
    "ScryfallFuzzyNameProvider",
    "ScryfallIdProvider",
    "default_providers",
]
