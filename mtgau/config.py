"""
MTG AU Marketplace — Configuration & Constants

Every upstream URL, timeout, cache bound and pricing constant used by the
image/price resolution core lives here. No hardcoded values in business logic.

Usage:
    from mtgau.config import settings
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic_settings import BaseSettings


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ImageSize(str, Enum):
    """Scryfall image size tokens accepted by the resolver."""
    SMALL = "small"              # 146x204
    NORMAL = "normal"            # 488x680
    LARGE = "large"              # 672x936
    ART_CROP = "art_crop"
    BORDER_CROP = "border_crop"  # 480x680


class SourceTier(str, Enum):
    """Image source tiers, declared in order of preference."""
    DIRECT = "direct"
    BY_ID = "by_id"
    BY_NAME_EXACT = "by_name_exact"
    BY_NAME_FUZZY = "by_name_fuzzy"
    LEGACY = "legacy"
    PLACEHOLDER = "placeholder"

    @property
    def rank(self) -> int:
        """Lower rank is preferred."""
        return list(SourceTier).index(self)


class Finish(str, Enum):
    """Printing finish. Selects which raw price fields are consulted."""
    NONFOIL = "nonfoil"
    FOIL = "foil"
    ETCHED = "etched"

    @property
    def price_suffix(self) -> str:
        return "" if self is Finish.NONFOIL else f"_{self.value}"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Central configuration for the resolution core.

    Loads from environment variables with fallback defaults.
    """

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # -----------------------------------------------------------------------
    # Upstream endpoints
    # -----------------------------------------------------------------------
    SCRYFALL_API_URL: str = "https://api.scryfall.com"
    SCRYFALL_CDN_URL: str = "https://cards.scryfall.io"
    GATHERER_IMAGE_URL: str = "https://gatherer.wizards.com/Handlers/Image.ashx"
    HTTP_USER_AGENT: str = "MTGAustraliaMarketplace/1.0"

    # -----------------------------------------------------------------------
    # Scryfall request pacing & timeouts
    # Scryfall asks for 50-100ms between requests
    # -----------------------------------------------------------------------
    SCRYFALL_MIN_REQUEST_INTERVAL_SECONDS: float = 0.1
    SCRYFALL_REQUEST_TIMEOUT_SECONDS: float = 3.0

    # -----------------------------------------------------------------------
    # Validation gate
    # -----------------------------------------------------------------------
    IMAGE_VALIDATION_TIMEOUT_SECONDS: float = 5.0
    IMAGE_VALIDATE_BY_DEFAULT: bool = False

    # -----------------------------------------------------------------------
    # Image cache bounds (size-bounded only, no TTL)
    # -----------------------------------------------------------------------
    IMAGE_CACHE_MAX_ENTRIES: int = 500
    IMAGE_CACHE_RETAIN_ENTRIES: int = 250

    # -----------------------------------------------------------------------
    # Placeholders, one per size
    # -----------------------------------------------------------------------
    PLACEHOLDER_IMAGE_URLS: dict[str, str] = {
        "small": "https://via.placeholder.com/146x204?text=MTG+Card",
        "normal": "https://via.placeholder.com/488x680?text=MTG+Card",
        "large": "https://via.placeholder.com/672x936?text=MTG+Card",
        "art_crop": "https://via.placeholder.com/626x457?text=MTG+Card",
        "border_crop": "https://via.placeholder.com/480x680?text=MTG+Card",
    }

    # -----------------------------------------------------------------------
    # Live Forex API (ExchangeRate-API)
    # -----------------------------------------------------------------------
    EXCHANGERATE_API_KEY: str = ""
    EXCHANGERATE_API_URL: str = "https://v6.exchangerate-api.com/v6"
    EXCHANGE_RATE_REFRESH_SECONDS: int = 24 * 60 * 60
    EXCHANGE_RATE_REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Scryfall publishes USD; every other currency is derived from it
    REFERENCE_CURRENCY: str = "USD"
    # Used before the first refresh completes and whenever refresh fails
    FALLBACK_EXCHANGE_RATES: dict[str, Decimal] = {
        "AUD": Decimal("1.55"),
    }

    # -----------------------------------------------------------------------
    # Pricing
    # -----------------------------------------------------------------------
    DEFAULT_CURRENCY: str = "AUD"
    # Unverified heuristic: etched foils priced at foil × 1.2 when no
    # etched quote exists. Tune or disable (set to 0) per business input.
    ETCHED_FOIL_MULTIPLIER: Decimal = Decimal("1.2")

    # -----------------------------------------------------------------------
    # Logging
    # -----------------------------------------------------------------------
    LOG_LEVEL: str = "INFO"


# Singleton instance
settings = Settings()
