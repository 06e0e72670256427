"""
MTG AU Marketplace — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- Isolated Settings (no .env, no pacing delay, no live forex key)
- Scryfall card payloads from tests/fixtures/
- A resolver wired to a respx-mockable Scryfall client
- Async test support via pytest-asyncio
"""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import AsyncGenerator

import pytest

from mtgau.config import Settings
from mtgau.pipeline.cache import ImageCache
from mtgau.pipeline.providers import default_providers
from mtgau.pipeline.rate_governor import RateGovernor
from mtgau.pipeline.resolver import CardImageResolver
from mtgau.pipeline.scryfall import ScryfallClient
from mtgau.pipeline.validation import ImageValidator
from mtgau.pricing.forex import ExchangeRateState

FIXTURES = Path(__file__).parent / "fixtures"

SCRYFALL_URL = "https://api.scryfall.com"
FURY_SLIVER_ID = "0000579f-7b35-4ed3-b44c-db2a538066fe"
DELVER_ID = "6f35e364-81d9-4888-993b-acc7a53d963c"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment, with pacing disabled."""
    return Settings(
        _env_file=None,
        SCRYFALL_API_URL=SCRYFALL_URL,
        SCRYFALL_MIN_REQUEST_INTERVAL_SECONDS=0.0,
        SCRYFALL_REQUEST_TIMEOUT_SECONDS=1.0,
        IMAGE_VALIDATION_TIMEOUT_SECONDS=1.0,
        IMAGE_VALIDATE_BY_DEFAULT=False,
        EXCHANGERATE_API_KEY="",
        FALLBACK_EXCHANGE_RATES={"AUD": Decimal("1.55")},
    )


# ---------------------------------------------------------------------------
# Fixture Loaders
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def fury_sliver_payload() -> dict:
    """Single-faced Scryfall card object."""
    with open(FIXTURES / "scryfall_card.json") as f:
        return json.load(f)


@pytest.fixture(scope="session")
def delver_payload() -> dict:
    """Double-faced Scryfall card object (images live on card_faces)."""
    with open(FIXTURES / "scryfall_dfc.json") as f:
        return json.load(f)


# ---------------------------------------------------------------------------
# Pipeline Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def scryfall_client(test_settings: Settings) -> AsyncGenerator[ScryfallClient, None]:
    """Scryfall client with a zero-interval governor."""
    async with ScryfallClient(governor=RateGovernor(0.0), config=test_settings) as client:
        yield client


@pytest.fixture
async def validator(test_settings: Settings) -> AsyncGenerator[ImageValidator, None]:
    async with ImageValidator(config=test_settings) as v:
        yield v


@pytest.fixture
async def resolver(
    test_settings: Settings,
    scryfall_client: ScryfallClient,
    validator: ImageValidator,
) -> AsyncGenerator[CardImageResolver, None]:
    """Standard provider chain over the mockable client."""
    r = CardImageResolver(
        providers=default_providers(scryfall_client, test_settings),
        cache=ImageCache(config=test_settings),
        validator=validator,
        config=test_settings,
    )
    yield r
    await r.dispose()


@pytest.fixture
def rates(test_settings: Settings) -> ExchangeRateState:
    return ExchangeRateState(config=test_settings)
