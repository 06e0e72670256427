"""
MTG AU Marketplace — Card Media Service

The one object HTTP handlers and UI code talk to. Wraps the image resolver
and the price normalizer behind four calls:

- resolve_image(card, size, validate=, force_refresh=) → URL (never raises)
- quote_price(raw_prices, target_currency) → PriceQuote | None
- preload(cards, size) → fire-and-forget cache warm
- clear_cache() → administrative reset

normalize_card() applies both to a raw record, the way listing and search
results are shaped before rendering.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

import structlog

from mtgau.config import Finish, ImageSize, Settings, settings as default_settings
from mtgau.models.card import CardRef
from mtgau.models.price import PriceQuote
from mtgau.pipeline.resolver import CardImageResolver
from mtgau.pipeline.scryfall import ScryfallClient
from mtgau.pricing.forex import ExchangeRateState
from mtgau.pricing.normalizer import PriceNormalizer

logger = structlog.get_logger(__name__)

CardLike = CardRef | Mapping[str, Any]


def as_card_ref(card: CardLike) -> CardRef:
    """Coerce a record to a CardRef. An unreadable record becomes unidentifiable."""
    if isinstance(card, CardRef):
        return card
    try:
        return CardRef.from_record(dict(card))
    except (TypeError, ValueError) as e:
        logger.warning(
            "card_record_unreadable",
            error=str(e),
            error_type=type(e).__name__,
            source="service",
        )
        return CardRef()


class CardMediaService:
    """
    Image and price resolution for card records.

    Usage:
        async with CardMediaService.create() as service:
            url = await service.resolve_image({"name": "Lightning Bolt"})
            quote = service.quote_price({"usd": "1.20"}, "AUD")
    """

    def __init__(
        self,
        resolver: CardImageResolver,
        normalizer: PriceNormalizer,
        config: Settings | None = None,
    ):
        self._config = config or default_settings
        self._resolver = resolver
        self._normalizer = normalizer

    @classmethod
    def create(
        cls,
        config: Settings | None = None,
        client: ScryfallClient | None = None,
    ) -> CardMediaService:
        cfg = config or default_settings
        return cls(
            resolver=CardImageResolver.create(cfg, client=client),
            normalizer=PriceNormalizer(ExchangeRateState(config=cfg), config=cfg),
            config=cfg,
        )

    async def __aenter__(self) -> CardMediaService:
        self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.dispose()

    @property
    def resolver(self) -> CardImageResolver:
        return self._resolver

    @property
    def rates(self) -> ExchangeRateState:
        return self._normalizer.rates

    def start(self) -> None:
        """Start the background exchange-rate refresh."""
        self._normalizer.rates.start()

    async def dispose(self) -> None:
        await self._normalizer.rates.dispose()
        await self._resolver.dispose()

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def resolve_image(
        self,
        card: CardLike,
        size: ImageSize | str = ImageSize.NORMAL,
        validate: bool | None = None,
        force_refresh: bool = False,
    ) -> str:
        return await self._resolver.resolve_image(
            as_card_ref(card), size, validate=validate, force_refresh=force_refresh
        )

    def quote_price(
        self,
        raw_prices: Mapping[str, Any] | None,
        target_currency: str | None = None,
        finish: Finish | str = Finish.NONFOIL,
    ) -> PriceQuote | None:
        return self._normalizer.quote(raw_prices, target_currency, finish)

    def preload(self, cards: Iterable[CardLike], size: ImageSize | str = ImageSize.SMALL) -> None:
        self._resolver.preload((as_card_ref(card) for card in cards), size)

    def clear_cache(self) -> None:
        self._resolver.clear_cache()

    async def normalize_card(
        self,
        record: Mapping[str, Any],
        size: ImageSize | str = ImageSize.NORMAL,
        target_currency: str | None = None,
    ) -> dict[str, Any]:
        """
        Copy of `record` with `image_url` resolved and target-currency prices filled in.

        Existing price fields are kept; the target-currency fields are overwritten
        with normalized amounts (None where unavailable).
        """
        card = as_card_ref(record)
        image_url = await self._resolver.resolve_image(card, size)
        prices = dict(card.raw_prices or {})
        prices.update(self._normalizer.normalize_prices(prices, target_currency))

        normalized = dict(record)
        normalized["image_url"] = image_url
        normalized["prices"] = prices
        return normalized
