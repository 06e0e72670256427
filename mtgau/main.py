"""
MTG AU Marketplace — Lookup Entrypoint

Configures structlog, starts the exchange-rate refresh, then resolves an
image URL and a display-currency price for each card given on the command
line and prints one JSON object per card.

Run via:
    python -m mtgau.main "Lightning Bolt" "Delver of Secrets" --size large
    python -m mtgau.main --id 0000579f-7b35-4ed3-b44c-db2a538066fe --validate
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

import structlog

from mtgau.config import Finish, ImageSize, settings
from mtgau.models.card import CardRef
from mtgau.service import CardMediaService
from mtgau.pipeline.scryfall import ScryfallClient


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    # Configure stdlib logging first (for httpx and other libraries)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resolve card images and display-currency prices.",
    )
    parser.add_argument("names", nargs="*", help="Card names to look up.")
    parser.add_argument(
        "--id",
        dest="ids",
        action="append",
        default=[],
        help="Scryfall card UUID (repeatable).",
    )
    parser.add_argument(
        "--size",
        default=ImageSize.NORMAL.value,
        choices=[size.value for size in ImageSize],
    )
    parser.add_argument("--currency", default=settings.DEFAULT_CURRENCY)
    parser.add_argument(
        "--finish",
        default=Finish.NONFOIL.value,
        choices=[finish.value for finish in Finish],
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Confirm each candidate image loads before accepting it.",
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    args = parser.parse_args(argv)
    if not args.names and not args.ids:
        parser.error("give at least one card name or --id")
    return args


async def lookup(
    service: CardMediaService,
    catalog: ScryfallClient,
    card: CardRef,
    args: argparse.Namespace,
) -> dict:
    """Resolve image and price for one card from a single catalog fetch."""
    if card.has_scryfall_id:
        found = await catalog.fetch_card(card.identifier)
    else:
        found = await catalog.fetch_named(card.name, fuzzy=True)

    # The catalog object carries its image map, so the direct tier answers
    # without a second governed request
    if found is not None:
        card = CardRef.from_record(found.model_dump())
    candidate = await service.resolver.resolve_candidate(
        card, args.size, validate=args.validate
    )

    quote = service.quote_price(found.prices if found else {}, args.currency, args.finish)
    return {
        "name": card.name,
        "identifier": card.identifier,
        "image_url": candidate.url,
        "image_tier": candidate.tier.value,
        "price": quote.model_dump(mode="json") if quote else None,
    }


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(log_level=args.log_level)
    logger = structlog.get_logger(__name__)

    cards = [CardRef(name=name) for name in args.names]
    cards += [CardRef(identifier=card_id) for card_id in args.ids]

    logger.info("mtgau_lookup_start", cards=len(cards), size=args.size, currency=args.currency)

    # Price lookups share the resolver's client so both obey one pace
    async with ScryfallClient() as catalog:
        service = CardMediaService.create(client=catalog)
        try:
            # One-shot run: a single refresh instead of the background loop
            await service.rates.refresh()
            results = await asyncio.gather(
                *(lookup(service, catalog, card, args) for card in cards)
            )
        finally:
            await service.dispose()

    for result in results:
        print(json.dumps(result))

    logger.info("mtgau_lookup_complete", cards=len(results))
    return 0


# ---------------------------------------------------------------------------
# CLI Entry
# ---------------------------------------------------------------------------


def _cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    _cli()
