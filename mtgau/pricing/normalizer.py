"""
MTG AU Marketplace — Price Normalizer

Turns a raw Scryfall-style price map into a quote in the display currency:

1. A native quote in the target currency ("aud", "aud_foil", ...) wins verbatim
2. Otherwise the reference quote ("usd", "usd_foil", ...) × current rate
3. Etched finish with neither: foil quote × ETCHED_FOIL_MULTIPLIER, flagged
   as estimated (unverified heuristic, configurable)
4. Nothing usable → None. "Price unavailable" is never a fabricated zero.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping

import structlog

from mtgau.config import Finish, Settings, settings as default_settings
from mtgau.models.price import PriceQuote
from mtgau.pricing.forex import ExchangeRateState, convert_amount

logger = structlog.get_logger(__name__)

_CENTS = Decimal("0.01")


def parse_price(v: Any) -> Decimal | None:
    """Safely convert a raw price value to Decimal. Never use float for money."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str):
        v = v.strip()
        if v == "" or v.upper() == "N/A":
            return None
    try:
        amount = Decimal(str(v))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount < Decimal("0"):
        return None
    return amount


class PriceNormalizer:
    """
    Quotes raw prices in a target currency using a shared ExchangeRateState.

    Usage:
        normalizer = PriceNormalizer(ExchangeRateState())
        quote = normalizer.quote({"usd": "10.00"}, "AUD")
    """

    def __init__(
        self,
        rates: ExchangeRateState,
        default_currency: str | None = None,
        etched_multiplier: Decimal | None = None,
        config: Settings | None = None,
    ):
        cfg = config or default_settings
        self._rates = rates
        self._default_currency = (default_currency or cfg.DEFAULT_CURRENCY).upper()
        self._etched_multiplier = (
            etched_multiplier if etched_multiplier is not None else cfg.ETCHED_FOIL_MULTIPLIER
        )

    @property
    def rates(self) -> ExchangeRateState:
        return self._rates

    def quote(
        self,
        raw_prices: Mapping[str, Any] | None,
        target_currency: str | None = None,
        finish: Finish | str = Finish.NONFOIL,
    ) -> PriceQuote | None:
        """
        Quote `raw_prices` in `target_currency` for one finish.

        Args:
            raw_prices: Price fields keyed like Scryfall ("usd", "usd_foil", "aud", ...).
            target_currency: Display currency (default settings.DEFAULT_CURRENCY).
            finish: Which finish to price.

        Returns:
            PriceQuote, or None when no usable price exists.
        """
        target = (target_currency or self._default_currency).upper()
        finish = Finish(finish)
        prices = {str(k).lower(): v for k, v in (raw_prices or {}).items()}

        quote = self._quote_finish(prices, target, finish)
        if quote is not None or finish is not Finish.ETCHED:
            return quote

        return self._estimate_etched(prices, target)

    def normalize_prices(
        self,
        raw_prices: Mapping[str, Any] | None,
        target_currency: str | None = None,
    ) -> dict[str, Decimal | None]:
        """
        Converted amount for every finish, keyed like Scryfall in the target currency.

        Example:
            {"aud": Decimal("15.00"), "aud_foil": None, "aud_etched": None}
        """
        target = (target_currency or self._default_currency).upper()
        result: dict[str, Decimal | None] = {}
        for finish in Finish:
            quote = self.quote(raw_prices, target, finish)
            result[f"{target.lower()}{finish.price_suffix}"] = quote.converted_amount if quote else None
        return result

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _quote_finish(
        self,
        prices: dict[str, Any],
        target: str,
        finish: Finish,
    ) -> PriceQuote | None:
        suffix = finish.price_suffix

        native = parse_price(prices.get(f"{target.lower()}{suffix}"))
        if native is not None:
            return PriceQuote(
                native_amount=native,
                native_currency=target,
                converted_amount=native.quantize(_CENTS, rounding=ROUND_HALF_UP),
                converted_currency=target,
                finish=finish,
            )

        reference = self._rates.reference_currency
        amount = parse_price(prices.get(f"{reference.lower()}{suffix}"))
        if amount is None:
            return None

        rate = self._rates.rate(target)
        if rate is None:
            logger.warning(
                "price_no_rate_for_currency",
                target_currency=target,
                known=self._rates.currencies,
                source="pricing",
            )
            return None

        return PriceQuote(
            native_amount=amount,
            native_currency=reference,
            converted_amount=convert_amount(amount, rate),
            converted_currency=target,
            rate_used=rate,
            rate_age=self._rates.age(),
            finish=finish,
        )

    def _estimate_etched(self, prices: dict[str, Any], target: str) -> PriceQuote | None:
        if self._etched_multiplier <= Decimal("0"):
            return None

        foil = self._quote_finish(prices, target, Finish.FOIL)
        if foil is None:
            return None

        logger.debug(
            "price_etched_estimated_from_foil",
            foil_amount=str(foil.converted_amount),
            multiplier=str(self._etched_multiplier),
            source="pricing",
        )
        return foil.model_copy(
            update={
                "native_amount": (foil.native_amount * self._etched_multiplier).quantize(
                    _CENTS, rounding=ROUND_HALF_UP
                ),
                "converted_amount": (foil.converted_amount * self._etched_multiplier).quantize(
                    _CENTS, rounding=ROUND_HALF_UP
                ),
                "finish": Finish.ETCHED,
                "estimated": True,
            }
        )
