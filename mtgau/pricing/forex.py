"""
MTG AU Marketplace — Exchange Rates

Scryfall quotes USD (and sometimes the target currency directly). Everything
else is derived from USD with a process-wide rate table:

- Initialized from settings.FALLBACK_EXCHANGE_RATES at construction
- Refreshed from ExchangeRate-API on a fixed interval (24h by default)
- Reads never block on a refresh; a stale rate is served instead
- Refresh failures are logged and the last good rates stay in effect

All money values use Decimal, never float.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable

import httpx
import structlog

from mtgau.config import Settings, settings as default_settings

logger = structlog.get_logger(__name__)

_CENTS = Decimal("0.01")
_RATE_PRECISION = Decimal("0.000001")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def convert_amount(amount: Decimal, rate: Decimal) -> Decimal:
    """
    Convert a reference-currency amount with a spot rate.

    Args:
        amount: Amount in the reference currency (USD).
        rate: Units of target currency per unit of reference currency.

    Returns:
        Converted amount, quantized to 2dp with ROUND_HALF_UP.

    Examples:
        >>> convert_amount(Decimal("10.00"), Decimal("1.5"))
        Decimal('15.00')
    """
    if amount < Decimal("0"):
        raise ValueError(f"amount must be non-negative, got {amount}")
    if rate <= Decimal("0"):
        raise ValueError(f"rate must be positive, got {rate}")

    return (amount * rate).quantize(_CENTS, rounding=ROUND_HALF_UP)


class ExchangeRateState:
    """
    Current reference→target rates plus the time they were last refreshed.

    Usage:
        rates = ExchangeRateState()
        rates.start()                      # background refresh loop
        aud = rates.rate("AUD")            # never blocks
        await rates.dispose()
    """

    def __init__(
        self,
        fallback_rates: dict[str, Decimal] | None = None,
        reference_currency: str | None = None,
        refresh_interval: float | None = None,
        api_key: str | None = None,
        api_url: str | None = None,
        config: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        cfg = config or default_settings
        rates = fallback_rates if fallback_rates is not None else cfg.FALLBACK_EXCHANGE_RATES
        self._reference = (reference_currency or cfg.REFERENCE_CURRENCY).upper()
        self._rates: dict[str, Decimal] = {code.upper(): Decimal(str(v)) for code, v in rates.items()}
        self._refresh_interval = (
            refresh_interval if refresh_interval is not None else cfg.EXCHANGE_RATE_REFRESH_SECONDS
        )
        self._api_key = api_key if api_key is not None else cfg.EXCHANGERATE_API_KEY
        self._api_url = api_url or cfg.EXCHANGERATE_API_URL
        self._timeout = cfg.EXCHANGE_RATE_REQUEST_TIMEOUT_SECONDS
        self._clock = clock
        self._updated_at = clock()
        self._is_fallback = True
        self._task: asyncio.Task[None] | None = None

    @property
    def reference_currency(self) -> str:
        return self._reference

    @property
    def currencies(self) -> list[str]:
        return sorted(self._rates)

    @property
    def is_fallback(self) -> bool:
        """True until the first successful live refresh."""
        return self._is_fallback

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    def rate(self, currency: str) -> Decimal | None:
        """Units of `currency` per unit of the reference currency, or None if unknown."""
        currency = currency.upper()
        if currency == self._reference:
            return Decimal("1")
        return self._rates.get(currency)

    def age(self) -> timedelta:
        return self._clock() - self._updated_at

    def set_rate(self, currency: str, rate: Decimal) -> None:
        """Install a rate manually (admin override)."""
        if rate <= Decimal("0"):
            raise ValueError(f"rate must be positive, got {rate}")
        self._rates[currency.upper()] = rate
        self._updated_at = self._clock()

    # -----------------------------------------------------------------------
    # Refresh
    # -----------------------------------------------------------------------

    async def refresh(self) -> bool:
        """
        Fetch fresh rates for every tracked currency.

        Returns:
            True if rates were updated. Never raises.
        """
        if not self._api_key:
            logger.debug(
                "forex_no_api_key_using_static",
                rates={code: str(v) for code, v in self._rates.items()},
                source="forex",
            )
            return False

        try:
            url = f"{self._api_url}/{self._api_key}/latest/{self._reference}"
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
                data = response.json()

            conversion_rates = data["conversion_rates"]
            fresh: dict[str, Decimal] = {}
            for code in self._rates:
                raw_rate = Decimal(str(conversion_rates[code]))
                if raw_rate <= Decimal("0"):
                    raise ValueError(f"non-positive rate for {code}: {raw_rate}")
                fresh[code] = raw_rate.quantize(_RATE_PRECISION, rounding=ROUND_HALF_UP)

        except Exception as e:
            logger.warning(
                "forex_refresh_failed_keeping_last_rate",
                error=str(e),
                error_type=type(e).__name__,
                rates={code: str(v) for code, v in self._rates.items()},
                rate_age_seconds=int(self.age().total_seconds()),
                source="forex",
            )
            return False

        self._rates.update(fresh)
        self._updated_at = self._clock()
        self._is_fallback = False

        logger.info(
            "forex_rate_refreshed",
            reference=self._reference,
            rates={code: str(v) for code, v in fresh.items()},
            source="forex",
        )
        return True

    async def _refresh_loop(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self._refresh_interval)

    def start(self) -> None:
        """Refresh now and then every refresh_interval seconds, in the background."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._refresh_loop())
            logger.info(
                "forex_refresh_started",
                interval_seconds=self._refresh_interval,
                source="forex",
            )

    async def dispose(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def __aenter__(self) -> ExchangeRateState:
        self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.dispose()
