"""
MTG AU Marketplace — Price quote model
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from pydantic import BaseModel, Field

from mtgau.config import Finish


class PriceQuote(BaseModel):
    """
    A price normalized into the display currency.

    When the source already quotes the target currency, the native amount is
    used verbatim (rate_used = 1, rate_age = 0). Otherwise
    converted_amount = native_amount × rate_used.
    """

    model_config = {"frozen": True}

    native_amount: Decimal = Field(..., description="Amount as quoted by the source")
    native_currency: str = Field(..., description="Currency of native_amount")
    converted_amount: Decimal = Field(..., description="Amount in converted_currency, 2dp")
    converted_currency: str
    rate_used: Decimal = Field(default=Decimal("1"))
    rate_age: timedelta = Field(default=timedelta(0), description="Age of the exchange rate used")
    finish: Finish = Field(default=Finish.NONFOIL)
    estimated: bool = Field(
        default=False,
        description="True when derived from the etched-foil heuristic rather than a quote",
    )

    @property
    def is_native(self) -> bool:
        return self.native_currency == self.converted_currency
