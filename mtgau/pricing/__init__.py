from mtgau.pricing.forex import ExchangeRateState, convert_amount
from mtgau.pricing.normalizer import PriceNormalizer, parse_price

__all__ = [
    "ExchangeRateState",
    "PriceNormalizer",
    "convert_amount",
    "parse_price",
]
