"""
Price lookups and USD enrichment.
"""

from wallet_monitor.pricing.enrichment import (
    enrich_tokens,
    enrich_transactions,
    price_or_none,
    value_in_usd,
)
from wallet_monitor.pricing.price_service import (
    STABLECOINS,
    SYMBOL_TO_COINGECKO_ID,
    CoinGeckoPriceService,
    PriceData,
    PriceService,
    fallback_price,
)

__all__ = [
    "STABLECOINS",
    "SYMBOL_TO_COINGECKO_ID",
    "CoinGeckoPriceService",
    "PriceData",
    "PriceService",
    "enrich_tokens",
    "enrich_transactions",
    "fallback_price",
    "price_or_none",
    "value_in_usd",
]
